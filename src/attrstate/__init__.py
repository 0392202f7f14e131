"""
Reflection-driven conversion between typed records and tri-state attribute trees.

Resource providers describe their inputs and outputs as dataclasses. This
package derives attribute schemas from those records, converts between
records and attribute value trees whose leaves can be null, unknown or known,
reconciles a plan with prior state, deep-merges attribute trees and guards
immutable attributes against change.

Key Features:
- Schema derivation from dataclass annotations and field metadata
- Decode/encode between Object values and records
- Plan/state reconciliation and deep merge of attribute trees
- Per-kind immutability guards and force-replace plan modifiers
- Choice validators and literal defaults
- Resource lifecycle glue driving create/read/update/delete actions

Quick Start:
    >>> from dataclasses import dataclass
    >>> from typing import Optional
    >>> from attrstate import attr_field, derive_schema, decode, encode, ObjectType
    >>>
    >>> @dataclass
    ... class Network:
    ...     name: str = attr_field(required=True, default='')
    ...     count: Optional[int] = None
    >>>
    >>> schema = derive_schema(Network)
    >>> state = encode(Network(name='web', count=3), ObjectType(schema))
    >>> decode(state, Network)
    Network(name='web', count=3)

Modules:
    - attr_types / attr_values: wire-level types and tri-state values
    - descriptor: flattened field descriptors of record types
    - schema: attribute types and attribute schemas from record types
    - convert: decode and encode
    - reconcile: plan/state reconciliation of records
    - merge: deep merge of attribute trees
    - plan_modifiers: immutability guards and force-replace
    - validators: choice validators and defaults
    - resource: resource lifecycle glue
    - settings: contextvars-scoped converter settings
"""

from attrstate.attr_types import (
    BOOL,
    DYNAMIC,
    FLOAT64,
    INT64,
    STRING,
    AttrType,
    BoolType,
    DynamicType,
    Float64Type,
    Int64Type,
    ListType,
    MapType,
    ObjectType,
    SetType,
    StringType,
    TupleType,
)

from attrstate.attr_values import (
    AttrValue,
    ValueState,
    bool_value,
    dynamic_value,
    float64_value,
    format_value,
    int64_value,
    list_value,
    map_value,
    null_value,
    object_value,
    set_value,
    string_value,
    tuple_value,
    unknown_value,
)

from attrstate.cache import CacheKey, TypeCache, clear_caches

from attrstate.convert import (
    decode,
    decode_plan_and_state,
    encode,
    object_to_mapping,
    record_to_state_object,
)

from attrstate.descriptor import (
    FieldDescriptor,
    attr_field,
    field_values,
    find_field,
    resolve_fields,
    to_snake,
)

from attrstate.diagnostics import Diagnostic, Diagnostics, Severity

from attrstate.errors import (
    AttrStateError,
    ConversionError,
    DecodeError,
    EncodeError,
    SchemaConflictError,
    SchemaError,
    UnsupportedTypeError,
)

from attrstate.merge import merge_into, merge_objects, merge_plan_into_state

from attrstate.plan_modifiers import (
    ImmutableAttributeViolation,
    ImmutableBool,
    ImmutableDynamic,
    ImmutableFloat64,
    ImmutableGuard,
    ImmutableInt64,
    ImmutableList,
    ImmutableMap,
    ImmutableObject,
    ImmutableSet,
    ImmutableString,
    ImmutableTuple,
    PlanModifier,
    PlanModifyRequest,
    PlanModifyResponse,
    RequiresReplace,
    check_immutable_attributes,
    immutable_guard_for,
    run_plan_modifiers,
)

from attrstate.reconcile import reconcile

from attrstate.records import (
    build_record,
    deep_copy,
    is_zero,
    schema_by_path,
    zero_record,
)

from attrstate.resource import (
    Operation,
    OperationResult,
    ResourceDefinition,
    ResourceHandler,
)

from attrstate.schema import (
    AttributeSchema,
    ResourceSchema,
    derive_schema,
    generate_data_source_schema,
    generate_resource_schema,
    has_dynamic_inner_type,
    schema_attrs_from_record,
    type_to_attr_type,
)

from attrstate.settings import (
    ConverterSettings,
    converter_settings,
    get_converter_settings,
    set_converter_settings,
)

from attrstate.validators import (
    DefaultValue,
    ListChoicesValidator,
    SetChoicesValidator,
    StringChoicesValidator,
    Validator,
    apply_defaults,
    parse_default,
    validate_config,
)

__all__ = [
    # Attribute types
    'AttrType', 'StringType', 'BoolType', 'Int64Type', 'Float64Type', 'DynamicType',
    'ListType', 'SetType', 'MapType', 'TupleType', 'ObjectType',
    'STRING', 'BOOL', 'INT64', 'FLOAT64', 'DYNAMIC',

    # Attribute values
    'AttrValue', 'ValueState', 'null_value', 'unknown_value', 'string_value', 'bool_value',
    'int64_value', 'float64_value', 'list_value', 'set_value', 'tuple_value', 'map_value',
    'object_value', 'dynamic_value', 'format_value',

    # Descriptors
    'FieldDescriptor', 'attr_field', 'resolve_fields', 'find_field', 'field_values', 'to_snake',

    # Schemas
    'AttributeSchema', 'ResourceSchema', 'type_to_attr_type', 'has_dynamic_inner_type',
    'schema_attrs_from_record', 'generate_resource_schema', 'generate_data_source_schema',
    'derive_schema',

    # Conversion
    'decode', 'encode', 'decode_plan_and_state', 'object_to_mapping', 'record_to_state_object',
    'reconcile', 'merge_into', 'merge_objects', 'merge_plan_into_state',

    # Records
    'deep_copy', 'zero_record', 'is_zero', 'build_record', 'schema_by_path',

    # Plan modifiers
    'ImmutableGuard', 'ImmutableString', 'ImmutableInt64', 'ImmutableFloat64', 'ImmutableBool',
    'ImmutableList', 'ImmutableSet', 'ImmutableMap', 'ImmutableTuple', 'ImmutableObject',
    'ImmutableDynamic', 'PlanModifier',
    'ImmutableAttributeViolation', 'PlanModifyRequest', 'PlanModifyResponse', 'RequiresReplace',
    'immutable_guard_for', 'check_immutable_attributes', 'run_plan_modifiers',

    # Validators and defaults
    'Validator', 'StringChoicesValidator', 'ListChoicesValidator', 'SetChoicesValidator',
    'DefaultValue', 'parse_default', 'apply_defaults', 'validate_config',

    # Resource lifecycle
    'Operation', 'OperationResult', 'ResourceDefinition', 'ResourceHandler',

    # Errors and diagnostics
    'AttrStateError', 'SchemaError', 'SchemaConflictError', 'UnsupportedTypeError',
    'ConversionError', 'DecodeError', 'EncodeError', 'Diagnostic', 'Diagnostics', 'Severity',

    # Infrastructure
    'CacheKey', 'TypeCache', 'clear_caches',
    'ConverterSettings', 'converter_settings', 'get_converter_settings', 'set_converter_settings',
]

__version__ = '1.0.0'

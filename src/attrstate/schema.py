"""
Schema derivation from record types.

A record type is mapped to attribute types field by field:

- ``str``, ``bool``, ``int``, ``float`` -> String, Bool, Int64, Float64
- ``List[X]`` -> List (Set when the field is designated set-like)
- ``Set[X]`` / ``FrozenSet[X]`` -> Set
- ``Tuple[X, Y]`` -> Tuple, ``Tuple[X, ...]`` -> List
- ``Dict[str, X]`` -> Map
- a dataclass -> Object
- ``Optional[X]`` -> the mapping of ``X``
- ``Any`` / ``object``, and any container whose elements reach one -> Dynamic

On top of the types, attribute schemas carry the behavioural flags that the
record metadata declares (required, sensitive, defaults, choices, force-replace,
immutability). Two variants can be derived from the same record:

- the required/optional variant for attributes the practitioner writes
- the computed variant, where every attribute is optional and computed

``generate_resource_schema`` combines the create, update and state records of
a resource into one schema.
"""

import collections.abc
import dataclasses
import logging
import typing
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from attrstate.attr_types import (
    BOOL, DYNAMIC, FLOAT64, INT64, STRING, AttrType, ListType, MapType,
    ObjectType, SetType, TupleType,
)
from attrstate.cache import CacheKey, TypeCache
from attrstate.descriptor import FieldDescriptor, resolve_fields, unwrap_optional
from attrstate.errors import UnsupportedTypeError
from attrstate.plan_modifiers import (
    ImmutableGuard, PlanModifier, RequiresReplace, immutable_guard_for,
)
from attrstate.validators import DefaultValue, Validator, choices_validator_for, parse_default

logger = logging.getLogger(__name__)

_attr_type_cache: TypeCache = TypeCache('attr_types')
_derived_schema_cache: TypeCache = TypeCache('derived_schemas')

_SEQUENCE_ORIGINS = (list, collections.abc.Sequence, collections.abc.MutableSequence)
_SET_ORIGINS = (set, frozenset, collections.abc.Set, collections.abc.MutableSet)
_MAPPING_ORIGINS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)


# ============================================================================
# Python type -> attribute type
# ============================================================================

def _is_record_type(py_type: Any) -> bool:
    return isinstance(py_type, type) and dataclasses.is_dataclass(py_type)


def has_dynamic_inner_type(py_type: Any, _seen: Optional[Set[Any]] = None) -> bool:
    """
    True when ``Any``/``object`` is reachable from ``py_type``.

    Containers are inspected through their type arguments (a bare ``list`` or
    ``dict`` has unknown elements and counts as dynamic); dataclasses through
    their fields.
    """
    seen = _seen if _seen is not None else set()
    py_type = unwrap_optional(py_type)
    if py_type is Any or py_type is object:
        return True
    if py_type in (list, dict, set, frozenset, tuple):
        return True

    origin = typing.get_origin(py_type)
    if origin is typing.Union:
        return True
    if origin is not None:
        args = [a for a in typing.get_args(py_type) if a is not Ellipsis]
        if origin in _MAPPING_ORIGINS and len(args) == 2:
            args = args[1:]
        return any(has_dynamic_inner_type(a, seen) for a in args) if args else True

    if _is_record_type(py_type):
        if py_type in seen:
            return False
        seen.add(py_type)
        return any(has_dynamic_inner_type(d.declared_type, seen) for d in resolve_fields(py_type))
    return False


def type_to_attr_type(py_type: Any, set_semantics: bool = False) -> AttrType:
    """
    Attribute type of a Python type annotation.

    Args:
        py_type: A field annotation
        set_semantics: Map list-like types to Set instead of List

    Raises:
        UnsupportedTypeError: for non-string map keys, recursive records and
            types with no attribute representation
    """
    key = CacheKey.from_args(py_type, set_semantics)
    try:
        hash(key)
    except TypeError:
        return _compute_attr_type(py_type, set_semantics, ())
    return _attr_type_cache.get_or_compute(key, lambda: _compute_attr_type(py_type, set_semantics, ()))


def _compute_attr_type(py_type: Any, set_semantics: bool, stack: Tuple[type, ...]) -> AttrType:
    py_type = unwrap_optional(py_type)

    if py_type is bool:
        return BOOL
    if py_type is str:
        return STRING
    if py_type is int:
        return INT64
    if py_type is float:
        return FLOAT64
    if py_type is Any or py_type is object:
        return DYNAMIC

    origin = typing.get_origin(py_type)
    args = typing.get_args(py_type)
    is_container = origin is not None or py_type in (list, dict, set, frozenset, tuple)

    if is_container and has_dynamic_inner_type(py_type):
        return DYNAMIC

    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            elem = _compute_attr_type(args[0], False, stack)
            return SetType(elem) if set_semantics else ListType(elem)
        return TupleType(tuple(_compute_attr_type(a, False, stack) for a in args))

    if origin in _SET_ORIGINS:
        return SetType(_compute_attr_type(args[0], False, stack))

    if origin in _SEQUENCE_ORIGINS:
        elem = _compute_attr_type(args[0], False, stack)
        return SetType(elem) if set_semantics else ListType(elem)

    if origin in _MAPPING_ORIGINS:
        key_type, value_type = args
        if key_type is not str:
            raise UnsupportedTypeError(py_type, "map keys must be str")
        return MapType(_compute_attr_type(value_type, False, stack))

    if _is_record_type(py_type):
        if py_type in stack:
            raise UnsupportedTypeError(py_type, "recursive record types have no attribute type")
        return _object_type_for(py_type, stack + (py_type,))

    raise UnsupportedTypeError(py_type)


def _object_type_for(record_type: type, stack: Tuple[type, ...]) -> ObjectType:
    attr_types = {}
    for descriptor in resolve_fields(record_type):
        try:
            attr_types[descriptor.wire_name] = _compute_attr_type(descriptor.declared_type, False, stack)
        except UnsupportedTypeError as err:
            logger.warning(f"Skipping field '{descriptor.name}' of {record_type.__name__}: {err}")
    return ObjectType(attr_types)


# ============================================================================
# Attribute schemas
# ============================================================================

@dataclass
class AttributeSchema:
    """
    Schema of one attribute.

    ``nested`` holds the attribute schemas of a nested record; ``nesting``
    tells how the record is nested (``single``, ``list``, ``set`` or ``map``).
    """
    attr_type: AttrType
    description: str = ''
    required: bool = False
    optional: bool = False
    computed: bool = False
    sensitive: bool = False
    default: Optional[DefaultValue] = None
    validators: List[Validator] = field(default_factory=list)
    plan_modifiers: List[PlanModifier] = field(default_factory=list)
    nested: Optional[Dict[str, 'AttributeSchema']] = None
    nesting: Optional[str] = None

    @property
    def is_immutable(self) -> bool:
        return any(isinstance(m, ImmutableGuard) for m in self.plan_modifiers)

    @property
    def requires_replace(self) -> bool:
        return any(isinstance(m, RequiresReplace) for m in self.plan_modifiers)


@dataclass
class ResourceSchema:
    attributes: Dict[str, AttributeSchema]
    description: str = ''
    version: int = 0

    def attr_types(self) -> Dict[str, AttrType]:
        return {name: attribute.attr_type for name, attribute in self.attributes.items()}

    def object_type(self) -> ObjectType:
        return ObjectType(self.attr_types())

    def immutable_attributes(self) -> List[str]:
        return [name for name, attribute in self.attributes.items() if attribute.is_immutable]


@dataclass(frozen=True)
class _Options:
    set_as_computed: bool = False
    data_source: bool = False
    sensitive: Tuple[str, ...] = ()
    extra_required: Tuple[str, ...] = ()
    computed_as_set: Tuple[str, ...] = ()
    immutable: Tuple[str, ...] = ()


def schema_attrs_from_record(record_type: type, set_as_computed: bool = False,
                             sensitive_attrs: Iterable[str] = (),
                             extra_required_attrs: Iterable[str] = (),
                             computed_as_set_attrs: Iterable[str] = (),
                             immutable_attrs: Iterable[str] = (),
                             data_source: bool = False) -> Dict[str, AttributeSchema]:
    """
    Attribute schemas for every wire-visible field of a record type.

    Args:
        record_type: The dataclass to derive from
        set_as_computed: Derive the computed variant (all optional+computed,
            no defaults, validators or force-replace)
        sensitive_attrs: Wire names to mark sensitive, besides metadata
        extra_required_attrs: Wire names to mark required, besides metadata
        computed_as_set_attrs: Wire names whose list types become sets
        immutable_attrs: Wire names to guard against change, besides metadata
        data_source: Derive a read-only variant (no defaults, force-replace
            or immutability guards)

    Fields whose type has no attribute representation are skipped with a
    warning. The names apply at every nesting level.
    """
    options = _Options(
        set_as_computed=set_as_computed,
        data_source=data_source,
        sensitive=tuple(sensitive_attrs),
        extra_required=tuple(extra_required_attrs),
        computed_as_set=tuple(computed_as_set_attrs),
        immutable=tuple(immutable_attrs),
    )
    return _schema_attrs(record_type, options, (record_type,))


def _schema_attrs(record_type: type, options: _Options, stack: Tuple[type, ...]) -> Dict[str, AttributeSchema]:
    attributes: Dict[str, AttributeSchema] = {}
    for descriptor in resolve_fields(record_type):
        try:
            attribute = _attribute_for(descriptor, options, stack)
        except UnsupportedTypeError as err:
            logger.warning(f"Skipping field '{descriptor.name}' of {record_type.__name__}: {err}")
            continue
        attributes[descriptor.wire_name] = attribute
    return attributes


def _nested_record(py_type: Any) -> Tuple[Optional[type], Optional[str]]:
    """The dataclass nested in a field type and how it is nested."""
    py_type = unwrap_optional(py_type)
    if _is_record_type(py_type):
        return py_type, 'single'
    origin = typing.get_origin(py_type)
    args = typing.get_args(py_type)
    if origin in _MAPPING_ORIGINS and len(args) == 2:
        inner = unwrap_optional(args[1])
        return (inner, 'map') if _is_record_type(inner) else (None, None)
    if origin in _SET_ORIGINS and args:
        inner = unwrap_optional(args[0])
        return (inner, 'set') if _is_record_type(inner) else (None, None)
    if origin in _SEQUENCE_ORIGINS or (origin is tuple and len(args) == 2 and args[1] is Ellipsis):
        inner = unwrap_optional(args[0])
        return (inner, 'list') if _is_record_type(inner) else (None, None)
    return None, None


def _attribute_for(descriptor: FieldDescriptor, options: _Options, stack: Tuple[type, ...]) -> AttributeSchema:
    wire = descriptor.wire_name
    as_set = wire in options.computed_as_set
    attr_type: AttrType = None
    nested = None
    nesting = None

    declared = descriptor.declared_type
    inner_record, nesting = _nested_record(declared)
    if inner_record is not None and (nesting == 'single' or not has_dynamic_inner_type(declared)):
        if inner_record in stack:
            raise UnsupportedTypeError(inner_record, "recursive record types have no attribute type")
        nested = _schema_attrs(inner_record, options, stack + (inner_record,))
        object_type = ObjectType({name: a.attr_type for name, a in nested.items()})
        if nesting == 'single':
            attr_type = object_type
        elif nesting == 'map':
            attr_type = MapType(object_type)
        elif nesting == 'set' or as_set:
            nesting = 'set'
            attr_type = SetType(object_type)
        else:
            attr_type = ListType(object_type)
    else:
        nesting = None
        attr_type = type_to_attr_type(declared, set_semantics=as_set)

    attribute = AttributeSchema(
        attr_type=attr_type,
        description=descriptor.description,
        sensitive=descriptor.is_sensitive or wire in options.sensitive,
        nested=nested,
        nesting=nesting,
    )

    if options.set_as_computed:
        attribute.optional = True
        attribute.computed = True
    else:
        required = descriptor.is_required or wire in options.extra_required
        default = None
        if not options.data_source:
            default = parse_default(attr_type, descriptor.default_literal)
        if default is not None:
            attribute.default = DefaultValue(default)
            required = False
        attribute.required = required
        attribute.optional = not required
        attribute.computed = not required

        validator = choices_validator_for(attr_type, descriptor.choices)
        if validator is not None:
            attribute.validators.append(validator)
        if descriptor.is_force_replace and not options.data_source:
            attribute.plan_modifiers.append(RequiresReplace())

    if (descriptor.is_immutable or wire in options.immutable) and not options.data_source:
        try:
            attribute.plan_modifiers.append(immutable_guard_for(attr_type))
        except TypeError as err:
            logger.warning(f"Attribute '{wire}' cannot be guarded: {err}")
    return attribute


# ============================================================================
# Whole schemas
# ============================================================================

def _merge_variants(target: Dict[str, AttributeSchema], variant: Dict[str, AttributeSchema]) -> None:
    for name, attribute in variant.items():
        if name not in target:
            target[name] = attribute


def generate_resource_schema(create_type: type, update_type: Optional[type] = None,
                             state_type: Optional[type] = None,
                             sensitive_attrs: Iterable[str] = (),
                             extra_required_attrs: Iterable[str] = (),
                             computed_as_set_attrs: Iterable[str] = (),
                             immutable_attrs: Iterable[str] = (),
                             description: str = '', version: int = 0) -> ResourceSchema:
    """
    Resource schema combining the create, update and state records.

    The create record contributes required/optional attributes. The update
    and state records contribute computed attributes for names the create
    record does not have; where a name appears in several records the create
    variant wins.
    """
    sensitive_attrs = tuple(sensitive_attrs)
    computed_as_set_attrs = tuple(computed_as_set_attrs)
    immutable_attrs = tuple(immutable_attrs)
    attributes = schema_attrs_from_record(
        create_type,
        sensitive_attrs=sensitive_attrs,
        extra_required_attrs=extra_required_attrs,
        computed_as_set_attrs=computed_as_set_attrs,
        immutable_attrs=immutable_attrs,
    )
    for other in (update_type, state_type):
        if other is None:
            continue
        _merge_variants(attributes, schema_attrs_from_record(
            other,
            set_as_computed=True,
            sensitive_attrs=sensitive_attrs,
            computed_as_set_attrs=computed_as_set_attrs,
            immutable_attrs=immutable_attrs,
        ))
    logger.debug(f"Generated resource schema from {create_type.__name__} with {len(attributes)} attributes")
    return ResourceSchema(attributes=attributes, description=description, version=version)


def generate_data_source_schema(input_type: type, state_type: Optional[type] = None,
                                sensitive_attrs: Iterable[str] = (),
                                extra_required_attrs: Iterable[str] = (),
                                computed_as_set_attrs: Iterable[str] = (),
                                description: str = '') -> ResourceSchema:
    """Read-only schema: input attributes plus computed state attributes."""
    sensitive_attrs = tuple(sensitive_attrs)
    computed_as_set_attrs = tuple(computed_as_set_attrs)
    attributes = schema_attrs_from_record(
        input_type,
        sensitive_attrs=sensitive_attrs,
        extra_required_attrs=extra_required_attrs,
        computed_as_set_attrs=computed_as_set_attrs,
        data_source=True,
    )
    if state_type is not None:
        _merge_variants(attributes, schema_attrs_from_record(
            state_type,
            set_as_computed=True,
            sensitive_attrs=sensitive_attrs,
            computed_as_set_attrs=computed_as_set_attrs,
            data_source=True,
        ))
    return ResourceSchema(attributes=attributes, description=description)


def derive_schema(record_type: type, sensitive_fields: Iterable[str] = (),
                  extra_required_fields: Iterable[str] = (),
                  set_semantics_fields: Iterable[str] = ()) -> Dict[str, AttrType]:
    """
    Attribute types of the required/optional variant of ``record_type``.

    The result is cached per (type, options); callers receive a fresh dict.
    """
    key = CacheKey.from_args(
        record_type,
        tuple(sorted(sensitive_fields)),
        tuple(sorted(extra_required_fields)),
        tuple(sorted(set_semantics_fields)),
    )

    def compute():
        attributes = schema_attrs_from_record(
            record_type,
            sensitive_attrs=key.components[1],
            extra_required_attrs=key.components[2],
            computed_as_set_attrs=key.components[3],
        )
        return {name: attribute.attr_type for name, attribute in attributes.items()}

    return dict(_derived_schema_cache.get_or_compute(key, compute))


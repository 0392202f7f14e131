"""
Conversion between attribute value trees and records.

Decoding goes through an intermediate wire-name mapping:

    Object value --object_to_mapping--> {wire_name: python value} --build_record--> record

Encoding walks a record's flattened fields and matches wire names against the
attributes of the target object type.

Decoding rules:

- Unknown attributes are skipped, so the field keeps its default or zero value
- Null attributes map to None
- Optional fields receive whatever was decoded
- Non-optional fields drop zero scalars (``''``, ``0``, ``0.0``) but keep
  booleans, so an explicit zero cannot be told apart from an unset field
- Dynamic values holding JSON text are parsed back into plain Python data

Encoding rules:

- None encodes to the Null of the target type
- Dynamic targets are serialized to JSON text and wrapped as a Dynamic string
- Record fields missing from the target object type are logged and skipped
  (or raise EncodeError under ``strict_fields``)
- Declared attributes the record does not provide are null-filled
"""

import collections.abc
import enum
import json
import logging
import typing
from typing import Any, Dict, List, Mapping, Optional

from attrstate.attr_types import (
    AttrType, BoolType, DynamicType, Float64Type, Int64Type, ListType, MapType,
    ObjectType, SetType, StringType, TupleType,
)
from attrstate.attr_values import (
    INT64_MAX, INT64_MIN, AttrValue, bool_value, dynamic_value, float64_value,
    int64_value, list_value, map_value, null_filled_object, null_value,
    set_value, string_value, tuple_value,
)
from attrstate.descriptor import find_field, field_values, unwrap_optional
from attrstate.errors import DecodeError, EncodeError
from attrstate.reconcile import reconcile
from attrstate.records import build_record, is_record, is_record_type, is_zero, to_plain
from attrstate.settings import get_converter_settings

logger = logging.getLogger(__name__)


# ============================================================================
# Decode
# ============================================================================

def object_to_mapping(obj: AttrValue, prototype: Optional[type] = None) -> Dict[str, Any]:
    """
    Convert an Object value to a wire-name mapping of plain Python values.

    Args:
        obj: A known Object value
        prototype: Record type used to find field types of nested values;
            None decodes without field information

    Raises:
        DecodeError: if ``obj`` is null or unknown, or an attribute cannot be decoded
    """
    if not obj.is_known():
        raise DecodeError(f"cannot decode a {obj.state.value} object")
    if not isinstance(obj.attr_type, ObjectType):
        raise DecodeError(f"expected an object value, got {obj.attr_type}")

    record_type = prototype if is_record_type(prototype) else None
    result: Dict[str, Any] = {}
    for key, value in obj.attributes().items():
        if value.is_null():
            result[key] = None
            continue
        if value.is_unknown():
            continue
        try:
            converted = attr_to_python(key, value, prototype)
        except DecodeError as err:
            raise DecodeError(f"error converting attribute '{key}': {err}") from err
        if converted is None:
            continue
        descriptor = find_field(record_type, key) if record_type is not None else None
        if descriptor is not None and descriptor.is_optional:
            result[key] = converted
        elif isinstance(converted, bool) or not is_zero(converted):
            result[key] = converted
    return result


def _descriptor_type(prototype: Optional[type], key: str) -> Any:
    if not key or not is_record_type(prototype):
        return None
    descriptor = find_field(prototype, key)
    return descriptor.value_type if descriptor is not None else None


def _element_prototypes(py_type: Any) -> List[Any]:
    """Element types declared by a container annotation (value type for mappings)."""
    py_type = unwrap_optional(py_type)
    args = list(typing.get_args(py_type))
    if typing.get_origin(py_type) in (dict, collections.abc.Mapping, collections.abc.MutableMapping):
        return args[1:]
    return [a for a in args if a is not Ellipsis]


def attr_to_python(key: str, value: AttrValue, prototype: Optional[Any] = None) -> Any:
    """
    Convert one known attribute value to plain Python data.

    ``prototype`` is the record type that owns ``key``; when ``key`` is empty
    (container elements) ``prototype`` is the element type itself.
    """
    if not value.is_known():
        return None
    attr_type = value.attr_type

    if attr_type.is_scalar():
        return value.value

    # Elements carry their own type as prototype; named attributes look up their field.
    context = prototype if not key else _descriptor_type(prototype, key)

    if isinstance(attr_type, DynamicType):
        underlying = value.underlying()
        if not underlying.is_known():
            return None
        if isinstance(underlying.attr_type, StringType):
            try:
                return json.loads(underlying.value)
            except json.JSONDecodeError as err:
                raise DecodeError(f"failed to parse dynamic JSON value: {err}") from err
        return attr_to_python(key, underlying, prototype)

    if isinstance(attr_type, ObjectType):
        return object_to_mapping(value, context if is_record_type(context) else None)

    if isinstance(attr_type, MapType):
        elem_types = _element_prototypes(context)
        elem_proto = elem_types[0] if elem_types else None
        return {k: attr_to_python('', e, unwrap_optional(elem_proto)) if e.is_known() else None
                for k, e in value.items().items()}

    if isinstance(attr_type, (ListType, SetType, TupleType)):
        elem_types = _element_prototypes(context)
        result = []
        for index, element in enumerate(value.elements()):
            if len(elem_types) > 1 and isinstance(attr_type, TupleType):
                elem_proto = elem_types[index] if index < len(elem_types) else None
            else:
                elem_proto = elem_types[0] if elem_types else None
            result.append(attr_to_python('', element, unwrap_optional(elem_proto)) if element.is_known() else None)
        return result

    raise DecodeError(f"unsupported attribute type {attr_type}")


def decode(obj: AttrValue, record_type: type) -> Any:
    """
    Decode an Object value into a new record of ``record_type``.

    Passing ``dict`` as the record type returns the intermediate wire-name
    mapping instead of a record.

    Raises:
        DecodeError: if the object is null/unknown or an attribute does not
            fit the declared field type
    """
    mapping = object_to_mapping(obj, record_type)
    if record_type is dict:
        return mapping
    return build_record(record_type, mapping)


def decode_plan_and_state(plan: AttrValue, state: AttrValue, plan_type: type,
                          state_type: Optional[type] = None) -> Any:
    """Decode plan and prior state and reconcile them into one ``plan_type`` record."""
    state_type = state_type or plan_type
    plan_record = decode(plan, plan_type)
    state_record = decode(state, state_type)
    return reconcile(plan_record, state_record, target_type=plan_type)


# ============================================================================
# Encode
# ============================================================================

def _json_text(value: Any) -> str:
    settings = get_converter_settings()
    try:
        return json.dumps(
            to_plain(value),
            sort_keys=settings.sort_dynamic_keys,
            separators=settings.dynamic_separators,
        )
    except (TypeError, ValueError) as err:
        raise EncodeError(f"value is not JSON serializable: {err}") from err


def encode(value: Any, attr_type: AttrType) -> AttrValue:
    """
    Encode a Python value as an attribute value of ``attr_type``.

    Raises:
        EncodeError: if the value does not fit the type (wrong kind, int64
            overflow, tuple length mismatch, unserializable dynamic value)
    """
    if value is None:
        return null_value(attr_type)
    if isinstance(value, enum.Enum) and not isinstance(attr_type, DynamicType):
        value = value.value

    if isinstance(attr_type, DynamicType):
        return dynamic_value(string_value(_json_text(value)))

    if isinstance(attr_type, StringType):
        if not isinstance(value, str):
            raise EncodeError(f"expected str for {attr_type}, got {type(value).__name__}")
        return string_value(value)

    if isinstance(attr_type, BoolType):
        if not isinstance(value, bool):
            raise EncodeError(f"expected bool for {attr_type}, got {type(value).__name__}")
        return bool_value(value)

    if isinstance(attr_type, Int64Type):
        if isinstance(value, bool) or not isinstance(value, int):
            raise EncodeError(f"expected int for {attr_type}, got {type(value).__name__}")
        if not INT64_MIN <= value <= INT64_MAX:
            raise EncodeError(f"value {value} overflows int64")
        return int64_value(value)

    if isinstance(attr_type, Float64Type):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise EncodeError(f"expected a number for {attr_type}, got {type(value).__name__}")
        return float64_value(value)

    if isinstance(attr_type, ObjectType):
        return null_filled_object(attr_type, encode_attributes(value, attr_type))

    if isinstance(attr_type, MapType):
        if not isinstance(value, collections.abc.Mapping):
            raise EncodeError(f"expected a mapping for {attr_type}, got {type(value).__name__}")
        return map_value(attr_type.elem_type, {
            str(k): _encode_element(v, attr_type.elem_type, f'["{k}"]') for k, v in value.items()
        })

    if isinstance(attr_type, (ListType, SetType)):
        items = _as_items(value, attr_type)
        elements = [_encode_element(v, attr_type.elem_type, f'[{i}]') for i, v in enumerate(items)]
        if isinstance(attr_type, SetType):
            return set_value(attr_type.elem_type, list(dict.fromkeys(elements)))
        return list_value(attr_type.elem_type, elements)

    if isinstance(attr_type, TupleType):
        items = _as_items(value, attr_type)
        if len(items) != len(attr_type.elem_types):
            raise EncodeError(f"{attr_type} expects {len(attr_type.elem_types)} elements, got {len(items)}")
        return tuple_value(attr_type.elem_types, [
            _encode_element(v, t, f'[{i}]') for i, (v, t) in enumerate(zip(items, attr_type.elem_types))
        ])

    raise EncodeError(f"unsupported attribute type {attr_type!r}")


def _as_items(value: Any, attr_type: AttrType) -> list:
    if isinstance(value, (str, bytes, collections.abc.Mapping)) or not isinstance(value, collections.abc.Iterable):
        raise EncodeError(f"expected a sequence for {attr_type}, got {type(value).__name__}")
    return list(value)


def _encode_element(value: Any, attr_type: AttrType, where: str) -> AttrValue:
    try:
        return encode(value, attr_type)
    except EncodeError as err:
        raise EncodeError(f"{where}: {err}") from err


def _record_pairs(value: Any):
    if is_record(value):
        for descriptor, field_value in field_values(value):
            yield descriptor.wire_name, field_value
    elif isinstance(value, collections.abc.Mapping):
        yield from ((str(k), v) for k, v in value.items())
    else:
        raise EncodeError(f"expected a record or mapping, got {type(value).__name__}")


def encode_attributes(value: Any, object_type: ObjectType) -> Dict[str, AttrValue]:
    """
    Encode the fields of a record (or mapping) against an object type.

    Returns only the attributes the value provides; null-filling is left to
    the caller.
    """
    settings = get_converter_settings()
    declared = object_type.attr_types
    attributes: Dict[str, AttrValue] = {}
    for wire_name, field_value in _record_pairs(value):
        attr_type = declared.get(wire_name)
        if attr_type is None:
            if settings.strict_fields:
                raise EncodeError(f"field '{wire_name}' not found in schema attributes")
            logger.warning(f"Field '{wire_name}' not found in schema attributes")
            continue
        try:
            attributes[wire_name] = encode(field_value, attr_type)
        except EncodeError as err:
            raise EncodeError(f"field '{wire_name}': {err}") from err
    return attributes


def record_to_state_object(record: Any, schema_attrs: Mapping[str, AttrType],
                           state: Optional[AttrValue] = None,
                           plan: Optional[AttrValue] = None) -> AttrValue:
    """
    Encode an action result as a full state object.

    Attributes the record does not provide are taken from the plan, then from
    the prior state, and are null otherwise.
    """
    object_type = ObjectType(schema_attrs)
    attributes = encode_attributes(record, object_type) if record is not None else {}
    plan_attrs = plan.attributes() if plan is not None and plan.is_known() else {}
    state_attrs = state.attributes() if state is not None and state.is_known() else {}
    for name, attr_type in object_type.attr_types.items():
        if name in attributes:
            continue
        for source in (plan_attrs, state_attrs):
            candidate = source.get(name)
            if candidate is not None and candidate.attr_type == attr_type:
                attributes[name] = candidate
                break
    return null_filled_object(object_type, attributes)

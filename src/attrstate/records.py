"""
Record construction, zero values and copying.

Records are plain dataclass instances. This module builds them from the
intermediate wire-name mappings produced by decoding, answers whether a value
is the zero value of its type, and deep-copies values so that cached
prototypes can be handed out as independent instances.

Zero values:

- ``str`` -> ``''``, ``int`` -> ``0``, ``float`` -> ``0.0``, ``bool`` -> ``False``
- ``Optional[X]``, containers and ``Any`` -> ``None``
- a nested dataclass -> a zero record of that dataclass

A field with a dataclass default (or default_factory) starts from that
default instead.
"""

import collections.abc
import copy
import dataclasses
import enum
import logging
import typing
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from attrstate.descriptor import (
    field_values, get_path, is_ignored, is_optional_type, is_private, is_squashed,
    record_type_hints, squashed_record_type, unwrap_optional, wire_name_for,
)
from attrstate.errors import DecodeError

logger = logging.getLogger(__name__)

_SEQUENCE_ORIGINS = (list, collections.abc.Sequence, collections.abc.MutableSequence)
_SET_ORIGINS = (set, frozenset, collections.abc.Set, collections.abc.MutableSet)
_MAPPING_ORIGINS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)


def deep_copy(value: Any) -> Any:
    """
    Structurally equal copy of ``value`` sharing no mutable storage.

    Attribute types and attribute values are immutable and are shared rather
    than copied.
    """
    return copy.deepcopy(value)


def is_record_type(py_type: Any) -> bool:
    return isinstance(py_type, type) and dataclasses.is_dataclass(py_type)


def is_record(value: Any) -> bool:
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


# ============================================================================
# Zero values
# ============================================================================

def zero_value(py_type: Any) -> Any:
    """Zero value of a declared field type."""
    if is_optional_type(py_type):
        return None
    if py_type is bool:
        return False
    if isinstance(py_type, type) and issubclass(py_type, enum.Enum):
        return None
    if py_type is str:
        return ''
    if py_type is int:
        return 0
    if py_type is float:
        return 0.0
    if is_record_type(py_type):
        return zero_record(py_type)
    return None


def _field_default(field: dataclasses.Field, hint: Any) -> Any:
    if field.default is not dataclasses.MISSING:
        return deep_copy(field.default)
    if field.default_factory is not dataclasses.MISSING:
        return field.default_factory()
    return zero_value(hint)


def zero_record(record_type: type) -> Any:
    """
    Instance of ``record_type`` with every field at its default or zero value.

    Squashed sub-records are always instantiated so that their fields can be
    assigned through the parent.
    """
    hints = record_type_hints(record_type)
    kwargs = {}
    for field in dataclasses.fields(record_type):
        if not field.init:
            continue
        hint = hints.get(field.name, field.type)
        if is_squashed(field) and not is_ignored(field):
            if field.default is dataclasses.MISSING and field.default_factory is dataclasses.MISSING:
                kwargs[field.name] = zero_record(squashed_record_type(record_type, field))
                continue
        kwargs[field.name] = _field_default(field, hint)
    return record_type(**kwargs)


def is_zero(value: Any) -> bool:
    """
    True when ``value`` is the zero value of its type.

    None is zero. Containers count as zero only when they are None, so an
    empty list is a real value. A record is zero when all of its fields are.
    """
    if value is None:
        return True
    if isinstance(value, bool):
        return value is False
    if isinstance(value, (int, float)):
        return value == 0
    if isinstance(value, str):
        return value == ''
    if is_record(value):
        return all(is_zero(getattr(value, f.name)) for f in dataclasses.fields(value))
    return False


# ============================================================================
# Building records from wire mappings
# ============================================================================

def set_path(record: Any, path: Tuple[str, ...], value: Any) -> None:
    """Assign through an attribute chain; works on frozen dataclasses."""
    owner = get_path(record, path[:-1])
    if owner is None:
        raise AttributeError(f"cannot assign '{'.'.join(path)}': intermediate record is None")
    object.__setattr__(owner, path[-1], value)


def build_record(record_type: type, mapping: Mapping[str, Any]) -> Any:
    """
    Construct a record from a wire-name mapping.

    Keys absent from the mapping leave the field at its default or zero value.
    A key mapped to None sets an Optional field to None and resets any other
    field to its default.

    Raises:
        DecodeError: if a value cannot be coerced to the declared field type
    """
    return update_record(zero_record(record_type), mapping)


def update_record(record: Any, mapping: Mapping[str, Any]) -> Any:
    """Assign wire-name entries of ``mapping`` onto an existing record in place."""
    record_type = type(record)
    hints = record_type_hints(record_type)
    for field in dataclasses.fields(record_type):
        if is_private(field) or is_ignored(field):
            continue
        if is_squashed(field):
            sub_record = getattr(record, field.name)
            if sub_record is None:
                sub_record = zero_record(squashed_record_type(record_type, field))
            object.__setattr__(record, field.name, update_record(sub_record, mapping))
            continue

        key = wire_name_for(field)
        if key not in mapping:
            continue
        hint = hints.get(field.name, field.type)
        raw = mapping[key]
        if raw is None:
            value = None if is_optional_type(hint) else _field_default(field, hint)
        else:
            try:
                value = coerce(raw, hint)
            except (TypeError, ValueError, DecodeError) as err:
                raise DecodeError(f"'{key}': {err}") from err
        object.__setattr__(record, field.name, value)
    return record


def coerce(value: Any, py_type: Any) -> Any:
    """
    Convert a generic decoded value to ``py_type``.

    Raises:
        TypeError: if the value has the wrong shape for the declared type
        ValueError: if the value cannot represent the declared type
    """
    if value is None:
        return None
    py_type = unwrap_optional(py_type)
    if py_type is Any or py_type is object:
        return value

    origin = typing.get_origin(py_type)
    args = typing.get_args(py_type)

    if origin is Union:
        return value

    if is_record_type(py_type):
        if isinstance(value, py_type):
            return deep_copy(value)
        if not isinstance(value, collections.abc.Mapping):
            raise TypeError(f"expected a mapping for {py_type.__name__}, got {type(value).__name__}")
        return build_record(py_type, value)

    if origin is tuple:
        items = _as_sequence(value)
        if len(args) == 2 and args[1] is Ellipsis:
            return tuple(coerce(v, args[0]) for v in items)
        if args and len(args) != len(items):
            raise ValueError(f"expected {len(args)} elements, got {len(items)}")
        if not args:
            return tuple(items)
        return tuple(coerce(v, t) for v, t in zip(items, args))

    if origin in _SET_ORIGINS or py_type in (set, frozenset):
        elem = args[0] if args else Any
        items = {coerce(v, elem) for v in _as_sequence(value)}
        return frozenset(items) if origin is frozenset or py_type is frozenset else items

    if origin in _SEQUENCE_ORIGINS or py_type is list:
        elem = args[0] if args else Any
        return [coerce(v, elem) for v in _as_sequence(value)]

    if origin in _MAPPING_ORIGINS or py_type is dict:
        if not isinstance(value, collections.abc.Mapping):
            raise TypeError(f"expected a mapping, got {type(value).__name__}")
        elem = args[1] if len(args) == 2 else Any
        return {str(k): coerce(v, elem) for k, v in value.items()}

    if isinstance(py_type, type) and issubclass(py_type, enum.Enum):
        return py_type(value)

    if py_type is bool:
        if not isinstance(value, bool):
            raise TypeError(f"expected type 'bool', got '{type(value).__name__}'")
        return value

    if py_type is int:
        if isinstance(value, bool):
            raise TypeError("expected type 'int', got 'bool'")
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if not isinstance(value, int):
            raise TypeError(f"expected type 'int', got '{type(value).__name__}'")
        return value

    if py_type is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"expected type 'float', got '{type(value).__name__}'")
        return float(value)

    if py_type is str:
        if not isinstance(value, str):
            raise TypeError(f"expected type 'str', got '{type(value).__name__}'")
        return value

    return value


def _as_sequence(value: Any) -> list:
    if isinstance(value, (str, bytes)) or not isinstance(value, collections.abc.Iterable) \
            or isinstance(value, collections.abc.Mapping):
        raise TypeError(f"expected a sequence, got {type(value).__name__}")
    return list(value)


# ============================================================================
# Path lookup
# ============================================================================

def schema_by_path(value: Any, path: str) -> Any:
    """
    Walk a dotted path through dicts and records.

    Dict steps look keys up directly. Record steps match the wire name first
    and then the Python field name.

    Args:
        value: Root dict or record
        path: Dotted path such as ``"config.network"``; an empty path returns ``value``

    Raises:
        KeyError: if a step names a missing key or field
        TypeError: if a step reaches a value that is neither a dict nor a record
    """
    current = value
    if not path:
        return current
    for step in path.split('.'):
        if isinstance(current, collections.abc.Mapping):
            if step not in current:
                raise KeyError(f"key '{step}' not found in mapping")
            current = current[step]
        elif is_record(current):
            current = _record_step(current, step)
        else:
            raise TypeError(f"cannot look up '{step}' in {type(current).__name__}")
    return current


def _record_step(record: Any, step: str) -> Any:
    for descriptor, field_value in field_values(record):
        if descriptor.wire_name == step:
            return field_value
    if any(f.name == step for f in dataclasses.fields(record)):
        return getattr(record, step)
    raise KeyError(f"field '{step}' not found in {type(record).__name__}")


def as_plain_mapping(record: Any) -> Optional[Dict[str, Any]]:
    """Wire-name mapping of a record for JSON serialization, recursively."""
    if record is None:
        return None
    return {descriptor.wire_name: to_plain(v) for descriptor, v in field_values(record)}


def to_plain(value: Any) -> Any:
    """Convert records, enums and sets inside ``value`` to JSON-ready data."""
    if is_record(value):
        return as_plain_mapping(value)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, collections.abc.Mapping):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_plain(v) for v in value]
    return value

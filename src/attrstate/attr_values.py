"""
Tri-state attribute values.

An AttrValue is either Null (explicitly absent), Unknown (to be computed
later) or Known. Known values hold:

- a Python scalar for String, Bool, Int64 and Float64
- a tuple of AttrValues for List, Set and Tuple
- a dict of AttrValues for Map and Object
- a single AttrValue for Dynamic (the wrapped underlying value)

Values are immutable. Accessors hand out copies of the container payloads, so
holding on to a value never lets a caller alter another caller's tree.

Constructor helpers mirror the attribute types:

    >>> name = string_value('web')
    >>> tags = map_value(STRING, {'env': string_value('prod')})
    >>> obj = object_value({'name': STRING, 'tags': MapType(STRING)},
    ...                    {'name': name, 'tags': tags})
"""

import enum
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from attrstate.attr_types import (
    AttrType, BoolType, DynamicType, Float64Type, Int64Type, ListType, MapType,
    ObjectType, SetType, StringType, TupleType,
)

logger = logging.getLogger(__name__)

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


class ValueState(enum.Enum):
    NULL = 'null'
    UNKNOWN = 'unknown'
    KNOWN = 'known'


class AttrValue:
    """A typed attribute value in one of three states."""

    __slots__ = ('attr_type', 'state', '_payload')

    def __init__(self, attr_type: AttrType, state: ValueState = ValueState.KNOWN, payload: Any = None):
        if not isinstance(attr_type, AttrType):
            raise TypeError(f"attr_type must be an AttrType, got {type(attr_type).__name__}")
        object.__setattr__(self, 'attr_type', attr_type)
        object.__setattr__(self, 'state', state)
        if state is ValueState.KNOWN:
            payload = _validated_payload(attr_type, payload)
        else:
            payload = None
        object.__setattr__(self, '_payload', payload)

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __deepcopy__(self, memo):
        return self

    def __copy__(self):
        return self

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def is_null(self) -> bool:
        return self.state is ValueState.NULL

    def is_unknown(self) -> bool:
        return self.state is ValueState.UNKNOWN

    def is_known(self) -> bool:
        return self.state is ValueState.KNOWN

    # ------------------------------------------------------------------
    # Payload access
    # ------------------------------------------------------------------

    @property
    def value(self) -> Any:
        """Scalar payload, or None when the value is not known."""
        if not self.is_known():
            return None
        if isinstance(self._payload, dict):
            return dict(self._payload)
        return self._payload

    def elements(self) -> List['AttrValue']:
        """Elements of a known List, Set or Tuple."""
        if not isinstance(self.attr_type, (ListType, SetType, TupleType)):
            raise TypeError(f"{self.attr_type} has no elements")
        if not self.is_known():
            return []
        return list(self._payload)

    def items(self) -> Dict[str, 'AttrValue']:
        """Entries of a known Map."""
        if not isinstance(self.attr_type, MapType):
            raise TypeError(f"{self.attr_type} has no map entries")
        if not self.is_known():
            return {}
        return dict(self._payload)

    def attributes(self) -> Dict[str, 'AttrValue']:
        """Attributes of a known Object."""
        if not isinstance(self.attr_type, ObjectType):
            raise TypeError(f"{self.attr_type} has no attributes")
        if not self.is_known():
            return {}
        return dict(self._payload)

    def underlying(self) -> 'AttrValue':
        """The value wrapped by a known Dynamic."""
        if not isinstance(self.attr_type, DynamicType):
            raise TypeError(f"{self.attr_type} is not dynamic")
        return self._payload

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def _comparable(self):
        payload = self._payload
        if not self.is_known():
            return None
        if isinstance(self.attr_type, SetType):
            return frozenset(payload)
        if isinstance(payload, dict):
            return tuple(sorted(payload.items(), key=lambda item: item[0]))
        return payload

    def __eq__(self, other):
        if not isinstance(other, AttrValue):
            return NotImplemented
        if self.attr_type != other.attr_type or self.state is not other.state:
            return False
        if isinstance(self.attr_type, (MapType, ObjectType)):
            return self._payload == other._payload
        return self._comparable() == other._comparable()

    def __hash__(self):
        return hash((self.attr_type, self.state, self._comparable()))

    def __repr__(self) -> str:
        if self.is_null():
            return f'<null {self.attr_type}>'
        if self.is_unknown():
            return f'<unknown {self.attr_type}>'
        return f'<{self.attr_type} {self._payload!r}>'


# ============================================================================
# Validation
# ============================================================================

def _check_element(expected: AttrType, element: Any, where: str) -> 'AttrValue':
    if not isinstance(element, AttrValue):
        raise ValueError(f"{where}: expected AttrValue, got {type(element).__name__}")
    if element.attr_type != expected:
        raise ValueError(f"{where}: expected {expected}, got {element.attr_type}")
    return element


def _validated_payload(attr_type: AttrType, payload: Any) -> Any:
    if isinstance(attr_type, StringType):
        if not isinstance(payload, str):
            raise ValueError(f"String value must be str, got {type(payload).__name__}")
        return payload

    if isinstance(attr_type, BoolType):
        if not isinstance(payload, bool):
            raise ValueError(f"Bool value must be bool, got {type(payload).__name__}")
        return payload

    if isinstance(attr_type, Int64Type):
        if isinstance(payload, bool) or not isinstance(payload, int):
            raise ValueError(f"Int64 value must be int, got {type(payload).__name__}")
        if not INT64_MIN <= payload <= INT64_MAX:
            raise ValueError(f"Int64 value {payload} is out of range")
        return payload

    if isinstance(attr_type, Float64Type):
        if isinstance(payload, bool) or not isinstance(payload, (int, float)):
            raise ValueError(f"Float64 value must be a number, got {type(payload).__name__}")
        return float(payload)

    if isinstance(attr_type, DynamicType):
        if not isinstance(payload, AttrValue):
            raise ValueError("Dynamic value must wrap an AttrValue")
        if isinstance(payload.attr_type, DynamicType):
            raise ValueError("Dynamic value cannot wrap another Dynamic value")
        return payload

    if isinstance(attr_type, ListType):
        return tuple(_check_element(attr_type.elem_type, e, f"{attr_type}[{i}]")
                     for i, e in enumerate(payload))

    if isinstance(attr_type, SetType):
        elements = tuple(_check_element(attr_type.elem_type, e, f"{attr_type}[{i}]")
                         for i, e in enumerate(payload))
        if len(set(elements)) != len(elements):
            raise ValueError(f"{attr_type} contains duplicate elements")
        return elements

    if isinstance(attr_type, TupleType):
        elements = tuple(payload)
        if len(elements) != len(attr_type.elem_types):
            raise ValueError(
                f"{attr_type} expects {len(attr_type.elem_types)} elements, got {len(elements)}"
            )
        return tuple(_check_element(t, e, f"{attr_type}[{i}]")
                     for i, (t, e) in enumerate(zip(attr_type.elem_types, elements)))

    if isinstance(attr_type, MapType):
        result = {}
        for key, element in dict(payload).items():
            if not isinstance(key, str):
                raise ValueError(f"{attr_type} keys must be str, got {type(key).__name__}")
            result[key] = _check_element(attr_type.elem_type, element, f'{attr_type}["{key}"]')
        return result

    if isinstance(attr_type, ObjectType):
        attrs = dict(payload)
        declared = attr_type.attr_types
        missing = [name for name in declared if name not in attrs]
        extra = [name for name in attrs if name not in declared]
        if missing:
            raise ValueError(f"object is missing attributes: {', '.join(sorted(missing))}")
        if extra:
            raise ValueError(f"object has undeclared attributes: {', '.join(sorted(extra))}")
        return {name: _check_element(declared[name], attrs[name], name) for name in declared}

    raise ValueError(f"unsupported attribute type: {attr_type!r}")


# ============================================================================
# Constructors
# ============================================================================

def null_value(attr_type: AttrType) -> AttrValue:
    """The Null value of ``attr_type``."""
    return AttrValue(attr_type, ValueState.NULL)


def unknown_value(attr_type: AttrType) -> AttrValue:
    return AttrValue(attr_type, ValueState.UNKNOWN)


def string_value(value: str) -> AttrValue:
    return AttrValue(StringType(), payload=value)


def bool_value(value: bool) -> AttrValue:
    return AttrValue(BoolType(), payload=value)


def int64_value(value: int) -> AttrValue:
    return AttrValue(Int64Type(), payload=value)


def float64_value(value: float) -> AttrValue:
    return AttrValue(Float64Type(), payload=value)


def list_value(elem_type: AttrType, elements: Iterable[AttrValue]) -> AttrValue:
    return AttrValue(ListType(elem_type), payload=list(elements))


def set_value(elem_type: AttrType, elements: Iterable[AttrValue]) -> AttrValue:
    return AttrValue(SetType(elem_type), payload=list(elements))


def tuple_value(elem_types: Sequence[AttrType], elements: Iterable[AttrValue]) -> AttrValue:
    return AttrValue(TupleType(tuple(elem_types)), payload=list(elements))


def map_value(elem_type: AttrType, entries: Mapping[str, AttrValue]) -> AttrValue:
    return AttrValue(MapType(elem_type), payload=dict(entries))


def object_value(attr_types: Mapping[str, AttrType], attributes: Mapping[str, AttrValue]) -> AttrValue:
    return AttrValue(ObjectType(attr_types), payload=dict(attributes))


def dynamic_value(underlying: AttrValue) -> AttrValue:
    return AttrValue(DynamicType(), payload=underlying)


def null_filled_object(object_type: ObjectType, attributes: Mapping[str, AttrValue]) -> AttrValue:
    """Build an Object keeping only declared attributes and nulling the rest."""
    declared = object_type.attr_types
    attrs = {}
    for name, attr_type in declared.items():
        value = attributes.get(name)
        attrs[name] = value if value is not None else null_value(attr_type)
    dropped = [name for name in attributes if name not in declared]
    if dropped:
        logger.debug(f"Dropping undeclared attributes: {dropped}")
    return AttrValue(object_type, payload=attrs)


# ============================================================================
# Rendering
# ============================================================================

def format_value(value: Optional[AttrValue]) -> str:
    """Render a value for human-facing messages."""
    if value is None or value.is_null():
        return 'null'
    if value.is_unknown():
        return '(known after apply)'
    attr_type = value.attr_type
    if isinstance(attr_type, BoolType):
        return 'true' if value.value else 'false'
    if attr_type.is_scalar():
        return str(value.value)
    if isinstance(attr_type, DynamicType):
        return format_value(value.underlying())
    if isinstance(attr_type, (ListType, SetType, TupleType)):
        return '[' + ', '.join(format_value(e) for e in value.elements()) + ']'
    entries = value.items() if isinstance(attr_type, MapType) else value.attributes()
    return '{' + ', '.join(f'{k}={format_value(v)}' for k, v in entries.items()) + '}'


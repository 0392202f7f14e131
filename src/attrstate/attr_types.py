"""
Wire-level attribute types.

Every attribute value carries one of these types. Types are immutable and
hashable so they can be shared between values, used as cache keys and
compared structurally:

    >>> ListType(STRING) == ListType(StringType())
    True
    >>> ObjectType({'name': STRING}) == ObjectType({'name': STRING})
    True
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Tuple


class AttrType:
    """Base class for attribute types."""

    kind: str = ''

    def is_scalar(self) -> bool:
        return False

    def is_collection(self) -> bool:
        """List, Set and Map carry a single element type."""
        return False

    def __deepcopy__(self, memo):
        return self

    def __copy__(self):
        return self


@dataclass(frozen=True)
class StringType(AttrType):
    kind = 'string'

    def is_scalar(self) -> bool:
        return True

    def __str__(self) -> str:
        return 'String'


@dataclass(frozen=True)
class BoolType(AttrType):
    kind = 'bool'

    def is_scalar(self) -> bool:
        return True

    def __str__(self) -> str:
        return 'Bool'


@dataclass(frozen=True)
class Int64Type(AttrType):
    kind = 'int64'

    def is_scalar(self) -> bool:
        return True

    def __str__(self) -> str:
        return 'Int64'


@dataclass(frozen=True)
class Float64Type(AttrType):
    kind = 'float64'

    def is_scalar(self) -> bool:
        return True

    def __str__(self) -> str:
        return 'Float64'


@dataclass(frozen=True)
class DynamicType(AttrType):
    """A value whose concrete type is only known at runtime."""
    kind = 'dynamic'

    def __str__(self) -> str:
        return 'Dynamic'


@dataclass(frozen=True)
class ListType(AttrType):
    elem_type: AttrType
    kind = 'list'

    def is_collection(self) -> bool:
        return True

    def __str__(self) -> str:
        return f'List[{self.elem_type}]'


@dataclass(frozen=True)
class SetType(AttrType):
    elem_type: AttrType
    kind = 'set'

    def is_collection(self) -> bool:
        return True

    def __str__(self) -> str:
        return f'Set[{self.elem_type}]'


@dataclass(frozen=True)
class MapType(AttrType):
    """String-keyed map with a single element type."""
    elem_type: AttrType
    kind = 'map'

    def is_collection(self) -> bool:
        return True

    def __str__(self) -> str:
        return f'Map[{self.elem_type}]'


@dataclass(frozen=True)
class TupleType(AttrType):
    elem_types: Tuple[AttrType, ...]
    kind = 'tuple'

    def __post_init__(self):
        object.__setattr__(self, 'elem_types', tuple(self.elem_types))

    def __str__(self) -> str:
        return f"Tuple[{', '.join(str(t) for t in self.elem_types)}]"


@dataclass(frozen=True)
class ObjectType(AttrType):
    """Fixed set of named attributes, each with its own type."""
    attr_types: Mapping[str, AttrType] = field(default_factory=dict)
    kind = 'object'

    def __post_init__(self):
        object.__setattr__(self, 'attr_types', MappingProxyType(dict(self.attr_types)))

    def __eq__(self, other):
        if not isinstance(other, ObjectType):
            return NotImplemented
        return dict(self.attr_types) == dict(other.attr_types)

    def __hash__(self):
        return hash(('object', tuple(sorted(self.attr_types.items()))))

    def __repr__(self) -> str:
        return f'ObjectType({dict(self.attr_types)!r})'

    def __str__(self) -> str:
        inner = ', '.join(f'{name}: {t}' for name, t in self.attr_types.items())
        return f'Object{{{inner}}}'


STRING = StringType()
BOOL = BoolType()
INT64 = Int64Type()
FLOAT64 = Float64Type()
DYNAMIC = DynamicType()

"""
Field descriptors for dataclass records.

A record type is flattened into an ordered list of FieldDescriptors. Fields of
squashed sub-records are lifted into the parent as if declared there, ignored
and private fields are left out, and each remaining field gets a wire name:

    @dataclass
    class Common:
        region: str = ''

    @dataclass
    class Network:
        common: Common = attr_field(squash=True, default_factory=Common)
        networkName: str = attr_field(mapping='name', required=True, default='')
        internal_id: str = attr_field(ignore=True, default='')

    [d.wire_name for d in resolve_fields(Network)]  # ['region', 'name']

Wire-name precedence is ``mapping`` > ``flag`` > ``json`` > the field name,
each converted to lower snake case. Descriptors are computed once per type and
cached for the lifetime of the process.
"""

import dataclasses
import logging
import re
import sys
import typing
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from attrstate.cache import CacheKey, TypeCache
from attrstate.errors import SchemaConflictError, UnsupportedTypeError

logger = logging.getLogger(__name__)

_descriptor_cache: TypeCache = TypeCache('field_descriptors')
_hints_cache: TypeCache = TypeCache('type_hints')

SQUASH_TAG = 'squash'
IGNORE_TAG = '-'


@dataclass(frozen=True)
class FieldDescriptor:
    """One wire-visible field of a record type, after flattening."""
    name: str
    wire_name: str
    declared_type: Any
    path: Tuple[str, ...]
    is_required: bool = False
    is_sensitive: bool = False
    is_force_replace: bool = False
    is_immutable: bool = False
    choices: Tuple[str, ...] = ()
    default_literal: Optional[str] = None
    is_optional: bool = False
    description: str = ''

    @property
    def value_type(self) -> Any:
        """Declared type with ``Optional`` removed."""
        return unwrap_optional(self.declared_type)


# ============================================================================
# Metadata helpers
# ============================================================================

def attr_field(*, mapping: Optional[str] = None, flag: Optional[str] = None,
               json: Optional[str] = None, desc: str = '', required: bool = False,
               validate: Optional[str] = None, sensitive: bool = False,
               choices: Union[str, List[str], None] = None, schema_default: Any = None,
               forcenew: bool = False, immutable: bool = False, squash: bool = False,
               ignore: bool = False, **field_kwargs) -> Any:
    """
    Declare a record field with attribute metadata.

    Thin wrapper over ``dataclasses.field``: the keyword arguments that are not
    attribute metadata (``default``, ``default_factory``, ``repr`` ...) are
    passed through unchanged.

    Args:
        mapping: Primary wire name (``'-'`` ignores the field)
        flag: Wire name used when no mapping name is given
        json: Wire name used when neither mapping nor flag is given
        desc: Attribute description
        required: Attribute must be supplied in configuration
        validate: Validation rule string; ``'required'`` in it marks the field required
        sensitive: Attribute value is hidden from output
        choices: Allowed values, as a list or comma-separated string
        schema_default: Literal default applied when configuration omits the attribute
        forcenew: Changing the attribute replaces the resource
        immutable: Changing the attribute after creation is rejected
        squash: Lift the fields of this sub-record into the parent
        ignore: Leave the field out of the schema entirely
    """
    metadata = dict(field_kwargs.pop('metadata', None) or {})
    if ignore:
        metadata['mapping'] = IGNORE_TAG
    elif squash:
        metadata['mapping'] = f"{mapping or ''},{SQUASH_TAG}"
    elif mapping:
        metadata['mapping'] = mapping
    if flag:
        metadata['flag'] = flag
    if json:
        metadata['json'] = json
    if desc:
        metadata['desc'] = desc
    if required:
        metadata['required'] = True
    if validate:
        metadata['validate'] = validate
    if sensitive:
        metadata['sensitive'] = True
    if choices:
        metadata['choices'] = choices
    if schema_default is not None:
        metadata['default'] = schema_default
    if forcenew:
        metadata['forcenew'] = True
    if immutable:
        metadata['immutable'] = True
    return dataclasses.field(metadata=metadata, **field_kwargs)


def _tag_name(value: Any) -> str:
    if not value:
        return ''
    return str(value).split(',')[0].strip()


def _truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return 'true' in value.lower()
    return bool(value)


def _literal(value: Any) -> Optional[str]:
    """Normalize a ``default`` metadata entry to its literal text."""
    if value is None:
        return None
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (list, tuple, set, frozenset)):
        return ','.join(_literal(v) for v in value)
    return str(value)


def _choices(value: Any) -> Tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return tuple(c.strip() for c in value.split(',') if c.strip())
    return tuple(str(c) for c in value)


def is_squashed(field: dataclasses.Field) -> bool:
    mapping = field.metadata.get('mapping')
    if not mapping:
        return bool(field.metadata.get('squash'))
    return SQUASH_TAG in [part.strip() for part in str(mapping).split(',')[1:]]


def is_ignored(field: dataclasses.Field) -> bool:
    return str(field.metadata.get('mapping', '')).strip() == IGNORE_TAG


def is_private(field: dataclasses.Field) -> bool:
    return field.name.startswith('_')


def wire_name_for(field: dataclasses.Field) -> str:
    """Resolve the wire name of a single dataclass field."""
    meta = field.metadata
    for key in ('mapping', 'flag', 'json'):
        name = _tag_name(meta.get(key))
        if name and name != IGNORE_TAG:
            return to_snake(name)
    return to_snake(field.name)


_SEPARATORS = re.compile(r'[\s\-.]+')
_FIRST_CAP = re.compile(r'(.)([A-Z][a-z]+)')
_ALL_CAP = re.compile(r'([a-z0-9])([A-Z])')
_UNDERSCORES = re.compile(r'_+')


def to_snake(name: str) -> str:
    """
    Convert an identifier to lower snake case.

        >>> to_snake('userName'), to_snake('HTTPServer'), to_snake('user-id')
        ('user_name', 'http_server', 'user_id')
    """
    text = _SEPARATORS.sub('_', name.strip())
    text = _FIRST_CAP.sub(r'\1_\2', text)
    text = _ALL_CAP.sub(r'\1_\2', text)
    return _UNDERSCORES.sub('_', text).strip('_').lower()


# ============================================================================
# Type helpers
# ============================================================================

def is_optional_type(py_type: Any) -> bool:
    """True for ``Optional[X]`` (a Union that admits None)."""
    if typing.get_origin(py_type) is Union:
        return type(None) in typing.get_args(py_type)
    return False


def unwrap_optional(py_type: Any) -> Any:
    """``Optional[X]`` -> ``X``; other types are returned unchanged."""
    if typing.get_origin(py_type) is Union:
        args = [a for a in typing.get_args(py_type) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return py_type


def record_type_hints(record_type: type) -> Dict[str, Any]:
    """
    Resolved annotations of a dataclass, cached per type.

    When some annotation cannot be resolved (a string reference to a record
    defined inside a function, for instance), the fields are resolved one at a
    time and only the failing fields keep their raw annotation.
    """
    def compute():
        try:
            return typing.get_type_hints(record_type)
        except NameError as err:
            logger.debug(f"Unresolved annotations on {record_type.__name__} ({err}); resolving per field")
        return {f.name: _resolve_field_type(record_type, f) for f in dataclasses.fields(record_type)}
    return _hints_cache.get_or_compute(CacheKey.from_args(record_type), compute)


def _annotation_owner(record_type: type, name: str) -> type:
    for klass in record_type.__mro__:
        if name in vars(klass).get('__annotations__', {}):
            return klass
    return record_type


def _resolve_field_type(record_type: type, field: dataclasses.Field) -> Any:
    annotation = field.type
    if isinstance(annotation, typing.ForwardRef):
        annotation = annotation.__forward_arg__
    if not isinstance(annotation, str):
        return annotation

    owner = _annotation_owner(record_type, field.name)
    module = sys.modules.get(owner.__module__)
    globalns = dict(vars(module)) if module is not None else {}
    localns = dict(vars(owner))
    localns.setdefault(owner.__name__, owner)
    try:
        return eval(annotation, globalns, localns)
    except NameError as err:
        logger.warning(f"Cannot resolve type of field '{field.name}' of {record_type.__name__}: {err}")
        return annotation


def squashed_record_type(record_type: type, field: dataclasses.Field) -> type:
    inner = unwrap_optional(record_type_hints(record_type)[field.name])
    if not (isinstance(inner, type) and dataclasses.is_dataclass(inner)):
        raise UnsupportedTypeError(inner, f"squashed field '{field.name}' must be a dataclass")
    return inner


# ============================================================================
# Resolution
# ============================================================================

def resolve_fields(record_type: type) -> List[FieldDescriptor]:
    """
    Flattened, ordered field descriptors of a dataclass type.

    Args:
        record_type: A dataclass type

    Returns:
        A new list of descriptors (the cached list is never handed out)

    Raises:
        UnsupportedTypeError: if ``record_type`` is not a dataclass type
        SchemaConflictError: if two fields resolve to the same wire name
    """
    if not (isinstance(record_type, type) and dataclasses.is_dataclass(record_type)):
        raise UnsupportedTypeError(record_type, "expected a dataclass type")
    key = CacheKey.from_args(record_type)
    return list(_descriptor_cache.get_or_compute(key, lambda: _compute_descriptors(record_type)))


def _compute_descriptors(record_type: type) -> Tuple[FieldDescriptor, ...]:
    logger.debug(f"Resolving field descriptors for {record_type.__name__}")
    descriptors: List[FieldDescriptor] = []
    seen: Dict[str, str] = {}

    for descriptor in _walk_fields(record_type, ()):
        previous = seen.get(descriptor.wire_name)
        if previous is not None:
            raise SchemaConflictError(record_type, descriptor.wire_name, previous, '.'.join(descriptor.path))
        seen[descriptor.wire_name] = '.'.join(descriptor.path)
        descriptors.append(descriptor)
    return tuple(descriptors)


def _walk_fields(record_type: type, prefix: Tuple[str, ...]) -> Iterator[FieldDescriptor]:
    hints = record_type_hints(record_type)
    for field in dataclasses.fields(record_type):
        if is_private(field) or is_ignored(field):
            continue
        if is_squashed(field):
            yield from _walk_fields(squashed_record_type(record_type, field), prefix + (field.name,))
            continue

        meta = field.metadata
        declared = hints.get(field.name, field.type)
        yield FieldDescriptor(
            name=field.name,
            wire_name=wire_name_for(field),
            declared_type=declared,
            path=prefix + (field.name,),
            is_required=_truthy(meta.get('required')) or 'required' in str(meta.get('validate', '')),
            is_sensitive=_truthy(meta.get('sensitive')),
            is_force_replace=_truthy(meta.get('forcenew')),
            is_immutable=_truthy(meta.get('immutable')),
            choices=_choices(meta.get('choices')),
            default_literal=_literal(meta.get('default')),
            is_optional=is_optional_type(declared),
            description=str(meta.get('desc', '')),
        )


def find_field(record_type: type, wire_name: str) -> Optional[FieldDescriptor]:
    """Descriptor with the given wire name, or None."""
    for descriptor in resolve_fields(record_type):
        if descriptor.wire_name == wire_name:
            return descriptor
    return None


def get_path(record: Any, path: Tuple[str, ...]) -> Any:
    """Follow an attribute chain; a None link yields None."""
    current = record
    for name in path:
        if current is None:
            return None
        current = getattr(current, name)
    return current


def field_values(record: Any) -> Iterator[Tuple[FieldDescriptor, Any]]:
    """Yield ``(descriptor, value)`` for every wire-visible field of a record."""
    for descriptor in resolve_fields(type(record)):
        yield descriptor, get_path(record, descriptor.path)

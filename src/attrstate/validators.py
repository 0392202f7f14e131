"""
Choice validators and schema defaults.

Validators check a configured attribute value and report problems into a
Diagnostics collection. Defaults are literal strings from record metadata,
parsed into attribute values of the attribute's type.

``validate_config`` and ``apply_defaults`` walk a whole configuration object
against a ResourceSchema.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Tuple

from attrstate.attr_types import (
    AttrType, BoolType, Float64Type, Int64Type, ListType, MapType, ObjectType,
    SetType, StringType,
)
from attrstate.attr_values import (
    AttrValue, bool_value, float64_value, format_value, int64_value, list_value,
    map_value, null_filled_object, set_value, string_value,
)
from attrstate.diagnostics import Diagnostics, join_key, join_path

if TYPE_CHECKING:
    from attrstate.schema import AttributeSchema, ResourceSchema

logger = logging.getLogger(__name__)


# ============================================================================
# Validators
# ============================================================================

class Validator(ABC):
    """Checks one configured attribute value."""

    @abstractmethod
    def description(self) -> str:
        raise NotImplementedError

    def markdown_description(self) -> str:
        return self.description()

    @abstractmethod
    def validate(self, path: str, value: AttrValue, diagnostics: Diagnostics) -> None:
        raise NotImplementedError


def _element_text(value: AttrValue) -> str:
    if isinstance(value.attr_type, StringType):
        return value.value
    return format_value(value)


@dataclass(frozen=True)
class StringChoicesValidator(Validator):
    choices: Tuple[str, ...]

    def description(self) -> str:
        return f"Value must be one of: {', '.join(self.choices)}"

    def validate(self, path: str, value: AttrValue, diagnostics: Diagnostics) -> None:
        if not value.is_known():
            return
        if _element_text(value) not in self.choices:
            diagnostics.add_attribute_error(path, "Invalid Value", self.description())


@dataclass(frozen=True)
class ListChoicesValidator(Validator):
    """Every element of a list must be one of the choices."""
    choices: Tuple[str, ...]

    def description(self) -> str:
        return f"All values must be one of: {', '.join(self.choices)}"

    def validate(self, path: str, value: AttrValue, diagnostics: Diagnostics) -> None:
        if not value.is_known():
            return
        for element in value.elements():
            if element.is_known() and _element_text(element) not in self.choices:
                diagnostics.add_attribute_error(path, "Invalid Value in List", self.description())
                return


@dataclass(frozen=True)
class SetChoicesValidator(Validator):
    choices: Tuple[str, ...]

    def description(self) -> str:
        return f"All values must be one of: {', '.join(self.choices)}"

    def validate(self, path: str, value: AttrValue, diagnostics: Diagnostics) -> None:
        if not value.is_known():
            return
        for element in value.elements():
            if element.is_known() and _element_text(element) not in self.choices:
                diagnostics.add_attribute_error(path, "Invalid Value in Set", self.description())
                return


def choices_validator_for(attr_type: AttrType, choices: Tuple[str, ...]) -> Optional[Validator]:
    """Validator enforcing ``choices`` on an attribute of ``attr_type``, if the kind supports it."""
    if not choices:
        return None
    if isinstance(attr_type, StringType):
        return StringChoicesValidator(tuple(choices))
    if isinstance(attr_type, ListType):
        return ListChoicesValidator(tuple(choices))
    if isinstance(attr_type, SetType):
        return SetChoicesValidator(tuple(choices))
    logger.debug(f"Choices are not enforced for {attr_type} attributes")
    return None


# ============================================================================
# Defaults
# ============================================================================

_TRUE_LITERALS = ('1', 't', 'T', 'TRUE', 'true', 'True')
_FALSE_LITERALS = ('0', 'f', 'F', 'FALSE', 'false', 'False')


def _parse_bool(text: str) -> bool:
    if text in _TRUE_LITERALS:
        return True
    if text in _FALSE_LITERALS:
        return False
    raise ValueError(f"invalid bool literal: {text!r}")


def _parse_scalar(attr_type: AttrType, text: str) -> AttrValue:
    if isinstance(attr_type, StringType):
        return string_value(text)
    if isinstance(attr_type, BoolType):
        return bool_value(_parse_bool(text.strip()))
    if isinstance(attr_type, Int64Type):
        return int64_value(int(text.strip()))
    if isinstance(attr_type, Float64Type):
        return float64_value(float(text.strip()))
    raise ValueError(f"no literal form for {attr_type}")


def parse_default(attr_type: AttrType, literal: Optional[str]) -> Optional[AttrValue]:
    """
    Parse a default literal into a value of ``attr_type``.

    Scalars parse directly. Lists and sets of scalars split the literal on
    commas; empty pieces are skipped for non-string elements.

    Returns:
        The default value, or None when there is no literal, the kind has no
        literal form, or the literal does not parse (logged as a warning)
    """
    if literal is None:
        return None
    try:
        if attr_type.is_scalar():
            return _parse_scalar(attr_type, literal)
        if isinstance(attr_type, (ListType, SetType)) and attr_type.elem_type.is_scalar():
            elem_type = attr_type.elem_type
            pieces = literal.split(',') if literal else []
            if not isinstance(elem_type, StringType):
                pieces = [p for p in pieces if p.strip()]
            elements = [_parse_scalar(elem_type, p) for p in pieces]
            if isinstance(attr_type, SetType):
                return set_value(elem_type, list(dict.fromkeys(elements)))
            return list_value(elem_type, elements)
    except ValueError as err:
        logger.warning(f"Ignoring default {literal!r} for {attr_type}: {err}")
        return None
    logger.warning(f"Defaults are not supported for {attr_type} attributes; ignoring {literal!r}")
    return None


@dataclass(frozen=True)
class DefaultValue:
    """Static default applied when configuration leaves an attribute null."""
    value: AttrValue

    def description(self) -> str:
        return f"Defaults to {format_value(self.value)}"


# ============================================================================
# Whole-configuration checks
# ============================================================================

def validate_config(config: AttrValue, schema: 'ResourceSchema') -> Diagnostics:
    """
    Run required-attribute checks and validators over a configuration object.

    Null and unknown values are never passed to validators. Nested objects
    are checked with their own attribute schemas.
    """
    diagnostics = Diagnostics()
    _validate_attributes(config, schema.attributes, None, diagnostics)
    return diagnostics


def _validate_attributes(obj: AttrValue, attributes, parent: Optional[str], diagnostics: Diagnostics) -> None:
    values = obj.attributes() if obj.is_known() else {}
    for name, attribute in attributes.items():
        path = join_path(parent, name)
        value = values.get(name)
        if value is None or value.is_null():
            if attribute.required:
                diagnostics.add_attribute_error(
                    path, "Missing Required Attribute",
                    f"The attribute '{path}' is required, but no definition was found.",
                )
            continue
        if value.is_unknown():
            continue
        for validator in attribute.validators:
            validator.validate(path, value, diagnostics)
        if attribute.nested:
            _validate_nested(value, attribute, path, diagnostics)


def _validate_nested(value: AttrValue, attribute: 'AttributeSchema', path: str, diagnostics: Diagnostics) -> None:
    if isinstance(value.attr_type, ObjectType):
        _validate_attributes(value, attribute.nested, path, diagnostics)
    elif isinstance(value.attr_type, (ListType, SetType)):
        for index, element in enumerate(value.elements()):
            if element.is_known():
                _validate_attributes(element, attribute.nested, join_path(path, index), diagnostics)
    elif isinstance(value.attr_type, MapType):
        for key, element in value.items().items():
            if element.is_known():
                _validate_attributes(element, attribute.nested, join_key(path, key), diagnostics)


def apply_defaults(config: AttrValue, schema: 'ResourceSchema') -> AttrValue:
    """
    Replace null attributes that declare a default with that default.

    Single nested objects are filled recursively. Unknown values are left
    alone.
    """
    return _apply_defaults(config, schema.attributes)


def _apply_defaults(obj: AttrValue, attributes) -> AttrValue:
    if not obj.is_known():
        return obj
    values = obj.attributes()
    for name, attribute in attributes.items():
        value = values.get(name)
        if value is None:
            continue
        if value.is_null() and attribute.default is not None:
            values[name] = attribute.default.value
        elif attribute.nested and value.is_known():
            values[name] = _apply_nested_defaults(value, attribute)
    return null_filled_object(obj.attr_type, values)


def _apply_nested_defaults(value: AttrValue, attribute: 'AttributeSchema') -> AttrValue:
    attr_type = value.attr_type
    if isinstance(attr_type, ObjectType):
        return _apply_defaults(value, attribute.nested)
    if isinstance(attr_type, ListType):
        return list_value(attr_type.elem_type, [_apply_defaults(e, attribute.nested) for e in value.elements()])
    if isinstance(attr_type, MapType):
        return map_value(attr_type.elem_type,
                         {k: _apply_defaults(e, attribute.nested) for k, e in value.items().items()})
    return value


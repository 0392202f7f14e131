"""
Exception hierarchy for schema derivation and value conversion.

Schema errors are raised while a record type is being introspected and are
never recovered for that type. Conversion errors are raised while a single
value tree or record is being converted and abort the whole conversion; no
partially converted result is ever returned.

Immutable attribute violations are not exceptions. They are returned as
structured results by the plan modifiers (see plan_modifiers.py).
"""


class AttrStateError(Exception):
    """Base class for all errors raised by attrstate."""


class SchemaError(AttrStateError):
    """A record type cannot be turned into an attribute schema."""


class SchemaConflictError(SchemaError):
    """Two fields resolve to the same wire name after flattening squashed records."""

    def __init__(self, record_type: type, wire_name: str, first: str, second: str):
        self.record_type = record_type
        self.wire_name = wire_name
        self.first = first
        self.second = second
        super().__init__(
            f"{record_type.__name__}: fields '{first}' and '{second}' "
            f"both resolve to attribute '{wire_name}'"
        )


class UnsupportedTypeError(SchemaError):
    """A Python type has no attribute representation and is not dynamic."""

    def __init__(self, py_type, reason: str = ""):
        self.py_type = py_type
        message = f"unsupported type: {py_type!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class ConversionError(AttrStateError):
    """Base class for decode and encode failures."""


class DecodeError(ConversionError):
    """An attribute value tree could not be decoded into a record."""


class EncodeError(ConversionError):
    """A record could not be encoded into an attribute value tree."""

"""
Converter settings scoped with contextvars.

Settings are read at conversion time from a ContextVar, so a caller can tighten
or relax conversion behaviour for one block of code without threading a
parameter through every call:

    with converter_settings(strict_fields=True):
        state = record_to_state_object(result, schema_attrs)

Outside any ``converter_settings`` block the defaults apply.
"""

import contextvars
import dataclasses
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConverterSettings:
    """Knobs that change how records are encoded.

    Attributes:
        strict_fields: Raise EncodeError when a record field has no attribute
            in the target object type instead of logging a warning and
            dropping it.
        sort_dynamic_keys: Sort object keys when serializing dynamic values
            to JSON text, which keeps the text stable between runs.
        dynamic_separators: Item and key separators used for dynamic JSON.
    """
    strict_fields: bool = False
    sort_dynamic_keys: bool = True
    dynamic_separators: Tuple[str, str] = (',', ':')


_current_settings: contextvars.ContextVar[ConverterSettings] = contextvars.ContextVar(
    'converter_settings', default=ConverterSettings()
)


def get_converter_settings() -> ConverterSettings:
    """Return the settings active in the current context."""
    return _current_settings.get()


def set_converter_settings(settings: ConverterSettings) -> contextvars.Token:
    """Replace the active settings; returns a token for ``reset_converter_settings``."""
    return _current_settings.set(settings)


def reset_converter_settings(token: contextvars.Token) -> None:
    _current_settings.reset(token)


@contextmanager
def converter_settings(**overrides):
    """
    Scope overridden converter settings to a block.

    Args:
        **overrides: ConverterSettings fields to replace for the duration of the block

    Raises:
        TypeError: if an override names a field ConverterSettings does not have
    """
    current = _current_settings.get()
    updated = dataclasses.replace(current, **overrides)
    logger.debug(f"Entering converter settings scope: {overrides}")
    token = _current_settings.set(updated)
    try:
        yield updated
    finally:
        _current_settings.reset(token)

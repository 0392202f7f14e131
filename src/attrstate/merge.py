"""
Deep merge of attribute trees.

Used after an action returns: the state built from the action result is
merged with the plan so that values the practitioner configured survive even
when the remote service does not echo them back.

Merge rules for each incoming attribute:

- Null or Unknown: skipped, the existing value stays
- Object: merged recursively
- Map of Objects: merged key by key, new keys added
- List of Objects: merged index by index; a Null/Unknown incoming element
  keeps the existing element at that index
- Set: incoming Null/Unknown elements are dropped, the rest replaces
- anything else: replaces the existing value
"""

import logging
from typing import Dict, Mapping, MutableMapping, Optional

from attrstate.attr_types import AttrType, ListType, MapType, ObjectType, SetType
from attrstate.attr_values import (
    AttrValue, list_value, map_value, null_filled_object, set_value,
)

logger = logging.getLogger(__name__)


def merge_into(existing: MutableMapping[str, AttrValue], incoming: Mapping[str, AttrValue]) -> None:
    """
    Merge ``incoming`` attributes into ``existing`` in place.

    Args:
        existing: Working attribute mapping, modified in place
        incoming: Attributes to merge in; never modified
    """
    for name, value in incoming.items():
        if not value.is_known():
            continue
        merged = _merge_value(existing.get(name), value)
        if merged is not None:
            existing[name] = merged


def _merge_value(current: Optional[AttrValue], incoming: AttrValue) -> AttrValue:
    attr_type = incoming.attr_type
    if isinstance(attr_type, ObjectType):
        return _merge_object(current, incoming)
    if isinstance(attr_type, MapType):
        return _merge_map(current, incoming)
    if isinstance(attr_type, ListType):
        return _merge_list(current, incoming)
    if isinstance(attr_type, SetType):
        return _merge_set(incoming)
    return incoming


def _usable(current: Optional[AttrValue], attr_type: AttrType) -> bool:
    return current is not None and current.is_known() and current.attr_type == attr_type


def _merge_object(current: Optional[AttrValue], incoming: AttrValue) -> AttrValue:
    if not _usable(current, incoming.attr_type):
        return incoming
    attributes: Dict[str, AttrValue] = current.attributes()
    merge_into(attributes, incoming.attributes())
    return null_filled_object(incoming.attr_type, attributes)


def _merge_map(current: Optional[AttrValue], incoming: AttrValue) -> AttrValue:
    elem_type = incoming.attr_type.elem_type
    if not isinstance(elem_type, ObjectType) or not _usable(current, incoming.attr_type):
        return incoming

    entries = current.items()
    for key, element in incoming.items().items():
        if not element.is_known():
            continue
        existing = entries.get(key)
        if existing is None:
            entries[key] = element
        else:
            entries[key] = _merge_object(existing, element)
    return map_value(elem_type, entries)


def _merge_list(current: Optional[AttrValue], incoming: AttrValue) -> AttrValue:
    elem_type = incoming.attr_type.elem_type
    if not isinstance(elem_type, ObjectType) or not _usable(current, incoming.attr_type):
        return incoming

    existing = current.elements()
    merged = []
    for index, element in enumerate(incoming.elements()):
        if index >= len(existing):
            merged.append(element)
        elif not element.is_known():
            merged.append(existing[index])
        else:
            merged.append(_merge_object(existing[index], element))
    return list_value(elem_type, merged)


def _merge_set(incoming: AttrValue) -> AttrValue:
    elements = [e for e in incoming.elements() if e.is_known()]
    return set_value(incoming.attr_type.elem_type, elements)


def merge_objects(existing: AttrValue, incoming: AttrValue) -> AttrValue:
    """Merge two Object values of the same type into a new Object."""
    return _merge_object(existing, incoming)


def merge_plan_into_state(plan: Optional[AttrValue], state: AttrValue,
                          schema_attrs: Mapping[str, AttrType]) -> AttrValue:
    """
    Overlay the plan onto a state object built from an action result.

    Null and Unknown state attributes are dropped first so the plan can fill
    them. The result keeps only schema attributes and null-fills the rest.
    """
    working = {name: value for name, value in _attributes(state).items() if value.is_known()}
    if plan is not None and plan.is_known():
        merge_into(working, plan.attributes())
    return null_filled_object(ObjectType(schema_attrs), {
        name: value for name, value in working.items()
        if name in schema_attrs and value.attr_type == schema_attrs[name]
    })


def _attributes(value: Optional[AttrValue]) -> Dict[str, AttrValue]:
    if value is None or not value.is_known():
        return {}
    return value.attributes()

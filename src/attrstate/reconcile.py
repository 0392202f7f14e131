"""
Plan/state reconciliation.

Combines a decoded plan record with the decoded prior state into a fresh
record of the plan's type. The result starts as a copy of the state and the
plan is overlaid field by field, matched by Python field name:

- plan field None: keep the state value
- field absent from the state record: plan wins
- bool: plan always wins
- other scalars: plan wins when it is non-zero and differs from the state,
  or when the state is zero
- containers and dynamic values: plan wins when it is not None
- nested records: a zero state record is replaced by the plan record;
  otherwise the two records are reconciled recursively
"""

import dataclasses
import enum
import logging
from typing import Any, Dict, Optional

from attrstate.descriptor import field_values, get_path, resolve_fields
from attrstate.records import deep_copy, is_record, is_zero, set_path, zero_record

logger = logging.getLogger(__name__)

_MISSING = object()


def reconcile(plan: Any, state: Optional[Any], target_type: Optional[type] = None) -> Any:
    """
    Reconcile a plan record with a prior state record.

    Args:
        plan: Decoded plan record
        state: Decoded prior state record, or None
        target_type: Type of the result; defaults to the plan's type

    Returns:
        A new record of ``target_type``; neither input is modified
    """
    target_type = target_type or type(plan)
    result = zero_record(target_type)
    target_fields = {d.name: d for d in resolve_fields(target_type)}

    state_values: Dict[str, Any] = {}
    if state is not None:
        for descriptor, value in field_values(state):
            state_values[descriptor.name] = value
            target = target_fields.get(descriptor.name)
            if target is not None:
                set_path(result, target.path, deep_copy(value))

    for descriptor, plan_value in field_values(plan):
        target = target_fields.get(descriptor.name)
        if target is None:
            continue
        current = get_path(result, target.path)
        state_value = state_values.get(descriptor.name, _MISSING)
        set_path(result, target.path, _reconcile_value(plan_value, state_value, current))

    logger.debug(f"Reconciled plan {type(plan).__name__} with state into {target_type.__name__}")
    return result


def _reconcile_value(plan: Any, state: Any, target: Any) -> Any:
    if plan is None:
        return target
    if state is _MISSING:
        return deep_copy(plan)
    if isinstance(plan, bool):
        return plan
    if isinstance(plan, (str, int, float, enum.Enum)):
        if is_zero(plan) and not isinstance(plan, enum.Enum):
            return target
        if is_zero(state) or plan != state:
            return plan
        return target
    if is_record(plan):
        if is_zero(state):
            return deep_copy(plan)
        return _reconcile_record(plan, state, target)
    return deep_copy(plan)


def _reconcile_record(plan: Any, state: Any, target: Any) -> Any:
    merged = deep_copy(target) if is_record(target) else deep_copy(state)
    for field in dataclasses.fields(plan):
        if field.name.startswith('_'):
            continue
        if not hasattr(merged, field.name):
            continue
        plan_value = getattr(plan, field.name)
        state_value = getattr(state, field.name, _MISSING)
        current = getattr(merged, field.name)
        object.__setattr__(merged, field.name, _reconcile_value(plan_value, state_value, current))
    return merged

"""
Plan modifiers: immutability guards and force-replace.

A plan modifier inspects one attribute of a proposed plan against the prior
state and the configuration. The immutability guards reject any change to an
attribute once the resource exists:

- Create (no prior state): allowed
- Destroy (no plan): allowed
- Plan or configuration value unknown: allowed, the value is resolved later
- Plan value equal to state value: allowed
- Anything else: rejected with an ImmutableAttributeViolation

One guard exists per attribute kind. Scalar guards render the current and
attempted values in the violation detail; container guards do not.

``run_plan_modifiers`` applies every modifier in a schema to whole plan and
state objects and must be called before any external action is taken.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple, Type

from attrstate.attr_types import (
    AttrType, BoolType, DynamicType, Float64Type, Int64Type, ListType, MapType,
    ObjectType, SetType, StringType, TupleType,
)
from attrstate.attr_values import AttrValue, format_value, null_value
from attrstate.diagnostics import Diagnostic, Diagnostics, Severity, join_key, join_path

logger = logging.getLogger(__name__)

IMMUTABLE_SUMMARY = "Immutable Attribute Cannot Be Changed"

_DETAIL_WITH_VALUES = (
    "The attribute '{path}' is immutable and cannot be changed after resource creation.\n\n"
    "Current value: {current}\n"
    "Attempted new value: {attempted}\n\n"
    "To use a different value, you must create a new resource."
)

_DETAIL = (
    "The attribute '{path}' is immutable and cannot be changed after resource creation.\n\n"
    "To use a different value, you must create a new resource."
)


@dataclass(frozen=True)
class ImmutableAttributeViolation:
    """A rejected change to an immutable attribute."""
    path: str
    summary: str
    detail: str
    current: Optional[AttrValue] = None
    attempted: Optional[AttrValue] = None

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(Severity.ERROR, self.summary, self.detail, self.path)


@dataclass(frozen=True)
class PlanModifyRequest:
    """Inputs to one plan modifier for one attribute.

    ``has_prior_state`` is False while the resource is being created and
    ``has_plan`` is False while it is being destroyed.
    """
    path: str
    state_value: AttrValue
    plan_value: AttrValue
    config_value: AttrValue
    has_prior_state: bool = True
    has_plan: bool = True


@dataclass
class PlanModifyResponse:
    plan_value: AttrValue
    requires_replace: bool = False
    violation: Optional[ImmutableAttributeViolation] = None


class PlanModifier(ABC):
    """Base class for attribute plan modifiers."""

    @abstractmethod
    def description(self) -> str:
        raise NotImplementedError

    def markdown_description(self) -> str:
        return self.description()

    @abstractmethod
    def modify(self, request: PlanModifyRequest, response: PlanModifyResponse) -> None:
        raise NotImplementedError


# ============================================================================
# Immutability guards
# ============================================================================

class ImmutableGuard(PlanModifier):
    """Rejects changes to an attribute after the resource has been created."""

    value_kind: Type[AttrType] = AttrType
    render_values: bool = False

    def description(self) -> str:
        return ("Prevents changes to this attribute after initial creation. "
                "Any attempt to modify will result in an error.")

    def markdown_description(self) -> str:
        return ("**Immutable attribute** - Cannot be changed after initial creation. "
                "Any modification attempt will result in an error.")

    def check(self, request: PlanModifyRequest) -> Optional[ImmutableAttributeViolation]:
        """
        Decide whether the planned value is an allowed change.

        Returns:
            None when the change is allowed, otherwise the violation

        Raises:
            TypeError: if the guard is attached to an attribute of another kind
        """
        if not isinstance(request.plan_value.attr_type, self.value_kind):
            raise TypeError(
                f"{type(self).__name__} cannot guard '{request.path}' of type {request.plan_value.attr_type}"
            )
        if not request.has_prior_state:
            return None
        if request.plan_value.is_unknown() or request.config_value.is_unknown():
            return None
        if not request.has_plan:
            return None
        if request.plan_value == request.state_value:
            return None

        if self.render_values:
            detail = _DETAIL_WITH_VALUES.format(
                path=request.path,
                current=format_value(request.state_value),
                attempted=format_value(request.plan_value),
            )
        else:
            detail = _DETAIL.format(path=request.path)
        logger.debug(f"Rejecting change to immutable attribute '{request.path}'")
        return ImmutableAttributeViolation(
            path=request.path,
            summary=IMMUTABLE_SUMMARY,
            detail=detail,
            current=request.state_value,
            attempted=request.plan_value,
        )

    def modify(self, request: PlanModifyRequest, response: PlanModifyResponse) -> None:
        violation = self.check(request)
        if violation is not None:
            response.violation = violation

    def __eq__(self, other):
        return type(self) is type(other)

    def __hash__(self):
        return hash(type(self))

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class ImmutableString(ImmutableGuard):
    value_kind = StringType
    render_values = True


class ImmutableInt64(ImmutableGuard):
    value_kind = Int64Type
    render_values = True


class ImmutableFloat64(ImmutableGuard):
    value_kind = Float64Type
    render_values = True


class ImmutableBool(ImmutableGuard):
    value_kind = BoolType
    render_values = True


class ImmutableList(ImmutableGuard):
    value_kind = ListType


class ImmutableSet(ImmutableGuard):
    value_kind = SetType


class ImmutableMap(ImmutableGuard):
    value_kind = MapType


class ImmutableTuple(ImmutableGuard):
    value_kind = TupleType


class ImmutableObject(ImmutableGuard):
    value_kind = ObjectType


class ImmutableDynamic(ImmutableGuard):
    value_kind = DynamicType


_GUARDS: Tuple[Type[ImmutableGuard], ...] = (
    ImmutableString, ImmutableInt64, ImmutableFloat64, ImmutableBool, ImmutableList,
    ImmutableSet, ImmutableMap, ImmutableTuple, ImmutableObject, ImmutableDynamic,
)


def immutable_guard_for(attr_type: AttrType) -> ImmutableGuard:
    """The guard matching the kind of ``attr_type``."""
    for guard_type in _GUARDS:
        if isinstance(attr_type, guard_type.value_kind):
            return guard_type()
    raise TypeError(f"no immutability guard for {attr_type!r}")


# ============================================================================
# Force replace
# ============================================================================

class RequiresReplace(PlanModifier):
    """Marks the resource for replacement when the attribute changes on update."""

    def description(self) -> str:
        return "If the value of this attribute changes, the resource will be replaced."

    def modify(self, request: PlanModifyRequest, response: PlanModifyResponse) -> None:
        if not request.has_prior_state or not request.has_plan:
            return
        if request.plan_value.is_unknown():
            return
        if request.plan_value != request.state_value:
            response.requires_replace = True

    def __eq__(self, other):
        return type(self) is type(other)

    def __hash__(self):
        return hash(type(self))

    def __repr__(self) -> str:
        return "RequiresReplace()"


# ============================================================================
# Whole-object application
# ============================================================================

@dataclass
class PlanCheckResult:
    violations: List[ImmutableAttributeViolation] = field(default_factory=list)
    requires_replace: List[str] = field(default_factory=list)

    def diagnostics(self) -> Diagnostics:
        diagnostics = Diagnostics()
        diagnostics.append(*(v.to_diagnostic() for v in self.violations))
        return diagnostics


def _attrs_of(value: Optional[AttrValue]) -> Dict[str, AttrValue]:
    if value is None or not value.is_known():
        return {}
    return value.attributes()


def _pick(values: Mapping[str, AttrValue], name: str, attr_type: AttrType) -> AttrValue:
    value = values.get(name)
    return value if value is not None else null_value(attr_type)


def run_plan_modifiers(schema, plan: Optional[AttrValue], state: Optional[AttrValue],
                       config: Optional[AttrValue] = None) -> PlanCheckResult:
    """
    Apply every plan modifier in ``schema`` to whole plan/state/config objects.

    Args:
        schema: A ResourceSchema (or anything with an ``attributes`` mapping)
        plan: Planned object; None or null when the resource is being destroyed
        state: Prior state object; None or null when the resource is being created
        config: Configuration object; defaults to the plan

    Returns:
        The collected violations and the paths that require replacement
    """
    has_prior_state = state is not None and not state.is_null()
    has_plan = plan is not None and not plan.is_null()
    if config is None:
        config = plan
    result = PlanCheckResult()
    _apply(schema.attributes, _attrs_of(plan), _attrs_of(state), _attrs_of(config),
           None, has_prior_state, has_plan, result)
    return result


def _apply(attributes, plan_attrs, state_attrs, config_attrs, parent: Optional[str],
           has_prior_state: bool, has_plan: bool, result: PlanCheckResult) -> None:
    for name, attribute in attributes.items():
        path = join_path(parent, name)
        plan_value = _pick(plan_attrs, name, attribute.attr_type)
        state_value = _pick(state_attrs, name, attribute.attr_type)
        config_value = _pick(config_attrs, name, attribute.attr_type)

        request = PlanModifyRequest(path, state_value, plan_value, config_value, has_prior_state, has_plan)
        response = PlanModifyResponse(plan_value=plan_value)
        for modifier in attribute.plan_modifiers:
            modifier.modify(request, response)
        if response.violation is not None:
            result.violations.append(response.violation)
        if response.requires_replace:
            result.requires_replace.append(path)

        if attribute.nested:
            _apply_nested(attribute, plan_value, state_value, config_value, path,
                          has_prior_state, has_plan, result)


def _apply_nested(attribute, plan_value: AttrValue, state_value: AttrValue, config_value: AttrValue,
                  path: str, has_prior_state: bool, has_plan: bool, result: PlanCheckResult) -> None:
    if not (plan_value.is_known() and state_value.is_known()):
        return
    attr_type = plan_value.attr_type
    if isinstance(attr_type, ObjectType):
        _apply(attribute.nested, plan_value.attributes(), state_value.attributes(),
               _attrs_of(config_value), path, has_prior_state, has_plan, result)
    elif isinstance(attr_type, ListType):
        state_elements = state_value.elements()
        config_elements = config_value.elements() if config_value.is_known() else []
        for index, element in enumerate(plan_value.elements()):
            if index >= len(state_elements):
                break
            config_element = config_elements[index] if index < len(config_elements) else element
            _apply(attribute.nested, _attrs_of(element), _attrs_of(state_elements[index]),
                   _attrs_of(config_element), join_path(path, index), has_prior_state, has_plan, result)
    elif isinstance(attr_type, MapType):
        state_items = state_value.items()
        config_items = config_value.items() if config_value.is_known() else {}
        for key, element in plan_value.items().items():
            if key not in state_items:
                continue
            _apply(attribute.nested, _attrs_of(element), _attrs_of(state_items[key]),
                   _attrs_of(config_items.get(key, element)), join_key(path, key),
                   has_prior_state, has_plan, result)


def check_immutable_attributes(schema, plan: Optional[AttrValue], state: Optional[AttrValue],
                               config: Optional[AttrValue] = None) -> List[ImmutableAttributeViolation]:
    """Violations of every immutability guard in ``schema``."""
    return run_plan_modifiers(schema, plan, state, config).violations


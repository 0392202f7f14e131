"""
Resource lifecycle glue.

A ResourceDefinition says which record type each operation decodes into and
which callable performs it. A ResourceHandler drives one operation end to end:

1. immutability and force-replace checks (update only, before any action)
2. decode plan and/or state into the operation's input record
3. call the action with that record
4. encode the result into a full state object, null-filling from plan then state
5. merge the plan into that state

Failures never raise out of the handler. They are reported as diagnostics and
the prior state is kept.

Usage:

    definition = ResourceDefinition(
        name='network',
        schemas={Operation.CREATE: CreateNetwork, Operation.UPDATE: UpdateNetwork,
                 Operation.READ: GetNetwork, Operation.DELETE: DeleteNetwork},
        state_type=Network,
        actions={Operation.CREATE: client.create_network, ...},
        immutable_attributes=['region'],
    )
    handler = ResourceHandler(definition)
    result = handler.create(plan)
    if result.diagnostics.has_error():
        ...
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from attrstate.attr_values import AttrValue
from attrstate.convert import decode, decode_plan_and_state, object_to_mapping, record_to_state_object
from attrstate.diagnostics import Diagnostics
from attrstate.errors import ConversionError, SchemaError
from attrstate.merge import merge_plan_into_state
from attrstate.plan_modifiers import run_plan_modifiers
from attrstate.reconcile import reconcile
from attrstate.records import build_record, deep_copy, is_record, is_record_type, schema_by_path, update_record
from attrstate.schema import ResourceSchema, generate_resource_schema

logger = logging.getLogger(__name__)


class Operation(str, enum.Enum):
    CREATE = 'create'
    READ = 'read'
    UPDATE = 'update'
    DELETE = 'delete'


@dataclass
class ResourceDefinition:
    """
    Declarative description of a managed resource.

    ``schemas`` maps each operation to the record its action takes. An entry
    may be a dataclass type or a prototype instance; prototypes are deep
    copied before use so their field values act as defaults. A plan value
    replaces a prototype value when it is set and non-zero; on update the
    prior state does the same, with the plan taking precedence over both.
    """
    name: str
    schemas: Dict[Operation, Any]
    state_type: type
    actions: Dict[Operation, Callable[..., Any]] = field(default_factory=dict)
    description: str = ''
    version: int = 0
    sensitive_attributes: List[str] = field(default_factory=list)
    extra_required_attributes: List[str] = field(default_factory=list)
    computed_as_set_attributes: List[str] = field(default_factory=list)
    immutable_attributes: List[str] = field(default_factory=list)
    read_schema_path: str = ''
    delete_schema_path: str = ''
    raw_state_inference: bool = False

    def supports(self, operation: Operation) -> bool:
        return operation in self.actions

    def input_type(self, operation: Operation) -> Optional[type]:
        prototype = self.schemas.get(operation)
        if prototype is None or is_record_type(prototype):
            return prototype
        return type(prototype)

    def has_instance_prototype(self, operation: Operation) -> bool:
        return is_record(self.schemas.get(operation))

    def prototype(self, operation: Operation) -> Any:
        """A fresh input record for ``operation``, or None if it takes none."""
        prototype = self.schemas.get(operation)
        if prototype is None:
            return None
        if is_record(prototype):
            return deep_copy(prototype)
        return build_record(prototype, {})


@dataclass
class OperationResult:
    """New state (None when the resource is gone) plus collected diagnostics."""
    state: Optional[AttrValue]
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    requires_replace: List[str] = field(default_factory=list)


class ResourceHandler:
    """Runs resource operations for one ResourceDefinition."""

    def __init__(self, definition: ResourceDefinition):
        self.definition = definition
        self._schema: Optional[ResourceSchema] = None

    def schema(self) -> ResourceSchema:
        """The resource schema, derived on first use; callers get a deep copy."""
        if self._schema is None:
            d = self.definition
            create_type = d.input_type(Operation.CREATE) or d.state_type
            self._schema = generate_resource_schema(
                create_type,
                update_type=d.input_type(Operation.UPDATE),
                state_type=d.state_type,
                sensitive_attrs=d.sensitive_attributes,
                extra_required_attrs=d.extra_required_attributes,
                computed_as_set_attrs=d.computed_as_set_attributes,
                immutable_attrs=d.immutable_attributes,
                description=d.description,
                version=d.version,
            )
        return deep_copy(self._schema)

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan_checks(self, plan: Optional[AttrValue], state: Optional[AttrValue],
                    config: Optional[AttrValue] = None) -> OperationResult:
        """Run immutability guards and force-replace checks against a proposed plan."""
        checks = run_plan_modifiers(self.schema(), plan, state, config)
        result = OperationResult(state=plan, diagnostics=checks.diagnostics(),
                                 requires_replace=list(checks.requires_replace))
        for violation in checks.violations:
            logger.info(f"{self.definition.name}: immutable attribute '{violation.path}' changed in plan")
        return result

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create(self, plan: AttrValue) -> OperationResult:
        return self._trigger(Operation.CREATE, plan=plan, state=None)

    def read(self, state: AttrValue) -> OperationResult:
        return self._trigger(Operation.READ, plan=None, state=state)

    def update(self, plan: AttrValue, state: AttrValue, config: Optional[AttrValue] = None) -> OperationResult:
        checks = self.plan_checks(plan, state, config)
        if checks.diagnostics.has_error():
            logger.error(f"{self.definition.name}: update rejected by plan checks")
            return OperationResult(state=state, diagnostics=checks.diagnostics)
        return self._trigger(Operation.UPDATE, plan=plan, state=state)

    def delete(self, state: AttrValue) -> OperationResult:
        return self._trigger(Operation.DELETE, plan=None, state=state)

    def _trigger(self, operation: Operation, plan: Optional[AttrValue],
                 state: Optional[AttrValue]) -> OperationResult:
        name = self.definition.name
        diagnostics = Diagnostics()
        if not self.definition.supports(operation):
            logger.info(f"{name}: operation '{operation.value}' is not supported, keeping state")
            return OperationResult(state=self._finalize(operation, state), diagnostics=diagnostics)

        logger.info(f"{name}: running '{operation.value}'")
        try:
            action_input = self._parse_plan_and_state(operation, plan, state)
        except (ConversionError, SchemaError, KeyError, TypeError) as err:
            return self._fail(operation, state, diagnostics, "Parsing Error",
                              f"Failed to parse {operation.value} input for {name}: {err}")

        action = self.definition.actions[operation]
        try:
            output = action(action_input) if action_input is not None else action()
        except Exception as err:
            return self._fail(operation, state, diagnostics, "Action Error",
                              f"Failed to {operation.value} {name}: {err}")

        if operation is Operation.DELETE:
            return OperationResult(state=None, diagnostics=diagnostics)

        schema_attrs = self.schema().attr_types()
        try:
            if output is None:
                new_state = merge_plan_into_state(plan, state, schema_attrs) if plan is not None else state
            else:
                new_state = record_to_state_object(output, schema_attrs, state=state, plan=plan)
                if plan is not None:
                    new_state = merge_plan_into_state(plan, new_state, schema_attrs)
        except (ConversionError, ValueError) as err:
            return self._fail(operation, state, diagnostics, "State Conversion Error",
                              f"Failed to convert {name} result to state: {err}")
        return OperationResult(state=new_state, diagnostics=diagnostics)

    def _parse_plan_and_state(self, operation: Operation, plan: Optional[AttrValue],
                              state: Optional[AttrValue]) -> Any:
        d = self.definition
        input_type = d.input_type(operation)
        if input_type is None:
            return None
        if plan is not None and d.has_instance_prototype(operation):
            defaults = d.prototype(operation)
            if state is not None:
                state_record = decode(state, d.state_type or input_type)
                defaults = reconcile(state_record, defaults, target_type=input_type)
            return reconcile(decode(plan, input_type), defaults, target_type=input_type)
        if plan is not None and state is not None:
            return decode_plan_and_state(plan, state, input_type, d.state_type)
        if plan is not None:
            return decode(plan, input_type)
        if state is None:
            return d.prototype(operation)

        if d.raw_state_inference:
            state_data: Any = object_to_mapping(state, None)
        else:
            state_data = object_to_mapping(state, d.state_type)
        schema_path = {
            Operation.READ: d.read_schema_path,
            Operation.DELETE: d.delete_schema_path,
        }.get(operation, '')
        if schema_path:
            state_data = schema_by_path(state_data, schema_path)
        if not isinstance(state_data, dict):
            raise TypeError(f"state path '{schema_path}' does not lead to an object")
        return update_record(d.prototype(operation), state_data)

    def _finalize(self, operation: Operation, original_state: Optional[AttrValue]) -> Optional[AttrValue]:
        if operation is Operation.CREATE:
            return None
        return original_state

    def _fail(self, operation: Operation, original_state: Optional[AttrValue], diagnostics: Diagnostics,
              summary: str, detail: str) -> OperationResult:
        logger.error(f"{self.definition.name}: {summary}: {detail}")
        diagnostics.add_error(summary, detail)
        return OperationResult(state=self._finalize(operation, original_state), diagnostics=diagnostics)

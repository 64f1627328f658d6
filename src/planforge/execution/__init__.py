"""Plan schema, validation and execution."""

from planforge.execution.actions import (
    Action,
    ActionType,
    ConnectNodesAction,
    CreateFileAction,
    CreateNodeAction,
    DeleteNodeAction,
    RegisterCapabilityAction,
    UpdateNodeAction,
    action_from_dict,
)
from planforge.execution.events import ExecutionObserver, NullObserver, StepEvent
from planforge.execution.executor import PlanExecutor, summarize
from planforge.execution.parser import parse_plan, strip_code_fence
from planforge.execution.plan import (
    ExecutionState,
    ExecutionStatus,
    Plan,
    PlanContext,
    PlanMetadata,
    PlanStep,
    StepOutput,
    StepResult,
)
from planforge.execution.registry import ActionHandlerRegistry
from planforge.execution.validation import ValidationReport, annotate_plan, validate_plan
from planforge.execution.variables import (
    find_variable_references,
    resolve_action_variables,
    resolve_variables,
)

__all__ = [
    "Action",
    "ActionType",
    "ConnectNodesAction",
    "CreateFileAction",
    "CreateNodeAction",
    "DeleteNodeAction",
    "RegisterCapabilityAction",
    "UpdateNodeAction",
    "action_from_dict",
    "ExecutionObserver",
    "NullObserver",
    "StepEvent",
    "PlanExecutor",
    "summarize",
    "parse_plan",
    "strip_code_fence",
    "ExecutionState",
    "ExecutionStatus",
    "Plan",
    "PlanContext",
    "PlanMetadata",
    "PlanStep",
    "StepOutput",
    "StepResult",
    "ActionHandlerRegistry",
    "ValidationReport",
    "annotate_plan",
    "validate_plan",
    "find_variable_references",
    "resolve_action_variables",
    "resolve_variables",
]

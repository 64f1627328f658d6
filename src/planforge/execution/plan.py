"""Plan data model and execution state.

Provides:
- PlanMetadata / PlanContext / StepOutput / PlanStep / Plan: the plan contract
- StepResult: outcome of one executed step (append-only)
- ExecutionStatus / ExecutionState: per-run mutable state owned by PlanExecutor
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from planforge.config.defaults import PLAN_COMPLEXITY_TIERS, PLAN_SCHEMA_VERSION
from planforge.errors import PlanParseError
from planforge.execution.actions import Action, action_from_dict


def _optional_int(value: Any, name: str, defects: List[str]) -> Optional[int]:
    """Coerce a numeric wire field; a bad value becomes a defect and None."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        defects.append(f"'{name}' must be a number, got {value!r}")
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        defects.append(f"'{name}' must be a number, got {value!r}")
        return None


@dataclass
class PlanMetadata:
    name: str
    description: str = ""
    complexity: str = "simple"
    estimated_steps: int = 0
    # Shape problems found while reading the wire dict; reported by validation
    defects: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlanMetadata":
        if not isinstance(data, dict):
            raise PlanParseError("Plan metadata must be an object")
        defects: List[str] = []
        complexity = str(data.get("complexity") or "simple")
        if complexity not in PLAN_COMPLEXITY_TIERS:
            defects.append(f"Unknown plan complexity '{complexity}'")
        estimated = _optional_int(data.get("estimatedSteps"), "metadata.estimatedSteps", defects)
        return cls(
            name=str(data.get("name") or "Untitled plan"),
            description=str(data.get("description") or ""),
            complexity=complexity,
            estimated_steps=estimated or 0,
            defects=tuple(defects),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "complexity": self.complexity,
            "estimatedSteps": self.estimated_steps,
        }


@dataclass
class PlanContext:
    """Originating request plus a snapshot of the graph before planning."""
    user_intent: str = ""
    existing_nodes: List[Dict[str, Any]] = field(default_factory=list)
    existing_edges: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PlanContext":
        data = data or {}
        return cls(
            user_intent=str(data.get("userIntent") or ""),
            existing_nodes=list(data.get("existingNodes") or []),
            existing_edges=list(data.get("existingEdges") or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userIntent": self.user_intent,
            "existingNodes": list(self.existing_nodes),
            "existingEdges": list(self.existing_edges),
        }


@dataclass(frozen=True)
class StepOutput:
    """Variable slots a step fills from its handler's result data."""
    node_id_variable: Optional[str] = None
    edge_id_variable: Optional[str] = None
    file_path_variable: Optional[str] = None

    # (attribute name, key in handler data)
    SLOTS = (
        ("node_id_variable", "nodeId"),
        ("edge_id_variable", "edgeId"),
        ("file_path_variable", "filePath"),
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StepOutput":
        if not isinstance(data, dict):
            raise PlanParseError("Step output must be an object")
        return cls(
            node_id_variable=data.get("nodeIdVariable") or None,
            edge_id_variable=data.get("edgeIdVariable") or None,
            file_path_variable=data.get("filePathVariable") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {}
        if self.node_id_variable:
            out["nodeIdVariable"] = self.node_id_variable
        if self.edge_id_variable:
            out["edgeIdVariable"] = self.edge_id_variable
        if self.file_path_variable:
            out["filePathVariable"] = self.file_path_variable
        return out

    def variable_names(self) -> List[str]:
        return [getattr(self, attr) for attr, _ in self.SLOTS if getattr(self, attr)]

    def bindings_from(self, data: Optional[Dict[str, Any]]) -> Dict[str, str]:
        """Map declared variable names to the matching fields of handler data."""
        if not data:
            return {}
        bound = {}
        for attr, key in self.SLOTS:
            name = getattr(self, attr)
            if name and data.get(key):
                bound[name] = str(data[key])
        return bound


@dataclass(frozen=True)
class PlanStep:
    """One ordered unit of a plan.

    A step whose wire dict was malformed still parses and validation reports
    its ``defects``. An action that could not be built leaves ``action`` as
    None; ``action_error`` says why and ``raw_action`` keeps the original dict.
    """
    id: str
    order: int
    name: str
    action: Optional[Action]
    depends_on: Tuple[str, ...] = ()
    description: str = ""
    retry_count: Optional[int] = None
    retry_delay_ms: Optional[int] = None
    output: Optional[StepOutput] = None
    defects: Tuple[str, ...] = ()
    action_error: Optional[str] = None
    raw_action: Optional[Dict[str, Any]] = field(default=None, compare=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlanStep":
        if not isinstance(data, dict):
            return cls(id="", order=0, name="", action=None, defects=("Step must be an object",))
        defects: List[str] = []

        order = _optional_int(data.get("order"), "order", defects) or 0
        depends_on = data.get("dependsOn") or []
        if not isinstance(depends_on, list):
            defects.append("'dependsOn' must be a list")
            depends_on = []

        action = None
        action_error = None
        raw_action = data.get("action")
        if raw_action is not None:
            try:
                action = action_from_dict(raw_action)
            except PlanParseError as e:
                action_error = str(e)

        output = None
        output_data = data.get("output")
        if output_data:
            try:
                output = StepOutput.from_dict(output_data)
            except PlanParseError as e:
                defects.append(str(e))

        return cls(
            id=str(data.get("id") or ""),
            order=order,
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            action=action,
            depends_on=tuple(str(d) for d in depends_on),
            retry_count=_optional_int(data.get("retryCount"), "retryCount", defects),
            retry_delay_ms=_optional_int(data.get("retryDelayMs"), "retryDelayMs", defects),
            output=output,
            defects=tuple(defects),
            action_error=action_error,
            raw_action=raw_action if action is None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        if self.action is not None:
            action = self.action.to_dict()
        else:
            action = self.raw_action
        out: Dict[str, Any] = {
            "id": self.id,
            "order": self.order,
            "name": self.name,
            "action": action,
            "dependsOn": list(self.depends_on),
        }
        if self.description:
            out["description"] = self.description
        if self.retry_count is not None:
            out["retryCount"] = self.retry_count
        if self.retry_delay_ms is not None:
            out["retryDelayMs"] = self.retry_delay_ms
        if self.output is not None:
            out["output"] = self.output.to_dict()
        return out


@dataclass
class Plan:
    """A generated unit of work; only the validation fields change after creation."""
    id: str
    metadata: PlanMetadata
    context: PlanContext
    steps: List[PlanStep]
    version: str = PLAN_SCHEMA_VERSION
    validated: bool = False
    validation_errors: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Plan":
        if not isinstance(data, dict):
            raise PlanParseError("Plan must be a JSON object")
        if "metadata" not in data:
            raise PlanParseError("Plan is missing 'metadata'")
        steps = data.get("steps")
        if not isinstance(steps, list):
            raise PlanParseError("Plan is missing a 'steps' list")
        return cls(
            id=str(data.get("id") or ""),
            version=str(data.get("version") or PLAN_SCHEMA_VERSION),
            metadata=PlanMetadata.from_dict(data["metadata"]),
            context=PlanContext.from_dict(data.get("context")),
            steps=[PlanStep.from_dict(s) for s in steps],
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "id": self.id,
            "version": self.version,
            "metadata": self.metadata.to_dict(),
            "context": self.context.to_dict(),
            "steps": [s.to_dict() for s in self.steps],
        }
        if self.validated or self.validation_errors:
            out["validated"] = self.validated
            out["validationErrors"] = list(self.validation_errors)
        return out

    def ordered_steps(self) -> List[PlanStep]:
        """Steps in ascending declared order (stable for equal orders)."""
        return sorted(self.steps, key=lambda s: s.order)


# =============================================================================
# Execution state
# =============================================================================

def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class StepResult:
    step_id: str
    success: bool
    started_at: int
    completed_at: int
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    attempts: int = 1

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "stepId": self.step_id,
            "success": self.success,
            "startedAt": self.started_at,
            "completedAt": self.completed_at,
            "attempts": self.attempts,
        }
        if self.result is not None:
            out["result"] = self.result
        if self.error is not None:
            out["error"] = self.error
        return out


class ExecutionStatus(Enum):
    EXECUTING = "executing"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ExecutionState:
    plan_id: str
    status: ExecutionStatus = ExecutionStatus.EXECUTING
    current_step_index: int = 0
    step_results: List[StepResult] = field(default_factory=list)
    variables: Dict[str, str] = field(default_factory=dict)
    skipped_step_ids: List[str] = field(default_factory=list)
    started_at: int = field(default_factory=_now_ms)
    completed_at: Optional[int] = None

    def result_for(self, step_id: str) -> Optional[StepResult]:
        for result in self.step_results:
            if result.step_id == step_id:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "planId": self.plan_id,
            "status": self.status.value,
            "currentStepIndex": self.current_step_index,
            "stepResults": [r.to_dict() for r in self.step_results],
            "variables": dict(self.variables),
            "skippedStepIds": list(self.skipped_step_ids),
            "startedAt": self.started_at,
            "completedAt": self.completed_at,
        }

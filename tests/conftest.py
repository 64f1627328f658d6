"""Pytest configuration for planforge tests."""
import sys
from pathlib import Path

# Add src to path for the tests - conftest is in tests/, so parent.parent is project root
project_root = Path(__file__).resolve().parent.parent
src_path = project_root / "src"

sys.path.insert(0, str(src_path))

from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any, List, Tuple

import pytest
from unittest.mock import AsyncMock

from planforge.execution.actions import ActionType
from planforge.execution.events import StepEvent
from planforge.execution.plan import Plan
from planforge.execution.registry import ActionHandlerRegistry
from planforge.tools.base import ToolResult


def _step(step_id, order, action, depends_on=None, output=None, **extra):
    data = {
        "id": step_id,
        "order": order,
        "name": f"Step {step_id}",
        "action": action,
        "dependsOn": depends_on or [],
    }
    if output:
        data["output"] = output
    data.update(extra)
    return data


def _node(label, node_type="agent", **extra):
    return {"type": "CREATE_NODE", "nodeType": node_type, "label": label, **extra}


def _connect(source, target, edge_type="data"):
    return {"type": "CONNECT_NODES", "sourceId": source, "targetId": target, "edgeType": edge_type}


@pytest.fixture
def wire():
    """Builders for wire-format step and action dicts."""
    return SimpleNamespace(step=_step, node=_node, connect=_connect)


@pytest.fixture
def plan_factory():
    """Build a Plan from wire-format step dicts."""
    def _make(steps, name="Test plan", plan_id="plan-1", **metadata):
        return Plan.from_dict({
            "id": plan_id,
            "metadata": {"name": name, "complexity": "simple", **metadata},
            "steps": steps,
        })
    return _make


@pytest.fixture
def mock_registry():
    """Registry with a succeeding AsyncMock handler for every action type."""
    handlers = {t: AsyncMock(return_value=ToolResult.ok({})) for t in ActionType}
    registry = ActionHandlerRegistry(handlers)
    registry.mocks = handlers
    return registry


@dataclass
class RecordingObserver:
    """Keeps every notification in memory, in arrival order."""
    events: List[Tuple[str, Any]] = field(default_factory=list)

    def on_message(self, role: str, content: str) -> None:
        self.events.append(("message", (role, content)))

    def on_step_start(self, event: StepEvent) -> None:
        self.events.append(("step_start", event))

    def on_step_complete(self, event: StepEvent) -> None:
        self.events.append(("step_complete", event))

    def on_step_skipped(self, plan_id: str, step_id: str, reason: str) -> None:
        self.events.append(("step_skipped", (plan_id, step_id, reason)))

    def on_plan_complete(self, plan_id: str, success: bool) -> None:
        self.events.append(("plan_complete", (plan_id, success)))

    def on_state_change(self, state: str) -> None:
        self.events.append(("state_change", state))

    def of_kind(self, kind: str) -> List[Any]:
        return [payload for k, payload in self.events if k == kind]

    @property
    def messages(self) -> List[str]:
        return [content for _, content in self.of_kind("message")]

    @property
    def states(self) -> List[str]:
        return self.of_kind("state_change")


@pytest.fixture
def observer():
    """Observer that records every notification."""
    return RecordingObserver()

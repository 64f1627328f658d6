"""
Execution notifications.

The executor reports its transitions to an injected observer. Notifications are
fire-and-forget: the executor never waits on them and a failing observer is
logged, not propagated.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol


@dataclass
class StepEvent:
    """Payload for per-step start/complete notifications."""
    plan_id: str
    step_id: str
    step_name: str
    step_order: int
    total_steps: int
    success: Optional[bool] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class ExecutionObserver(Protocol):
    """Receives executor and session notifications."""

    def on_message(self, role: str, content: str) -> None:
        ...

    def on_step_start(self, event: StepEvent) -> None:
        ...

    def on_step_complete(self, event: StepEvent) -> None:
        ...

    def on_step_skipped(self, plan_id: str, step_id: str, reason: str) -> None:
        ...

    def on_plan_complete(self, plan_id: str, success: bool) -> None:
        ...

    def on_state_change(self, state: str) -> None:
        ...


class NullObserver:
    """Discards every notification."""

    def on_message(self, role: str, content: str) -> None:
        pass

    def on_step_start(self, event: StepEvent) -> None:
        pass

    def on_step_complete(self, event: StepEvent) -> None:
        pass

    def on_step_skipped(self, plan_id: str, step_id: str, reason: str) -> None:
        pass

    def on_plan_complete(self, plan_id: str, success: bool) -> None:
        pass

    def on_state_change(self, state: str) -> None:
        pass

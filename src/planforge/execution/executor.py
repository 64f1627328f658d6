"""Plan Executor - walks a plan's steps in order with retry and pause support.

State machine::

    executing -> (paused <-> executing) -> completed | failed

A step whose dependencies have not all succeeded is skipped and the loop
continues. A step that runs and exhausts its retries fails the whole plan.
Pause is cooperative and only observed between steps. ``continue_execution``
picks a paused run back up at its first unstarted step.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from planforge.config.defaults import EXECUTOR_RETRY_COUNT, EXECUTOR_RETRY_DELAY_MS
from planforge.execution.events import ExecutionObserver, NullObserver, StepEvent
from planforge.execution.plan import (
    ExecutionState,
    ExecutionStatus,
    Plan,
    PlanStep,
    StepResult,
)
from planforge.execution.registry import ActionHandlerRegistry
from planforge.execution.variables import describe_bindings, resolve_action_variables

logger = logging.getLogger(__name__)

EXECUTOR_ROLE = "builder"

Sleeper = Callable[[float], Awaitable[None]]


def _now_ms() -> int:
    return int(time.time() * 1000)


class PlanExecutor:
    """Executes one plan at a time; owns its ExecutionState and bindings."""

    def __init__(
        self,
        registry: ActionHandlerRegistry,
        observer: Optional[ExecutionObserver] = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        registry.require_complete()
        self.registry = registry
        self.observer = observer or NullObserver()
        self._sleep = sleep
        self.state: Optional[ExecutionState] = None
        self._plan: Optional[Plan] = None
        # First step a continued run starts from
        self._next_index = 0

    # =========================================================================
    # Notifications
    # =========================================================================

    def _notify(self, method: str, *args) -> None:
        try:
            getattr(self.observer, method)(*args)
        except Exception as e:
            logger.warning(f"Observer {method} failed: {e}")

    def _message(self, content: str) -> None:
        self._notify("on_message", EXECUTOR_ROLE, content)

    # =========================================================================
    # Control
    # =========================================================================

    def pause(self) -> None:
        """executing -> paused; otherwise a no-op."""
        if self.state is not None and self.state.status == ExecutionStatus.EXECUTING:
            self.state.status = ExecutionStatus.PAUSED
            logger.info("execution_paused", extra={"event": "execution_paused", "plan_id": self.state.plan_id})

    def resume(self) -> None:
        """paused -> executing; otherwise a no-op.

        Only flips the status. The state stays non-terminal until
        ``continue_execution`` runs the remaining steps.
        """
        if self.state is not None and self.state.status == ExecutionStatus.PAUSED:
            self.state.status = ExecutionStatus.EXECUTING
            logger.info("execution_resumed", extra={"event": "execution_resumed", "plan_id": self.state.plan_id})

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute(self, plan: Plan) -> ExecutionState:
        """Run ``plan`` to completion, failure, or pause."""
        self.state = ExecutionState(plan_id=plan.id)
        self._plan = plan
        self._next_index = 0
        self._message(
            f'Starting execution of plan "{plan.metadata.name}" with {len(plan.steps)} steps.'
        )
        return await self._run(plan, start_index=0)

    async def continue_execution(self) -> Optional[ExecutionState]:
        """Resume a paused run from its first unstarted step.

        A paused state is resumed first. Completed or failed runs are returned
        unchanged, and None means nothing has been executed yet.
        """
        if self.state is None or self._plan is None:
            return None
        self.resume()
        if self.state.status != ExecutionStatus.EXECUTING:
            return self.state
        self._message(f"Continuing from step {self._next_index + 1}.")
        return await self._run(self._plan, start_index=self._next_index)

    async def _run(self, plan: Plan, start_index: int) -> ExecutionState:
        state = self.state
        steps = plan.ordered_steps()
        total = len(steps)

        try:
            for index in range(start_index, total):
                if state.status == ExecutionStatus.PAUSED:
                    self._message("Execution paused.")
                    break

                step = steps[index]
                state.current_step_index = index
                self._next_index = index + 1

                if not self._dependencies_met(step):
                    state.skipped_step_ids.append(step.id)
                    reason = "dependencies not met"
                    logger.info(f"Skipping step {step.id}: {reason}")
                    self._notify("on_step_skipped", plan.id, step.id, reason)
                    self._message(f'Skipping step "{step.name}" - {reason}.')
                    continue

                self._notify("on_step_start", StepEvent(
                    plan_id=plan.id,
                    step_id=step.id,
                    step_name=step.name,
                    step_order=step.order,
                    total_steps=total,
                ))

                result = await self._execute_step(step)
                state.step_results.append(result)

                if result.success and step.output is not None:
                    state.variables.update(step.output.bindings_from(result.result))

                self._notify("on_step_complete", StepEvent(
                    plan_id=plan.id,
                    step_id=step.id,
                    step_name=step.name,
                    step_order=step.order,
                    total_steps=total,
                    success=result.success,
                    result=result.result,
                    error=result.error,
                ))

                if not result.success:
                    state.status = ExecutionStatus.FAILED
                    state.completed_at = _now_ms()
                    self._message(f'Step "{step.name}" failed: {result.error}')
                    break

                self._message(f"Completed step {index + 1}/{total}: {step.name}")

            if state.status == ExecutionStatus.EXECUTING:
                state.status = ExecutionStatus.COMPLETED
                state.completed_at = _now_ms()

        except Exception as e:
            logger.exception(f"Plan {plan.id} execution failed")
            state.status = ExecutionStatus.FAILED
            state.completed_at = _now_ms()
            self._message(f"Plan execution failed: {e}")
            self._notify("on_plan_complete", plan.id, False)
            return state

        logger.debug(f"Plan {plan.id} bindings: {describe_bindings(state.variables)}")
        if state.status != ExecutionStatus.PAUSED:
            self._notify("on_plan_complete", plan.id, state.status == ExecutionStatus.COMPLETED)
        self._message(summarize(state, plan))
        return state

    def _dependencies_met(self, step: PlanStep) -> bool:
        for dep_id in step.depends_on:
            result = self.state.result_for(dep_id)
            if result is None or not result.success:
                return False
        return True

    async def _execute_step(self, step: PlanStep) -> StepResult:
        """Resolve, dispatch, and retry a single step."""
        started_at = _now_ms()
        if step.action is None:
            # Unparsed actions are not retried
            return StepResult(
                step_id=step.id,
                success=False,
                started_at=started_at,
                completed_at=_now_ms(),
                error=step.action_error or f"Step {step.id} has no action",
            )

        attempts = max(1, step.retry_count or EXECUTOR_RETRY_COUNT)
        delay_ms = step.retry_delay_ms if step.retry_delay_ms is not None else EXECUTOR_RETRY_DELAY_MS
        last_error: Optional[str] = None

        for attempt in range(attempts):
            try:
                action = resolve_action_variables(step.action, self.state.variables)
                outcome = await self.registry.dispatch(action)
                if outcome.success:
                    return StepResult(
                        step_id=step.id,
                        success=True,
                        started_at=started_at,
                        completed_at=_now_ms(),
                        result=outcome.data,
                        attempts=attempt + 1,
                    )
                last_error = outcome.error or "Unknown error"
            except Exception as e:
                last_error = str(e) or type(e).__name__

            logger.warning(
                "step_attempt_failed",
                extra={
                    "event": "step_attempt_failed",
                    "step_id": step.id,
                    "attempt": attempt + 1,
                    "max_attempts": attempts,
                    "error": last_error,
                },
            )
            if attempt < attempts - 1:
                await self._sleep(delay_ms / 1000.0)

        return StepResult(
            step_id=step.id,
            success=False,
            started_at=started_at,
            completed_at=_now_ms(),
            error=last_error,
            attempts=attempts,
        )


def summarize(state: ExecutionState, plan: Plan) -> str:
    """Operator-facing one-line outcome."""
    name = plan.metadata.name
    succeeded = sum(1 for r in state.step_results if r.success)
    total = len(plan.steps)
    if state.status == ExecutionStatus.COMPLETED:
        text = f'Plan "{name}" completed successfully! ({succeeded}/{total} steps)'
        if state.skipped_step_ids:
            text += f", {len(state.skipped_step_ids)} skipped"
        return text
    if state.status == ExecutionStatus.FAILED:
        failed = next((r for r in state.step_results if not r.success), None)
        if failed is not None:
            return f'Plan "{name}" failed at step {failed.step_id}: {failed.error}'
        return f'Plan "{name}" failed.'
    return f'Plan "{name}" {state.status.value} after {succeeded}/{total} steps.'

"""Quality Remediation Controller.

Bounded self-healing loop over a completed run's quality scores:

    identify failures -> generate constraints -> patch owner configs
    -> partial re-execution -> poll new scores -> repeat (max 3)

A failed or timed-out re-execution, or failures remaining after the last
iteration, produce a single escalation that is never auto-applied. A re-run
that failed or timed out is diagnosed first and the escalation carries the
result. Every patch, re-execution and escalation is written to the operator
action log before the loop moves on.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from planforge.config.defaults import (
    REMEDIATION_MAX_ITERATIONS,
    REMEDIATION_PASS_THRESHOLD,
    REMEDIATION_POLL_INTERVAL_SECONDS,
    REMEDIATION_POLL_TIMEOUT_SECONDS,
    ROLE_REMEDIATION,
)
from planforge.errors import ProviderError
from planforge.execution.parser import strip_code_fence
from planforge.llm.failover import FailoverClient
from planforge.remediation.diagnosis import diagnose, recommend_action
from planforge.remediation.models import (
    DIMENSION_OWNERS,
    OVERALL_SCORE_KEY,
    EscalateAction,
    ExecutionLog,
    FailedDimension,
    OperatorAction,
    PassAction,
    PatchAction,
    ReExecuteAction,
    RemediationAction,
)
from planforge.remediation.patching import OwnerConfigStore
from planforge.store.execution_logs import STATUS_COMPLETED, STATUS_FAILED

logger = logging.getLogger(__name__)

REMEDIATION_SYSTEM_PROMPT = """You are a QA remediation specialist for an AI agent pipeline.
Given failed quality dimensions and their scores, write one specific, actionable
constraint per dimension to be added to the responsible agent's instructions.

A constraint is a clear directive that closes the measured gap. For example,
for Accessibility at 60/100: "Give every image descriptive alt text, label every
form input, and keep text contrast at or above 4.5:1."

Return ONLY valid JSON of this shape:
{"patches": [{"dimension": "<dimension name>", "constraint": "<constraint>"}]}"""


class ActionRecorder(Protocol):
    async def record(self, action: OperatorAction) -> int:
        ...


class ReExecutionBackend(Protocol):
    async def trigger_partial(self, system_slug: str, owners: List[str]) -> str:
        ...

    async def get(self, execution_id: str) -> Optional[ExecutionLog]:
        ...


def identify_failures(
    scores: Dict[str, float],
    threshold: float = REMEDIATION_PASS_THRESHOLD,
) -> List[FailedDimension]:
    """Dimensions with a known owner scoring below ``threshold``."""
    failures = []
    for dimension, score in scores.items():
        if dimension == OVERALL_SCORE_KEY:
            continue
        owner = DIMENSION_OWNERS.get(dimension)
        if owner is None:
            continue
        if score < threshold:
            failures.append(FailedDimension(dimension=dimension, score=score, owner=owner))
    return failures


def fallback_constraint(failure: FailedDimension, threshold: float = REMEDIATION_PASS_THRESHOLD) -> str:
    return f"Improve {failure.dimension} score (currently {failure.score}/{threshold} required)."


def build_escalation_summary(
    failures: List[FailedDimension],
    iterations: int,
    threshold: float = REMEDIATION_PASS_THRESHOLD,
) -> str:
    dims = ", ".join(f"{f.dimension}: {f.score}/{threshold}" for f in failures)
    return (
        f"QA remediation exhausted after {iterations} iterations. "
        f"Still failing: {dims}. Manual intervention required."
    )


def parse_constraints(text: str) -> Dict[str, str]:
    """dimension -> constraint from a ``{"patches": [...]}`` reply; {} if unusable."""
    try:
        data = json.loads(strip_code_fence(text))
    except json.JSONDecodeError:
        logger.warning("Remediation reply was not valid JSON; using fallback constraints")
        return {}
    patches = data.get("patches") if isinstance(data, dict) else None
    if not isinstance(patches, list):
        return {}
    constraints = {}
    for patch in patches:
        if not isinstance(patch, dict):
            continue
        dimension, constraint = patch.get("dimension"), patch.get("constraint")
        if isinstance(dimension, str) and isinstance(constraint, str) and constraint.strip():
            constraints.setdefault(dimension, constraint.strip())
    return constraints


class RemediationController:
    """Runs the patch / re-execute / re-score loop for one execution log."""

    def __init__(
        self,
        client: FailoverClient,
        config_store: OwnerConfigStore,
        action_log: ActionRecorder,
        executions: ReExecutionBackend,
        threshold: float = REMEDIATION_PASS_THRESHOLD,
        max_iterations: int = REMEDIATION_MAX_ITERATIONS,
        poll_interval: float = REMEDIATION_POLL_INTERVAL_SECONDS,
        poll_timeout: float = REMEDIATION_POLL_TIMEOUT_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        has_backup_keys: bool = False,
    ):
        self.client = client
        self.config_store = config_store
        self.action_log = action_log
        self.executions = executions
        self.threshold = threshold
        self.max_iterations = max_iterations
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self._sleep = sleep
        self._clock = clock
        self.has_backup_keys = has_backup_keys
        # Full trail of the last run, including passes that are not persisted
        self.trail: List[RemediationAction] = []

    async def _record(self, action: OperatorAction, actions: List[OperatorAction]) -> None:
        await self.action_log.record(action)
        actions.append(action)

    async def generate_constraints(
        self,
        failures: List[FailedDimension],
        scores: Dict[str, float],
    ) -> Dict[str, str]:
        """Constraint per failing dimension, falling back where the model is silent."""
        content = (
            f"The following quality dimensions failed (threshold: {self.threshold}/100):\n\n"
            f"{json.dumps([f.to_dict() for f in failures], indent=2)}\n\n"
            f"Full QA scores:\n{json.dumps(scores, indent=2)}\n\n"
            "Generate targeted constraints for each failed dimension."
        )
        completion = await self.client.generate(
            ROLE_REMEDIATION,
            REMEDIATION_SYSTEM_PROMPT,
            [{"role": "user", "content": content}],
        )
        suggested = parse_constraints(completion.text())
        return {
            f.dimension: suggested.get(f.dimension) or fallback_constraint(f, self.threshold)
            for f in failures
        }

    async def wait_for_scores(self, execution_id: str) -> Optional[Dict[str, float]]:
        """Poll until the re-run completes with scores; None on failure or timeout."""
        deadline = self._clock() + self.poll_timeout
        while self._clock() < deadline:
            log = await self.executions.get(execution_id)
            if log is None:
                return None
            if log.status == STATUS_COMPLETED and log.qa_scores:
                return dict(log.qa_scores)
            if log.status == STATUS_FAILED:
                return None
            await self._sleep(self.poll_interval)
        logger.warning(f"Re-execution {execution_id} timed out after {self.poll_timeout}s")
        return None

    async def diagnose_rerun(
        self,
        execution_id: str,
        owners: List[str],
        iteration: int,
        reason: str,
    ) -> Dict[str, Any]:
        """Root-cause a failed or stalled re-run for the escalation record.

        Returns ``diagnosis`` and ``recommendation`` entries, or an empty dict
        when the provider could not be reached.
        """
        log = await self.executions.get(execution_id)
        status = {
            "executionId": execution_id,
            "status": log.status if log is not None else "missing",
            "iteration": iteration,
            "owners": ", ".join(owners),
        }
        try:
            diagnosis = await diagnose(self.client, f"re-execution {execution_id}", status, reason)
        except ProviderError as e:
            logger.warning(f"Diagnosis of {execution_id} failed: {e}")
            return {}
        action_type, description, auto_applied = recommend_action(diagnosis, self.has_backup_keys)
        return {
            "diagnosis": diagnosis.to_dict(),
            "recommendation": {
                "actionType": action_type,
                "description": description,
                "autoApplied": auto_applied,
            },
        }

    async def run(self, execution_log: ExecutionLog) -> List[OperatorAction]:
        """Remediate ``execution_log``; returns the persisted actions in order."""
        actions: List[OperatorAction] = []
        self.trail = []
        deployment_id = execution_log.deployment_id
        scores = dict(execution_log.qa_scores)
        iteration = 0
        escalated = False

        while iteration < self.max_iterations:
            iteration += 1

            failures = identify_failures(scores, self.threshold)
            failing = {f.dimension for f in failures}
            for dimension, score in scores.items():
                if dimension in DIMENSION_OWNERS and dimension not in failing:
                    self.trail.append(PassAction(dimension=dimension, score=score))

            if not failures:
                logger.info(f"All dimensions pass at iteration {iteration}")
                break

            logger.info(
                f"Iteration {iteration}/{self.max_iterations}: {len(failures)} dimension(s) failed"
            )

            constraints = await self.generate_constraints(failures, scores)

            # One owner can be responsible for several dimensions; its section
            # holds all of their constraints.
            by_owner: Dict[str, List[FailedDimension]] = {}
            for failure in failures:
                by_owner.setdefault(failure.owner, []).append(failure)

            for owner, owned in by_owner.items():
                section = "\n\n".join(constraints[f.dimension] for f in owned)
                patch = await self.config_store.patch(execution_log.system_slug, owner, section)

                for failure in owned:
                    constraint = constraints[failure.dimension]
                    self.trail.append(PatchAction(
                        dimension=failure.dimension,
                        owner=owner,
                        constraint=constraint,
                        score=failure.score,
                    ))
                    await self._record(OperatorAction(
                        deployment_id=deployment_id,
                        action_type="patch",
                        description=f"Patched {owner} for {failure.dimension} (score: {failure.score})",
                        before_state={"config": patch.before, "score": failure.score},
                        after_state={"config": patch.after, "constraint": constraint},
                        auto_applied=True,
                    ), actions)
                    logger.info(
                        "remediation_patch_applied",
                        extra={
                            "event": "remediation_patch_applied",
                            "owner": owner,
                            "dimension": failure.dimension,
                            "score": failure.score,
                        },
                    )

            owners = list(by_owner)
            execution_id = await self.executions.trigger_partial(execution_log.system_slug, owners)
            self.trail.append(ReExecuteAction(owners=tuple(owners), iteration=iteration, execution_id=execution_id))
            await self._record(OperatorAction(
                deployment_id=deployment_id,
                action_type="re-execute",
                description=f"Re-executing agents: {', '.join(owners)} (iteration {iteration})",
                before_state={"qaScores": scores, "iteration": iteration},
                after_state={"executionId": execution_id, "agentSlugs": owners},
                auto_applied=True,
            ), actions)

            new_scores = await self.wait_for_scores(execution_id)
            if new_scores is None:
                reason = f"Re-execution failed or timed out at iteration {iteration}"
                diagnosis_state = await self.diagnose_rerun(execution_id, owners, iteration, reason)
                self.trail.append(EscalateAction(reason=reason, failed_dimensions=tuple(failures)))
                await self._record(OperatorAction(
                    deployment_id=deployment_id,
                    action_type="escalate",
                    description=reason,
                    before_state={"qaScores": scores, "iteration": iteration},
                    after_state={"executionId": execution_id, **diagnosis_state},
                    auto_applied=False,
                ), actions)
                escalated = True
                break

            scores = new_scores

        remaining = identify_failures(scores, self.threshold)
        if remaining and iteration >= self.max_iterations and not escalated:
            summary = build_escalation_summary(remaining, iteration, self.threshold)
            self.trail.append(EscalateAction(reason=summary, failed_dimensions=tuple(remaining)))
            await self._record(OperatorAction(
                deployment_id=deployment_id,
                action_type="escalate",
                description=summary,
                before_state={"qaScores": scores, "iteration": iteration},
                after_state={"failedDimensions": [f.to_dict() for f in remaining]},
                auto_applied=False,
            ), actions)
            logger.warning(
                "remediation_escalated",
                extra={"event": "remediation_escalated", "deployment_id": deployment_id, "iterations": iteration},
            )

        return actions

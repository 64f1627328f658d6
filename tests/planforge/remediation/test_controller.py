"""Tests for the quality remediation controller."""

import json

import pytest
from unittest.mock import AsyncMock

from planforge.errors import NoCredentialsError
from planforge.llm.failover import CompletionResult
from planforge.remediation.controller import (
    RemediationController,
    build_escalation_summary,
    identify_failures,
    parse_constraints,
)
from planforge.remediation.models import EscalateAction, ExecutionLog, FailedDimension, PassAction
from planforge.remediation.patching import OwnerConfigStore


class FakeActionLog:
    def __init__(self):
        self.recorded = []

    async def record(self, action):
        self.recorded.append(action)
        action.id = len(self.recorded)
        return action.id


class FakeExecutions:
    """Hands out re-run ids and reports each re-run from a scripted list."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.triggered = []

    async def trigger_partial(self, system_slug, owners):
        execution_id = f"rerun-{len(self.triggered) + 1}"
        self.triggered.append((system_slug, list(owners)))
        return execution_id

    async def get(self, execution_id):
        index = int(execution_id.split("-")[1]) - 1
        outcome = self.outcomes[index]
        if outcome is None:
            return None
        status, scores = outcome
        return ExecutionLog(id=execution_id, deployment_id="dep-1", system_slug="acme", qa_scores=scores, status=status)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.now += seconds


def _client(reply=None):
    client = AsyncMock()
    client.generate.return_value = CompletionResult(
        content=[{"type": "text", "text": reply if reply is not None else ""}],
        model="m",
        tier="primary",
    )
    return client


def _controller(tmp_path, executions, client=None, clock=None, has_backup_keys=False):
    clock = clock or FakeClock()
    return RemediationController(
        client=client or _client(),
        config_store=OwnerConfigStore(tmp_path),
        action_log=FakeActionLog(),
        executions=executions,
        poll_interval=5.0,
        poll_timeout=300.0,
        sleep=clock.sleep,
        clock=clock,
        has_backup_keys=has_backup_keys,
    )


def _log(scores):
    return ExecutionLog(id="exec-1", deployment_id="dep-1", system_slug="acme", qa_scores=scores)


# =============================================================================
# Helpers
# =============================================================================

def test_identify_failures_skips_overall_and_unknown_dimensions():
    failures = identify_failures({"overall": 40, "Accessibility": 72, "SEO": 92, "Vibes": 10})
    assert failures == [FailedDimension("Accessibility", 72, "ux-ui-architect")]


def test_threshold_is_inclusive_pass():
    assert identify_failures({"SEO": 85}) == []
    assert len(identify_failures({"SEO": 84.9})) == 1


def test_parse_constraints():
    reply = json.dumps({"patches": [
        {"dimension": "SEO", "constraint": "  Add meta descriptions. "},
        {"dimension": "SEO", "constraint": "Ignored duplicate."},
        {"dimension": "Copy Quality"},
        "junk",
    ]})
    assert parse_constraints(reply) == {"SEO": "Add meta descriptions."}
    assert parse_constraints("not json") == {}
    assert parse_constraints('{"patches": "nope"}') == {}


def test_escalation_summary():
    summary = build_escalation_summary([FailedDimension("SEO", 70, "perf-seo-engineer")], 3)
    assert summary == (
        "QA remediation exhausted after 3 iterations. Still failing: SEO: 70/85. "
        "Manual intervention required."
    )


# =============================================================================
# Loop
# =============================================================================

@pytest.mark.asyncio
async def test_single_failure_patches_owner_and_reruns(tmp_path):
    executions = FakeExecutions([("completed", {"Accessibility": 90, "SEO": 92})])
    reply = json.dumps({"patches": [{"dimension": "Accessibility", "constraint": "Label every input."}]})
    controller = _controller(tmp_path, executions, client=_client(reply))

    actions = await controller.run(_log({"Accessibility": 72, "SEO": 92}))

    assert [a.action_type for a in actions] == ["patch", "re-execute"]
    patch = actions[0]
    assert patch.description == "Patched ux-ui-architect for Accessibility (score: 72)"
    assert patch.auto_applied is True
    assert patch.after_state["constraint"] == "Label every input."
    assert executions.triggered == [("acme", ["ux-ui-architect"])]
    config = (tmp_path / "acme" / "ux-ui-architect" / "AGENT.md").read_text()
    assert "Label every input." in config
    assert controller.action_log.recorded == actions
    assert PassAction("SEO", 92) in controller.trail


@pytest.mark.asyncio
async def test_missing_constraint_uses_fallback(tmp_path):
    executions = FakeExecutions([("completed", {"SEO": 90})])
    controller = _controller(tmp_path, executions, client=_client("no json here"))

    actions = await controller.run(_log({"SEO": 60}))

    assert actions[0].after_state["constraint"] == "Improve SEO score (currently 60/85 required)."


@pytest.mark.asyncio
async def test_shared_owner_gets_both_constraints_in_one_section(tmp_path):
    executions = FakeExecutions([("completed", {"Accessibility": 90, "UX/Usability": 90})])
    reply = json.dumps({"patches": [
        {"dimension": "Accessibility", "constraint": "Rule A."},
        {"dimension": "UX/Usability", "constraint": "Rule B."},
    ]})
    controller = _controller(tmp_path, executions, client=_client(reply))

    actions = await controller.run(_log({"Accessibility": 70, "UX/Usability": 75}))

    assert [a.action_type for a in actions] == ["patch", "patch", "re-execute"]
    config = (tmp_path / "acme" / "ux-ui-architect" / "AGENT.md").read_text()
    assert "Rule A." in config and "Rule B." in config
    assert executions.triggered == [("acme", ["ux-ui-architect"])]


@pytest.mark.asyncio
async def test_three_failing_iterations_escalate_once(tmp_path):
    executions = FakeExecutions([
        ("completed", {"SEO": 70}),
        ("completed", {"SEO": 75}),
        ("completed", {"SEO": 80}),
    ])
    controller = _controller(tmp_path, executions)

    actions = await controller.run(_log({"SEO": 60}))

    assert [a.action_type for a in actions] == [
        "patch", "re-execute",
        "patch", "re-execute",
        "patch", "re-execute",
        "escalate",
    ]
    escalation = actions[-1]
    assert escalation.auto_applied is False
    assert escalation.approved is None
    assert escalation.description == (
        "QA remediation exhausted after 3 iterations. Still failing: SEO: 80/85. "
        "Manual intervention required."
    )
    assert sum(isinstance(a, EscalateAction) for a in controller.trail) == 1


@pytest.mark.asyncio
async def test_passing_on_last_iteration_does_not_escalate(tmp_path):
    executions = FakeExecutions([
        ("completed", {"SEO": 70}),
        ("completed", {"SEO": 70}),
        ("completed", {"SEO": 88}),
    ])
    actions = await _controller(tmp_path, executions).run(_log({"SEO": 60}))

    assert "escalate" not in [a.action_type for a in actions]


@pytest.mark.asyncio
async def test_failed_rerun_escalates_immediately(tmp_path):
    executions = FakeExecutions([("failed", {})])

    actions = await _controller(tmp_path, executions).run(_log({"SEO": 60}))

    assert [a.action_type for a in actions] == ["patch", "re-execute", "escalate"]
    assert actions[-1].description == "Re-execution failed or timed out at iteration 1"
    assert actions[-1].auto_applied is False


@pytest.mark.asyncio
async def test_polling_timeout_escalates(tmp_path):
    executions = FakeExecutions([("running", {})])
    clock = FakeClock()
    controller = _controller(tmp_path, executions, clock=clock)

    actions = await controller.run(_log({"SEO": 60}))

    assert [a.action_type for a in actions] == ["patch", "re-execute", "escalate"]
    assert clock.now >= 300.0


def _completion(text):
    return CompletionResult(content=[{"type": "text", "text": text}], model="m", tier="primary")


@pytest.mark.asyncio
async def test_failed_rerun_escalation_carries_diagnosis(tmp_path):
    executions = FakeExecutions([("failed", {})])
    client = AsyncMock()
    client.generate.side_effect = [
        _completion("no json here"),
        _completion(json.dumps({"kind": "timeout", "detail": "Build stalled on asset upload"})),
    ]

    actions = await _controller(tmp_path, executions, client=client).run(_log({"SEO": 60}))

    escalation = actions[-1]
    assert escalation.action_type == "escalate"
    assert escalation.auto_applied is False
    assert escalation.after_state == {
        "executionId": "rerun-1",
        "diagnosis": {"kind": "timeout", "detail": "Build stalled on asset upload"},
        "recommendation": {
            "actionType": "flag_timeout",
            "description": "Timeout: Build stalled on asset upload",
            "autoApplied": False,
        },
    }
    role, _, messages = client.generate.await_args.args
    assert role == "builder"
    assert "status: failed" in messages[0]["content"]
    assert "Re-execution failed or timed out at iteration 1" in messages[0]["content"]


@pytest.mark.asyncio
async def test_timed_out_rerun_with_backup_keys_recommends_failover(tmp_path):
    executions = FakeExecutions([("running", {})])
    client = AsyncMock()
    client.generate.side_effect = [
        _completion("no json here"),
        _completion(json.dumps({"kind": "expired_key", "detail": "401 from provider"})),
    ]
    controller = _controller(tmp_path, executions, client=client, has_backup_keys=True)

    actions = await controller.run(_log({"SEO": 60}))

    recommendation = actions[-1].after_state["recommendation"]
    assert recommendation["actionType"] == "key_rotation_available"
    assert recommendation["autoApplied"] is True
    assert actions[-1].auto_applied is False
    assert "status: running" in client.generate.await_args.args[2][0]["content"]


@pytest.mark.asyncio
async def test_unreachable_provider_still_escalates_without_diagnosis(tmp_path):
    executions = FakeExecutions([("failed", {})])
    client = AsyncMock()
    client.generate.side_effect = [
        _completion("no json here"),
        NoCredentialsError("[builder] No API keys configured."),
    ]

    actions = await _controller(tmp_path, executions, client=client).run(_log({"SEO": 60}))

    assert [a.action_type for a in actions] == ["patch", "re-execute", "escalate"]
    assert actions[-1].after_state == {"executionId": "rerun-1"}


@pytest.mark.asyncio
async def test_all_passing_records_nothing(tmp_path):
    executions = FakeExecutions([])
    controller = _controller(tmp_path, executions)

    actions = await controller.run(_log({"overall": 90, "SEO": 90, "Copy Quality": 95}))

    assert actions == []
    assert executions.triggered == []
    controller.client.generate.assert_not_awaited()
    assert {a.dimension for a in controller.trail} == {"SEO", "Copy Quality"}

"""Tests for root-cause diagnosis."""

import json

import pytest
from unittest.mock import AsyncMock

from planforge.llm.failover import CompletionResult
from planforge.remediation.diagnosis import (
    DIAGNOSIS_SYSTEM_PROMPT,
    build_diagnosis_message,
    diagnose,
    parse_diagnosis,
    recommend_action,
)
from planforge.remediation.models import Diagnosis, DiagnosisKind


def test_parse_valid_reply():
    diagnosis = parse_diagnosis('{"kind": "rate_limit", "detail": "429 from upstream"}')
    assert diagnosis == Diagnosis(DiagnosisKind.RATE_LIMIT, "429 from upstream")


def test_parse_fenced_reply():
    fence = "`" * 3
    text = f'{fence}json\n{{"kind": "oom", "detail": "killed"}}\n{fence}'
    assert parse_diagnosis(text).kind is DiagnosisKind.OOM


@pytest.mark.parametrize("text", [
    "the service looks unhappy",
    '{"kind": "gremlins", "detail": "x"}',
    '{"kind": "timeout"}',
    "[]",
])
def test_parse_falls_back_to_unknown(text):
    diagnosis = parse_diagnosis(text)
    assert diagnosis.kind is DiagnosisKind.UNKNOWN
    assert diagnosis.detail == text[:500]


def test_message_includes_status_and_errors():
    text = build_diagnosis_message("worker-3", {"status": "crashed", "restarts": 4}, "")
    assert text.splitlines()[:3] == ["Subject: worker-3", "status: crashed", "restarts: 4"]
    assert text.endswith("(no recent errors)")


@pytest.mark.asyncio
async def test_diagnose_uses_builder_role():
    client = AsyncMock()
    client.generate.return_value = CompletionResult(
        content=[{"type": "text", "text": json.dumps({"kind": "expired_key", "detail": "401"})}],
        model="m",
        tier="primary",
    )

    diagnosis = await diagnose(client, "worker-3", {"status": "down"}, "401 Unauthorized")

    assert diagnosis.kind is DiagnosisKind.EXPIRED_KEY
    role, system, messages = client.generate.await_args.args
    assert role == "builder"
    assert system == DIAGNOSIS_SYSTEM_PROMPT
    assert "401 Unauthorized" in messages[0]["content"]


def test_expired_key_with_backup_is_auto_applied():
    action_type, _, auto = recommend_action(Diagnosis(DiagnosisKind.EXPIRED_KEY), has_backup_keys=True)
    assert (action_type, auto) == ("key_rotation_available", True)


def test_expired_key_without_backup_needs_review():
    action_type, description, auto = recommend_action(Diagnosis(DiagnosisKind.EXPIRED_KEY))
    assert action_type == "key_rotation_needed"
    assert "Manual rotation required" in description
    assert auto is False


@pytest.mark.parametrize("kind,expected", [
    (DiagnosisKind.RATE_LIMIT, "flag_rate_limit"),
    (DiagnosisKind.TIMEOUT, "flag_timeout"),
    (DiagnosisKind.OOM, "flag_oom"),
    (DiagnosisKind.MALFORMED_CONFIG, "flag_config_error"),
    (DiagnosisKind.DEPENDENCY_FAILURE, "flag_dependency"),
    (DiagnosisKind.UNKNOWN, "flag_unknown"),
])
def test_other_kinds_are_flagged_for_review(kind, expected):
    action_type, description, auto = recommend_action(Diagnosis(kind, "detail"))
    assert action_type == expected
    assert description.endswith("detail")
    assert auto is False

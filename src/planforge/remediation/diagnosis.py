"""Root-cause diagnosis for failed runs.

The builder role classifies a failure from its status and recent error output.
Anything that does not parse into a known kind becomes ``unknown`` carrying the
first 500 characters of the reply.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Tuple

from planforge.config.defaults import ROLE_BUILDER
from planforge.execution.parser import strip_code_fence
from planforge.llm.failover import FailoverClient
from planforge.remediation.models import Diagnosis, DiagnosisKind

logger = logging.getLogger(__name__)

DIAGNOSIS_SYSTEM_PROMPT = "\n".join([
    "You are a system operations expert. Diagnose the root cause of a failed run from its status and error output.",
    'Respond with ONLY a JSON object: {"kind": "<kind>", "detail": "<explanation>"}',
    "Valid kinds: " + ", ".join(k.value for k in DiagnosisKind),
])

UNKNOWN_DETAIL_LIMIT = 500


def parse_diagnosis(text: str) -> Diagnosis:
    """Parse a ``{"kind", "detail"}`` reply; unknown on anything else."""
    try:
        data = json.loads(strip_code_fence(text))
    except json.JSONDecodeError:
        data = None
    if isinstance(data, dict) and isinstance(data.get("kind"), str) and isinstance(data.get("detail"), str):
        try:
            return Diagnosis(kind=DiagnosisKind(data["kind"]), detail=data["detail"])
        except ValueError:
            pass
    return Diagnosis(kind=DiagnosisKind.UNKNOWN, detail=text[:UNKNOWN_DETAIL_LIMIT])


def build_diagnosis_message(subject: str, status: Dict[str, Any], error_context: str) -> str:
    lines = [f"Subject: {subject}"]
    for key, value in status.items():
        lines.append(f"{key}: {value}")
    lines.extend(["", "Recent error output:", error_context or "(no recent errors)"])
    return "\n".join(lines)


async def diagnose(
    client: FailoverClient,
    subject: str,
    status: Optional[Dict[str, Any]] = None,
    error_context: str = "",
) -> Diagnosis:
    """Ask the builder role for a root-cause classification.

    Provider errors propagate; only the reply's content is forgiven.
    """
    message = build_diagnosis_message(subject, status or {}, error_context)
    completion = await client.generate(
        ROLE_BUILDER,
        DIAGNOSIS_SYSTEM_PROMPT,
        [{"role": "user", "content": message}],
    )
    diagnosis = parse_diagnosis(completion.text())
    logger.info(
        "diagnosis_complete",
        extra={"event": "diagnosis_complete", "subject": subject, "kind": diagnosis.kind.value},
    )
    return diagnosis


def recommend_action(diagnosis: Diagnosis, has_backup_keys: bool = False) -> Tuple[str, str, bool]:
    """(action_type, description, auto_applied) for a diagnosis.

    Only an expired key with backup credentials present is considered handled
    automatically, since the failover chain already routes around it.
    """
    kind = diagnosis.kind
    if kind == DiagnosisKind.EXPIRED_KEY:
        if has_backup_keys:
            return ("key_rotation_available", "Expired API key detected. Backup keys present, failover chain active.", True)
        return ("key_rotation_needed", "Expired API key detected. No backup keys configured. Manual rotation required.", False)
    if kind == DiagnosisKind.RATE_LIMIT:
        return ("flag_rate_limit", f"Rate limited: {diagnosis.detail}", False)
    if kind == DiagnosisKind.TIMEOUT:
        return ("flag_timeout", f"Timeout: {diagnosis.detail}", False)
    if kind == DiagnosisKind.OOM:
        return ("flag_oom", f"Out of memory: {diagnosis.detail}", False)
    if kind == DiagnosisKind.MALFORMED_CONFIG:
        return ("flag_config_error", f"Malformed config: {diagnosis.detail}", False)
    if kind == DiagnosisKind.DEPENDENCY_FAILURE:
        return ("flag_dependency", f"Dependency failure: {diagnosis.detail}", False)
    return ("flag_unknown", f"Unknown issue: {diagnosis.detail}", False)

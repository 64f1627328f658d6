"""Plan JSON parsing for generator output.

The architect frequently wraps its JSON in a Markdown code fence; that fence
is stripped before parsing. Only invalid JSON or a plan missing ``metadata`` or
``steps`` raises PlanParseError; malformed steps are kept and reported by
validation.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Optional

from planforge.config.defaults import PLAN_SCHEMA_VERSION
from planforge.errors import PlanParseError
from planforge.execution.plan import Plan, PlanContext

logger = logging.getLogger(__name__)

FENCE = "`" * 3


def strip_code_fence(content: str) -> str:
    """Remove one leading ```/```json line and one trailing ``` line."""
    content = content.strip()
    if content.startswith(FENCE):
        first_newline = content.find("\n")
        content = content[first_newline + 1:] if first_newline != -1 else ""
        if content.rstrip().endswith(FENCE):
            content = content.rstrip()[: -len(FENCE)]
    return content.strip()


def parse_plan(
    text: str,
    user_intent: str = "",
    context: Optional[PlanContext] = None,
) -> Plan:
    """Parse generator output into a Plan.

    Args:
        text: Raw completion text, optionally fenced
        user_intent: Original request; used when no context is given
        context: Snapshot to attach; replaces whatever the model echoed back

    Returns:
        Plan with a guaranteed id and schema version (not yet validated)

    Raises:
        PlanParseError: Invalid JSON, or no ``metadata`` object or ``steps`` list
    """
    json_str = strip_code_fence(text)
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in plan response: {e}")
        logger.debug(f"Raw response: {text[:500]}...")
        raise PlanParseError(f"Invalid plan JSON: {e}", raw_response=text) from e

    try:
        plan = Plan.from_dict(data)
    except PlanParseError as e:
        e.raw_response = text
        raise

    if not plan.id:
        plan.id = str(uuid.uuid4())
    plan.version = PLAN_SCHEMA_VERSION
    plan.context = context if context is not None else PlanContext(user_intent=user_intent)
    return plan

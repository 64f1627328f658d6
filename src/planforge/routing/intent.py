"""
Intent classification for inbound operator messages.

An LLM classification through the failover client is tried first; when it is
unavailable, fails, or returns no JSON, keyword scoring takes over.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from planforge.config.defaults import (
    ROLE_BUILDER,
    ROUTER_FALLBACK_BASE_CONFIDENCE,
    ROUTER_FALLBACK_CONFIDENCE_STEP,
    ROUTER_FALLBACK_MAX_CONFIDENCE,
    ROUTER_UNKNOWN_CONFIDENCE,
)
from planforge.llm.failover import FailoverClient

logger = logging.getLogger(__name__)


class IntentType(Enum):
    BUILD = "BUILD"
    EDIT = "EDIT"
    QUERY = "QUERY"
    EXPORT = "EXPORT"
    CONFIGURE = "CONFIGURE"
    UNKNOWN = "UNKNOWN"


KEYWORDS: Dict[IntentType, List[str]] = {
    IntentType.BUILD: [
        "create", "build", "add", "make", "new", "generate", "setup", "design",
        "construct", "implement", "deploy",
    ],
    IntentType.EDIT: [
        "change", "modify", "update", "edit", "rename", "move", "delete", "remove",
        "configure", "adjust", "fix", "connect", "disconnect", "link",
    ],
    IntentType.QUERY: [
        "what", "how", "why", "which", "where", "when", "who", "show", "list",
        "display", "explain", "describe", "tell me", "?",
    ],
    IntentType.EXPORT: [
        "export", "download", "save", "output", "generate file", "get json",
        "get yaml", "get markdown",
    ],
    IntentType.CONFIGURE: [
        "setting", "settings", "preference", "config", "configuration", "option",
    ],
}

NODE_TYPE_KEYWORDS = ["agent", "skill", "department", "pool", "hook", "command", "mcp", "workflow"]

JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


@dataclass
class IntentResult:
    """Result of intent classification."""

    intent_type: IntentType
    confidence: float = 0.0
    entities: Dict[str, List[str]] = field(default_factory=dict)
    raw_intent: str = ""
    source: str = "keywords"


SYSTEM_PROMPT = """You are an intent classifier for an agent workflow builder.
Classify the user's message into one of these intent types:
- BUILD: create new agents, workflows, departments or other components
- EDIT: modify, update or remove existing components
- QUERY: ask about the system or the existing components
- EXPORT: export, download or save the workflow
- CONFIGURE: change settings or configuration
- UNKNOWN: cannot determine intent

Also extract entities: nodeTypes, nodeNames, actions.

Respond with JSON only:
{"type": "BUILD|EDIT|QUERY|EXPORT|CONFIGURE|UNKNOWN", "confidence": 0.0,
 "entities": {"nodeTypes": [], "nodeNames": [], "actions": []},
 "rawIntent": "brief summary"}"""


def classify_by_keywords(message: str) -> IntentResult:
    """Keyword scoring; the intent with the most hits wins (first on ties)."""
    lower = message.lower()
    best, best_count = IntentType.UNKNOWN, 0
    for intent_type, words in KEYWORDS.items():
        count = sum(1 for w in words if w in lower)
        if count > best_count:
            best, best_count = intent_type, count

    if best_count > 0:
        confidence = min(
            ROUTER_FALLBACK_BASE_CONFIDENCE + best_count * ROUTER_FALLBACK_CONFIDENCE_STEP,
            ROUTER_FALLBACK_MAX_CONFIDENCE,
        )
    else:
        confidence = ROUTER_UNKNOWN_CONFIDENCE

    entities: Dict[str, List[str]] = {
        "actions": [w for w in KEYWORDS[IntentType.BUILD] if w in lower],
    }
    node_types = [k for k in NODE_TYPE_KEYWORDS if k in lower]
    if node_types:
        entities["nodeTypes"] = node_types

    return IntentResult(
        intent_type=best,
        confidence=round(confidence, 2),
        entities=entities,
        raw_intent=message,
    )


def parse_classification(text: str, message: str) -> Optional[IntentResult]:
    """Parse the model's JSON; None when there is no usable object."""
    match = JSON_OBJECT.search(text)
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    raw_type = data.get("type")
    try:
        intent_type = IntentType(raw_type.upper()) if isinstance(raw_type, str) else IntentType.UNKNOWN
    except ValueError:
        intent_type = IntentType.UNKNOWN

    confidence = data.get("confidence")
    if isinstance(confidence, (int, float)) and not isinstance(confidence, bool):
        confidence = max(0.0, min(1.0, float(confidence)))
    else:
        confidence = 0.8

    entities = data.get("entities") if isinstance(data.get("entities"), dict) else {}
    raw_intent = data.get("rawIntent") if isinstance(data.get("rawIntent"), str) else message
    return IntentResult(
        intent_type=intent_type,
        confidence=confidence,
        entities=entities,
        raw_intent=raw_intent,
        source="llm",
    )


class IntentClassifier:
    """
    Classifies operator messages.

    Example usage:

        classifier = IntentClassifier(client)
        result = await classifier.classify("create a supervisor with two workers")
        # -> IntentResult(intent_type=BUILD, ...)
    """

    def __init__(self, client: Optional[FailoverClient] = None):
        self.client = client

    async def classify(self, message: str) -> IntentResult:
        if self.client is not None:
            try:
                completion = await self.client.generate(
                    ROLE_BUILDER,
                    SYSTEM_PROMPT,
                    [{"role": "user", "content": f'User message: "{message}"'}],
                )
                result = parse_classification(completion.text(), message)
                if result is not None:
                    return result
                logger.warning("Intent classification returned no JSON, using keywords")
            except Exception as e:
                logger.warning(f"Intent classification failed, using keywords: {e}")
        return classify_by_keywords(message)

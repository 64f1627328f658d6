"""Intent routing for operator sessions."""

from planforge.routing.intent import IntentClassifier, IntentResult, IntentType, classify_by_keywords
from planforge.routing.session import IntentRouter, RouterOutcome, SessionState

__all__ = [
    "IntentClassifier",
    "IntentResult",
    "IntentType",
    "classify_by_keywords",
    "IntentRouter",
    "RouterOutcome",
    "SessionState",
]

"""Exception hierarchy for planforge.

Provides:
- PlanforgeError: base class for everything raised by this package
- PlanParseError / UnresolvedVariableError: plan-level failures
- ProviderError and subclasses: generation-service failures
- RemediationError / RouterError: orchestration failures with a step tag
"""

from __future__ import annotations

from typing import Any, Optional


class PlanforgeError(Exception):
    """Base error for planforge."""
    pass


class PlanParseError(PlanforgeError):
    """Raised when generated plan text cannot be turned into a Plan."""

    def __init__(self, message: str, raw_response: str = ""):
        super().__init__(message)
        self.raw_response = raw_response


class UnresolvedVariableError(PlanforgeError):
    """Raised when a ${name} placeholder has no binding at run time."""

    def __init__(self, name: str):
        super().__init__(f"Unresolved variable: {name}")
        self.name = name


# =============================================================================
# Provider errors
# =============================================================================

class ProviderError(PlanforgeError):
    """Base error for generation-service calls."""
    pass


class ProviderHTTPError(ProviderError):
    """Upstream returned a non-success HTTP status."""

    def __init__(self, status: int, message: str = ""):
        super().__init__(f"Provider error {status}: {message}" if message else f"Provider error {status}")
        self.status = status
        self.message = message


class NoCredentialsError(ProviderError):
    """No credentials configured for a role; raised before any network I/O."""
    pass


class ProviderExhausted(ProviderError):
    """Every configured tier was tried and returned a transient failure."""

    def __init__(self, role: str, attempts: Optional[list] = None, last_error: Optional[BaseException] = None):
        tiers = ", ".join(attempts or []) or "none"
        super().__init__(f"[{role}] All API attempts exhausted (tried: {tiers}). Check your rate limits.")
        self.role = role
        self.attempts = list(attempts or [])
        self.last_error = last_error


class NoTextContentError(ProviderError):
    """Completion held no plain-text content block."""
    pass


# =============================================================================
# Orchestration errors
# =============================================================================

class RemediationError(PlanforgeError):
    """Failure inside the quality remediation loop."""

    def __init__(self, message: str, step: str = "", cause: Any = None):
        super().__init__(message)
        self.step = step
        self.cause = cause


class RouterError(PlanforgeError):
    """Failure while routing an inbound message."""

    def __init__(self, message: str, step: str = "", cause: Any = None):
        super().__init__(message)
        self.step = step
        self.cause = cause

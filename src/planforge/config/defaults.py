"""Default configuration values for planforge.

This module centralizes the hard-coded numbers (retry budgets, thresholds,
timeouts, model names) into a single location. All modules should import
these constants instead of hard-coding values.

Usage:
    from planforge.config.defaults import (
        EXECUTOR_RETRY_COUNT,
        REMEDIATION_PASS_THRESHOLD,
    )
"""

from __future__ import annotations

# =============================================================================
# Plan Executor Defaults
# =============================================================================

EXECUTOR_RETRY_COUNT = 3  # attempts per step, including the first
EXECUTOR_RETRY_DELAY_MS = 1000  # fixed, not exponential


# =============================================================================
# Plan Schema Defaults
# =============================================================================

PLAN_SCHEMA_VERSION = "1.0"
PLAN_COMPLEXITY_TIERS = ("simple", "moderate", "complex")
DEFAULT_EDGE_TYPE = "data"
EDGE_TYPES = ("data", "control", "event", "delegation", "failover")
CAPABILITY_TYPES = ("skill", "hook", "command")


# =============================================================================
# Provider Failover Defaults
# =============================================================================

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_API_VERSION = "2023-06-01"
PROVIDER_TIMEOUT_SECONDS = 120.0

# HTTP statuses that fall through to the next tier
TRANSIENT_STATUS_CODES = frozenset({429, 529})

ROLE_ARCHITECT = "architect"
ROLE_BUILDER = "builder"
ROLE_REMEDIATION = "remediation"
ROLES = (ROLE_ARCHITECT, ROLE_BUILDER, ROLE_REMEDIATION)

# Architect emits whole plans as JSON and needs the larger output buffer
ROLE_MAX_TOKENS = {
    ROLE_ARCHITECT: 16384,
    ROLE_BUILDER: 8192,
    ROLE_REMEDIATION: 8192,
}

ROLE_MODELS = {
    ROLE_ARCHITECT: {
        "preferred": "claude-opus-4-5-20251101",
        "emergency": "claude-sonnet-4-5-20250929",
    },
    ROLE_BUILDER: {
        "preferred": "claude-sonnet-4-5-20250929",
        "emergency": "claude-3-7-sonnet-20250219",
    },
    ROLE_REMEDIATION: {
        "preferred": "claude-opus-4-5-20251101",
        "emergency": "claude-sonnet-4-5-20250929",
    },
}


# =============================================================================
# Quality Remediation Defaults
# =============================================================================

REMEDIATION_PASS_THRESHOLD = 85
REMEDIATION_MAX_ITERATIONS = 3
REMEDIATION_POLL_INTERVAL_SECONDS = 5.0
REMEDIATION_POLL_TIMEOUT_SECONDS = 300.0
REMEDIATION_SECTION_MARKER = "## QA Remediation Constraints"
REMEDIATION_SECTION_END = "<!-- end QA Remediation Constraints -->"
REMEDIATION_CONFIG_FILENAME = "AGENT.md"


# =============================================================================
# Intent Router Defaults
# =============================================================================

ROUTER_FALLBACK_BASE_CONFIDENCE = 0.6
ROUTER_FALLBACK_CONFIDENCE_STEP = 0.1
ROUTER_FALLBACK_MAX_CONFIDENCE = 0.9
ROUTER_UNKNOWN_CONFIDENCE = 0.3


# =============================================================================
# Storage Defaults
# =============================================================================

PLANFORGE_DIR = ".planforge"
DB_FILENAME = "planforge.db"
SANDBOX_DIRNAME = "sandbox"
CONFIG_DIRNAME = "agents"

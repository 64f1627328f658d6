"""Remediation data model.

Provides:
- DIMENSION_OWNERS: static quality dimension -> configuration owner table
- FailedDimension: a dimension below threshold plus its owner
- PatchAction / ReExecuteAction / PassAction / EscalateAction: what was done
- OperatorAction: the persisted audit row
- ExecutionLog: a completed run with its quality scores
- DiagnosisKind / Diagnosis: root-cause classification
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

OPERATOR_TYPE_REMEDIATION = "remediation"
OVERALL_SCORE_KEY = "overall"

DIMENSION_OWNERS: Dict[str, str] = {
    "Technical Quality": "frontend-engineer",
    "Accessibility": "ux-ui-architect",
    "SEO": "perf-seo-engineer",
    "Strategic Alignment": "strategist",
    "Copy Quality": "copywriter",
    "Brand Consistency": "brand-designer",
    "UX/Usability": "ux-ui-architect",
}


@dataclass(frozen=True)
class FailedDimension:
    dimension: str
    score: float
    owner: str

    def to_dict(self) -> Dict[str, Any]:
        return {"dimension": self.dimension, "score": self.score, "owner": self.owner}


# =============================================================================
# Remediation actions (in-memory trail)
# =============================================================================

@dataclass(frozen=True)
class PatchAction:
    dimension: str
    owner: str
    constraint: str
    score: float
    kind: str = "patch"


@dataclass(frozen=True)
class ReExecuteAction:
    owners: Tuple[str, ...]
    iteration: int
    execution_id: str = ""
    kind: str = "re-execute"


@dataclass(frozen=True)
class PassAction:
    dimension: str
    score: float
    kind: str = "pass"


@dataclass(frozen=True)
class EscalateAction:
    reason: str
    failed_dimensions: Tuple[FailedDimension, ...] = ()
    kind: str = "escalate"


RemediationAction = Union[PatchAction, ReExecuteAction, PassAction, EscalateAction]


@dataclass
class OperatorAction:
    """Append-only audit row for one remediation step."""
    deployment_id: str
    action_type: str
    description: str
    before_state: Dict[str, Any] = field(default_factory=dict)
    after_state: Dict[str, Any] = field(default_factory=dict)
    auto_applied: bool = True
    operator_type: str = OPERATOR_TYPE_REMEDIATION
    id: Optional[int] = None
    created_at: Optional[str] = None

    @property
    def approved(self) -> Optional[bool]:
        """Auto-applied actions count as approved; others await a human."""
        return True if self.auto_applied else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deploymentId": self.deployment_id,
            "operatorType": self.operator_type,
            "actionType": self.action_type,
            "description": self.description,
            "beforeState": self.before_state,
            "afterState": self.after_state,
            "autoApplied": self.auto_applied,
        }


@dataclass
class ExecutionLog:
    id: str
    deployment_id: str
    system_slug: str
    qa_scores: Dict[str, float] = field(default_factory=dict)
    phases_total: int = 0
    output_url: Optional[str] = None
    status: str = "completed"


# =============================================================================
# Diagnosis
# =============================================================================

class DiagnosisKind(Enum):
    EXPIRED_KEY = "expired_key"
    RATE_LIMIT = "rate_limit"
    MALFORMED_CONFIG = "malformed_config"
    DEPENDENCY_FAILURE = "dependency_failure"
    TIMEOUT = "timeout"
    OOM = "oom"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Diagnosis:
    kind: DiagnosisKind
    detail: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "detail": self.detail}

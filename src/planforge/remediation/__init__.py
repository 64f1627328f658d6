"""Quality remediation: models, constraint patching and diagnosis.

The controller lives in ``planforge.remediation.controller`` and is imported
from there directly since it depends on the store package.
"""

from planforge.remediation.models import (
    DIMENSION_OWNERS,
    Diagnosis,
    DiagnosisKind,
    EscalateAction,
    ExecutionLog,
    FailedDimension,
    OperatorAction,
    PassAction,
    PatchAction,
    ReExecuteAction,
)

__all__ = [
    "DIMENSION_OWNERS",
    "Diagnosis",
    "DiagnosisKind",
    "EscalateAction",
    "ExecutionLog",
    "FailedDimension",
    "OperatorAction",
    "PassAction",
    "PatchAction",
    "ReExecuteAction",
]

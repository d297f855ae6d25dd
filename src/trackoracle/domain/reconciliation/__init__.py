from .engine import ReconciliationEngine
from .policy import ReconciliationPolicy, SubmissionBackoff
from .report import PassReport

__all__ = [
    "PassReport",
    "ReconciliationEngine",
    "ReconciliationPolicy",
    "SubmissionBackoff",
]

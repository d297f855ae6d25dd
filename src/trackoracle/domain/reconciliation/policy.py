"""Tunable limits for a reconciliation pass."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta

DEFAULT_STATUS_WORKERS = 4
DEFAULT_SUBMISSION_WORKERS = 2
DEFAULT_MAX_SUBMISSION_ATTEMPTS = 8
DEFAULT_MAX_CONFIRMATION_POLLS = 10
DEFAULT_CALL_TIMEOUT_SECONDS = 60.0


@dataclass(frozen=True, slots=True)
class SubmissionBackoff:
    """Exponential delay between submission attempts, capped."""

    base_seconds: float = 30.0
    cap_seconds: float = 3600.0

    def delay(self, attempt_count: int) -> timedelta:
        if attempt_count < 1:
            return timedelta(0)
        seconds = self.base_seconds * 2 ** (attempt_count - 1)
        return timedelta(seconds=min(seconds, self.cap_seconds))


@dataclass(frozen=True, slots=True)
class ReconciliationPolicy:
    status_workers: int = DEFAULT_STATUS_WORKERS
    submission_workers: int = DEFAULT_SUBMISSION_WORKERS
    max_submission_attempts: int = DEFAULT_MAX_SUBMISSION_ATTEMPTS
    max_confirmation_polls: int = DEFAULT_MAX_CONFIRMATION_POLLS
    call_timeout_seconds: float = DEFAULT_CALL_TIMEOUT_SECONDS
    backoff: SubmissionBackoff = field(default_factory=SubmissionBackoff)

    def __post_init__(self) -> None:
        for name in (
            "status_workers",
            "submission_workers",
            "max_submission_attempts",
            "max_confirmation_polls",
        ):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")
        if self.call_timeout_seconds <= 0:
            raise ValueError("call_timeout_seconds must be positive")

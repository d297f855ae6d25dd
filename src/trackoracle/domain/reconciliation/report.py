"""Summary of a single reconciliation pass."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class PassReport:
    open_records: int = 0
    discovered: int = 0
    pending: int = 0
    resolved: int = 0
    submitted: int = 0
    retry_scheduled: int = 0
    rejected: int = 0
    confirmed: int = 0
    vanished: int = 0
    skipped: int = 0
    failures: int = 0
    aborted: bool = False
    error: str | None = None

    def summary(self) -> str:
        if self.aborted:
            return f"aborted ({self.error})"
        return (
            f"open={self.open_records} discovered={self.discovered} pending={self.pending} "
            f"resolved={self.resolved} submitted={self.submitted} "
            f"retry_scheduled={self.retry_scheduled} rejected={self.rejected} "
            f"confirmed={self.confirmed} vanished={self.vanished} skipped={self.skipped} "
            f"failures={self.failures}"
        )

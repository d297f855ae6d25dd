"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class ShipmentStatus(StrEnum):
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    NOT_DELIVERED = "not_delivered"
    UNKNOWN = "unknown"

    @property
    def is_final(self) -> bool:
        return self in _FINAL_STATUSES

    @property
    def on_chain_label(self) -> str:
        """Status string written into the closing transaction."""

        if not self.is_final:
            raise ValueError(f"Status {self.value!r} is not final and has no on-chain label")
        return self.name


_FINAL_STATUSES = frozenset({ShipmentStatus.DELIVERED, ShipmentStatus.NOT_DELIVERED})


class StateKind(StrEnum):
    """Lifecycle position of a tracking record inside the reconciliation engine."""

    DISCOVERED = "discovered"
    STATUS_PENDING = "status_pending"
    STATUS_RESOLVED = "status_resolved"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    VANISHED = "vanished"


class RejectionKind(StrEnum):
    # the ledger (or resolver) refused the record for good
    TERMINAL = "terminal"
    # retry budget spent; restart from status resolution
    RETRYABLE = "retryable"
    # submitted transaction never confirmed; needs an operator
    AMBIGUOUS = "ambiguous"


class ConfirmationStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    NOT_FOUND = "not_found"

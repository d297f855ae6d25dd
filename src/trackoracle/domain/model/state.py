"""Per-record reconciliation state values.

A state is a flat, immutable value: ``kind`` says where the record sits in the
lifecycle and only the attributes meaningful for that kind are populated. The
constructors below are the only supported way to build one, which keeps the
attribute set consistent with the kind.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Self

from .enums import RejectionKind, StateKind

if TYPE_CHECKING:
    from datetime import datetime

    from .enums import ShipmentStatus
    from .records import StatusObservation, TxRef


# Records in these states are never handed to the resolver or the submitter again.
SETTLED_KINDS = frozenset({StateKind.SUBMITTED, StateKind.CONFIRMED})


@dataclass(frozen=True, slots=True)
class ReconciliationState:
    kind: StateKind
    updated_at: datetime
    status: ShipmentStatus | None = None
    observed_at: datetime | None = None
    attempt_count: int = 0
    next_attempt_at: datetime | None = None
    tx_ref: TxRef | None = None
    confirmation_polls: int = 0
    rejection: RejectionKind | None = None
    reason: str | None = None

    @classmethod
    def discovered(cls, *, at: datetime) -> Self:
        return cls(kind=StateKind.DISCOVERED, updated_at=at)

    @classmethod
    def status_pending(cls, observation: StatusObservation, *, at: datetime) -> Self:
        return cls(
            kind=StateKind.STATUS_PENDING,
            updated_at=at,
            status=observation.status,
            observed_at=observation.observed_at,
        )

    @classmethod
    def status_resolved(cls, observation: StatusObservation, *, at: datetime) -> Self:
        if not observation.status.is_final:
            raise ValueError(f"Status {observation.status} is not final")
        return cls(
            kind=StateKind.STATUS_RESOLVED,
            updated_at=at,
            status=observation.status,
            observed_at=observation.observed_at,
        )

    @classmethod
    def vanished(cls, *, at: datetime) -> Self:
        return cls(kind=StateKind.VANISHED, updated_at=at)

    def submitting(
        self,
        *,
        at: datetime,
        attempt_count: int | None = None,
        next_attempt_at: datetime | None = None,
        tx_ref: TxRef | None = None,
    ) -> Self:
        """Move a resolved (or already submitting) record into ``SUBMITTING``."""

        self._require(StateKind.STATUS_RESOLVED, StateKind.SUBMITTING)
        return replace(
            self,
            kind=StateKind.SUBMITTING,
            updated_at=at,
            attempt_count=self.attempt_count if attempt_count is None else attempt_count,
            next_attempt_at=next_attempt_at,
            tx_ref=tx_ref,
        )

    def submitted(self, tx_ref: TxRef, *, at: datetime) -> Self:
        if not self.is_abandoned_attempt:
            self._require(StateKind.SUBMITTING)
        return replace(
            self,
            kind=StateKind.SUBMITTED,
            updated_at=at,
            tx_ref=tx_ref,
            next_attempt_at=None,
            confirmation_polls=0,
            rejection=None,
            reason=None,
        )

    def with_confirmation_poll(self, *, at: datetime) -> Self:
        self._require(StateKind.SUBMITTED)
        return replace(self, updated_at=at, confirmation_polls=self.confirmation_polls + 1)

    def confirmed(self, *, at: datetime) -> Self:
        if not self.is_abandoned_attempt:
            self._require(StateKind.SUBMITTING, StateKind.SUBMITTED)
        return replace(
            self,
            kind=StateKind.CONFIRMED,
            updated_at=at,
            next_attempt_at=None,
            rejection=None,
            reason=None,
        )

    def rejected(self, rejection: RejectionKind, reason: str, *, at: datetime) -> Self:
        return replace(
            self,
            kind=StateKind.REJECTED,
            updated_at=at,
            rejection=rejection,
            reason=reason,
            next_attempt_at=None,
        )

    @property
    def is_settled(self) -> bool:
        return self.kind in SETTLED_KINDS

    @property
    def is_permanently_rejected(self) -> bool:
        return self.kind is StateKind.REJECTED and self.rejection in {
            RejectionKind.TERMINAL,
            RejectionKind.AMBIGUOUS,
        }

    @property
    def is_abandoned_attempt(self) -> bool:
        """Gave up retrying, but the last broadcast may still reach the ledger."""

        return (
            self.kind is StateKind.REJECTED
            and self.rejection is RejectionKind.RETRYABLE
            and self.tx_ref is not None
        )

    @property
    def awaits_ledger(self) -> bool:
        """The outcome of the last broadcast must be polled before anything else."""

        if self.tx_ref is None:
            return False
        return self.kind in {StateKind.SUBMITTING, StateKind.SUBMITTED} or (
            self.is_abandoned_attempt
        )

    def is_due(self, now: datetime) -> bool:
        return self.next_attempt_at is None or self.next_attempt_at <= now

    def _require(self, *kinds: StateKind) -> None:
        if self.kind not in kinds:
            expected = ", ".join(kind.value for kind in kinds)
            raise ValueError(f"Invalid transition from {self.kind.value} (expected {expected})")

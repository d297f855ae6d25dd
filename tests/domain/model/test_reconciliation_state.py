from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from trackoracle.domain.model import (
    ReconciliationState,
    RejectionKind,
    ShipmentStatus,
    StateKind,
    StatusObservation,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)
DELIVERED = StatusObservation(status=ShipmentStatus.DELIVERED, observed_at=NOW)
IN_TRANSIT = StatusObservation(status=ShipmentStatus.IN_TRANSIT, observed_at=NOW)


def test_status_resolved_requires_final_status() -> None:
    with pytest.raises(ValueError):
        ReconciliationState.status_resolved(IN_TRANSIT, at=NOW)


def test_submission_lifecycle_keeps_status() -> None:
    resolved = ReconciliationState.status_resolved(DELIVERED, at=NOW)
    submitting = resolved.submitting(at=NOW, tx_ref="aa" * 32)
    submitted = submitting.submitted("aa" * 32, at=NOW)
    confirmed = submitted.confirmed(at=NOW)

    assert submitting.kind is StateKind.SUBMITTING
    assert submitted.kind is StateKind.SUBMITTED
    assert submitted.is_settled
    assert confirmed.kind is StateKind.CONFIRMED
    assert confirmed.status is ShipmentStatus.DELIVERED
    assert confirmed.tx_ref == "aa" * 32


def test_new_attempt_clears_previous_tx_ref() -> None:
    resolved = ReconciliationState.status_resolved(DELIVERED, at=NOW)
    waiting = resolved.submitting(
        at=NOW,
        attempt_count=2,
        next_attempt_at=NOW + timedelta(minutes=1),
        tx_ref="aa" * 32,
    )

    retry = waiting.submitting(at=NOW + timedelta(minutes=2))

    assert retry.tx_ref is None
    assert retry.attempt_count == 2
    assert retry.next_attempt_at is None


def test_submitted_cannot_go_back_to_submitting() -> None:
    submitted = (
        ReconciliationState.status_resolved(DELIVERED, at=NOW)
        .submitting(at=NOW, tx_ref="aa" * 32)
        .submitted("aa" * 32, at=NOW)
    )

    with pytest.raises(ValueError, match="Invalid transition"):
        submitted.submitting(at=NOW)


def test_pending_record_cannot_be_submitted() -> None:
    pending = ReconciliationState.status_pending(IN_TRANSIT, at=NOW)

    with pytest.raises(ValueError):
        pending.submitting(at=NOW)


def test_confirmation_polls_count_up() -> None:
    submitted = (
        ReconciliationState.status_resolved(DELIVERED, at=NOW)
        .submitting(at=NOW, tx_ref="aa" * 32)
        .submitted("aa" * 32, at=NOW)
    )

    polled = submitted.with_confirmation_poll(at=NOW).with_confirmation_poll(at=NOW)

    assert polled.confirmation_polls == 2


@pytest.mark.parametrize(
    ("rejection", "permanent"),
    [
        (RejectionKind.TERMINAL, True),
        (RejectionKind.AMBIGUOUS, True),
        (RejectionKind.RETRYABLE, False),
    ],
)
def test_permanent_rejections(rejection: RejectionKind, permanent: bool) -> None:
    state = ReconciliationState.discovered(at=NOW).rejected(rejection, "reason", at=NOW)

    assert state.is_permanently_rejected is permanent


def test_is_due_honours_next_attempt() -> None:
    state = ReconciliationState.status_resolved(DELIVERED, at=NOW).submitting(
        at=NOW, next_attempt_at=NOW + timedelta(seconds=30)
    )

    assert not state.is_due(NOW)
    assert state.is_due(NOW + timedelta(seconds=30))


def test_abandoned_attempt_still_awaits_the_ledger() -> None:
    attempt = ReconciliationState.status_resolved(DELIVERED, at=NOW).submitting(
        at=NOW, tx_ref="aa" * 32
    )
    abandoned = attempt.rejected(RejectionKind.RETRYABLE, "gave up", at=NOW)

    assert abandoned.is_abandoned_attempt
    assert abandoned.awaits_ledger

    landed = abandoned.submitted("aa" * 32, at=NOW)

    assert landed.kind is StateKind.SUBMITTED
    assert landed.rejection is None
    assert landed.reason is None
    assert abandoned.confirmed(at=NOW).kind is StateKind.CONFIRMED


def test_rejection_without_broadcast_does_not_await_the_ledger() -> None:
    resolved = ReconciliationState.status_resolved(DELIVERED, at=NOW)
    gave_up = resolved.submitting(at=NOW).rejected(RejectionKind.RETRYABLE, "503", at=NOW)
    spent = resolved.submitting(at=NOW, tx_ref="aa" * 32).rejected(
        RejectionKind.TERMINAL, "input already spent", at=NOW
    )

    assert not gave_up.awaits_ledger
    assert not spent.awaits_ledger
    with pytest.raises(ValueError, match="Invalid transition"):
        spent.confirmed(at=NOW)

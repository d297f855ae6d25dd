from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from trackoracle.adapters.memory import InMemoryRecordStateStore
from trackoracle.app import (
    EngineOverrides,
    list_states,
    reset_record,
    run_pass_async,
    run_scheduler_async,
)
from trackoracle.config import ScheduleConfig, normalize_cron_expression
from trackoracle.domain.model import (
    ReconciliationState,
    RecordRef,
    RejectionKind,
    ShipmentStatus,
    StateKind,
    StatusObservation,
)
from trackoracle.domain.reconciliation import ReconciliationPolicy
from tests.support.fakes import (
    ORACLE,
    FakeIntentResolver,
    FakeLedger,
    FakeSigner,
    FakeStatusResolver,
    make_record,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)
REF = RecordRef(tx_hash="aa" * 32, output_index=0)
DELIVERED = StatusObservation(status=ShipmentStatus.DELIVERED, observed_at=NOW)


def _rejected(kind: RejectionKind) -> ReconciliationState:
    return (
        ReconciliationState.status_resolved(DELIVERED, at=NOW)
        .submitting(at=NOW, tx_ref="bb" * 32)
        .rejected(kind, "input already spent", at=NOW)
    )


@pytest.mark.parametrize(
    "state",
    [_rejected(RejectionKind.TERMINAL), ReconciliationState.vanished(at=NOW)],
)
def test_reset_record_restarts_from_discovered(state: ReconciliationState) -> None:
    store = InMemoryRecordStateStore()
    store.put(REF, state)

    reset = reset_record(REF, store=store, now=NOW)

    assert reset == ReconciliationState.discovered(at=NOW)
    assert store.get(REF) == reset


def test_reset_record_refuses_in_flight_records() -> None:
    store = InMemoryRecordStateStore()
    submitted = (
        ReconciliationState.status_resolved(DELIVERED, at=NOW)
        .submitting(at=NOW, tx_ref="bb" * 32)
        .submitted("bb" * 32, at=NOW)
    )
    store.put(REF, submitted)

    with pytest.raises(ValueError, match="submitted"):
        reset_record(REF, store=store, now=NOW)
    assert store.get(REF) == submitted


def test_reset_record_refuses_attempt_that_may_still_land() -> None:
    store = InMemoryRecordStateStore()
    abandoned = (
        ReconciliationState.status_resolved(DELIVERED, at=NOW)
        .submitting(at=NOW, tx_ref="bb" * 32)
        .rejected(RejectionKind.RETRYABLE, "gave up", at=NOW)
    )
    store.put(REF, abandoned)

    with pytest.raises(ValueError, match="may still land"):
        reset_record(REF, store=store, now=NOW)
    assert store.get(REF) == abandoned


def test_reset_record_requires_known_record() -> None:
    with pytest.raises(ValueError, match="No state"):
        reset_record(REF, store=InMemoryRecordStateStore(), now=NOW)


def test_list_states_defaults_to_every_kind() -> None:
    store = InMemoryRecordStateStore()
    other = RecordRef(tx_hash="cc" * 32, output_index=1)
    store.put(REF, ReconciliationState.discovered(at=NOW))
    store.put(other, _rejected(RejectionKind.AMBIGUOUS))

    assert [ref for ref, _ in list_states(store=store)] == [REF, other]
    assert [ref for ref, _ in list_states([StateKind.REJECTED], store=store)] == [other]


def _overrides(ledger: FakeLedger, store: InMemoryRecordStateStore) -> EngineOverrides:
    return {
        "ledger": ledger,
        "status_resolver": FakeStatusResolver(
            statuses={"TEST123": ShipmentStatus.DELIVERED}
        ),
        "intent_resolver": FakeIntentResolver(),
        "signer": FakeSigner(),
        "store": store,
        "oracle": ORACLE,
        "policy": ReconciliationPolicy(),
    }


def test_run_pass_async_uses_overrides() -> None:
    record = make_record()
    ledger = FakeLedger(records={record})
    store = InMemoryRecordStateStore()

    report = asyncio.run(run_pass_async(**_overrides(ledger, store)))

    assert report.submitted == 1
    assert len(ledger.submitted) == 1
    state = store.get(record.ref)
    assert state is not None
    assert state.kind is StateKind.SUBMITTED


def test_run_scheduler_async_runs_bounded_passes() -> None:
    record = make_record()
    ledger = FakeLedger(records={record})
    store = InMemoryRecordStateStore()
    schedule = ScheduleConfig(expression=normalize_cron_expression("* * * * * *"))

    passes = asyncio.run(
        run_scheduler_async(
            schedule=schedule,
            max_passes=1,
            handle_signals=False,
            **_overrides(ledger, store),
        )
    )

    assert passes == 1
    assert ledger.submitted

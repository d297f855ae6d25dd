from __future__ import annotations

from datetime import UTC, datetime

import pytest

from trackoracle.domain.model import CloseIntent, RecordRef, ShipmentStatus
from tests.support.fakes import ORACLE, make_record


def test_record_ref_renders_and_parses() -> None:
    ref = RecordRef(tx_hash="ab" * 32, output_index=3)

    assert str(ref) == f"{'ab' * 32}#3"
    assert RecordRef.parse(f" {'AB' * 32}#3 ") == ref


@pytest.mark.parametrize("value", ["abc", "#1", "abc#", "abc#x", "abc#-1"])
def test_record_ref_rejects_malformed_values(value: str) -> None:
    with pytest.raises(ValueError):
        RecordRef.parse(value)


def test_on_chain_labels() -> None:
    assert ShipmentStatus.DELIVERED.on_chain_label == "DELIVERED"
    assert ShipmentStatus.NOT_DELIVERED.on_chain_label == "NOT_DELIVERED"
    with pytest.raises(ValueError):
        _ = ShipmentStatus.UNKNOWN.on_chain_label


def test_close_intent_is_a_pure_function_of_its_inputs() -> None:
    record = make_record()
    at = datetime(2025, 3, 1, tzinfo=UTC)

    first = CloseIntent.for_record(
        record, status=ShipmentStatus.DELIVERED, timestamp=at, oracle=ORACLE
    )
    second = CloseIntent.for_record(
        record, status=ShipmentStatus.DELIVERED, timestamp=at, oracle=ORACLE
    )

    assert first == second
    assert first.ref == record.ref


def test_close_intent_refuses_non_final_status() -> None:
    with pytest.raises(ValueError):
        CloseIntent.for_record(
            make_record(),
            status=ShipmentStatus.IN_TRANSIT,
            timestamp=datetime(2025, 3, 1, tzinfo=UTC),
            oracle=ORACLE,
        )

"""SQLAlchemy table metadata for persisted reconciliation states."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    Column,
    DateTime,
    Dialect,
    Enum,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
)

from trackoracle.domain.model import (
    ReconciliationState,
    RecordRef,
    RejectionKind,
    ShipmentStatus,
    StateKind,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.engine import Engine

metadata = MetaData()


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


reconciliation_state_table = Table(
    "reconciliation_state",
    metadata,
    Column("tx_hash", String(64), primary_key=True),
    Column("output_index", Integer, primary_key=True),
    Column("kind", Enum(StateKind, native_enum=False, length=32), nullable=False),
    Column("status", Enum(ShipmentStatus, native_enum=False, length=32), nullable=True),
    Column("observed_at", UTCDateTime(), nullable=True),
    Column("attempt_count", Integer, nullable=False, default=0),
    Column("next_attempt_at", UTCDateTime(), nullable=True),
    Column("tx_ref", String(64), nullable=True),
    Column("confirmation_polls", Integer, nullable=False, default=0),
    Column("rejection", Enum(RejectionKind, native_enum=False, length=32), nullable=True),
    Column("reason", Text, nullable=True),
    Column("updated_at", UTCDateTime(), nullable=False),
    Index("ix_reconciliation_state_kind", "kind"),
)


def state_to_row(ref: RecordRef, state: ReconciliationState) -> dict[str, Any]:
    return {
        "tx_hash": ref.tx_hash,
        "output_index": ref.output_index,
        "kind": state.kind,
        "status": state.status,
        "observed_at": state.observed_at,
        "attempt_count": state.attempt_count,
        "next_attempt_at": state.next_attempt_at,
        "tx_ref": state.tx_ref,
        "confirmation_polls": state.confirmation_polls,
        "rejection": state.rejection,
        "reason": state.reason,
        "updated_at": state.updated_at,
    }


def row_to_state(row: Mapping[str, Any]) -> tuple[RecordRef, ReconciliationState]:
    ref = RecordRef(tx_hash=row["tx_hash"], output_index=row["output_index"])
    state = ReconciliationState(
        kind=StateKind(row["kind"]),
        updated_at=row["updated_at"],
        status=ShipmentStatus(row["status"]) if row["status"] is not None else None,
        observed_at=row["observed_at"],
        attempt_count=row["attempt_count"],
        next_attempt_at=row["next_attempt_at"],
        tx_ref=row["tx_ref"],
        confirmation_polls=row["confirmation_polls"],
        rejection=RejectionKind(row["rejection"]) if row["rejection"] is not None else None,
        reason=row["reason"],
    )
    return ref, state


def create_all_tables(engine: Engine) -> None:
    """Create tables without migrations (throwaway databases only)."""

    metadata.create_all(engine)

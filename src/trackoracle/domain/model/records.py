"""Value objects describing tracking records and close intents."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Self

if TYPE_CHECKING:
    from datetime import datetime

    from .enums import ShipmentStatus

type TxRef = str


@dataclass(frozen=True, slots=True, order=True)
class RecordRef:
    """Identity of a tracking record: the output that holds the customer's deposit."""

    tx_hash: str
    output_index: int

    def __str__(self) -> str:
        return f"{self.tx_hash}#{self.output_index}"

    @classmethod
    def parse(cls, value: str) -> Self:
        tx_hash, sep, index = value.strip().partition("#")
        if not sep or not tx_hash or not index.isdigit():
            raise ValueError(f"Invalid record reference: {value!r} (expected <tx_hash>#<index>)")
        return cls(tx_hash=tx_hash.lower(), output_index=int(index))


@dataclass(frozen=True, slots=True)
class TrackingRecord:
    ref: RecordRef
    carrier: str
    tracking_number: str
    outbox_address: str
    deposited_lovelace: int


@dataclass(frozen=True, slots=True)
class OracleIdentity:
    """Who closes tracking records and where the oracle fee goes."""

    address: str
    pkh: str
    payment_address: str
    validator_script_ref: str


@dataclass(frozen=True, slots=True)
class StatusObservation:
    status: ShipmentStatus
    observed_at: datetime
    details: str | None = None


@dataclass(frozen=True, slots=True)
class CloseIntent:
    """Everything needed to close one tracking record.

    Built from the record, its stored final status and the oracle identity only, so
    every retry for the same record produces an equal intent.
    """

    ref: RecordRef
    carrier: str
    tracking_number: str
    outbox_address: str
    status: ShipmentStatus
    timestamp: datetime
    oracle: OracleIdentity

    @classmethod
    def for_record(
        cls,
        record: TrackingRecord,
        *,
        status: ShipmentStatus,
        timestamp: datetime,
        oracle: OracleIdentity,
    ) -> Self:
        if not status.is_final:
            raise ValueError(f"Cannot close {record.ref} with non-final status {status}")
        return cls(
            ref=record.ref,
            carrier=record.carrier,
            tracking_number=record.tracking_number,
            outbox_address=record.outbox_address,
            status=status,
            timestamp=timestamp,
            oracle=oracle,
        )


@dataclass(frozen=True, slots=True)
class SignableTransaction:
    cbor_hex: str
    tx_hash: TxRef


@dataclass(frozen=True, slots=True)
class SignedTransaction:
    cbor: bytes
    tx_hash: TxRef

"""In-process fakes for the reconciliation ports."""

from __future__ import annotations

import asyncio
import hashlib
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from trackoracle.adapters.trp import intent_args
from trackoracle.domain.errors import LedgerUnavailableError, SubmissionError
from trackoracle.domain.model import (
    CloseIntent,
    ConfirmationStatus,
    OracleIdentity,
    RecordRef,
    ShipmentStatus,
    SignableTransaction,
    SignedTransaction,
    StatusObservation,
    TrackingRecord,
    TxRef,
)

ORACLE = OracleIdentity(
    address="addr_test1oracle",
    pkh="ab" * 28,
    payment_address="addr_test1payment",
    validator_script_ref="cd" * 32 + "#0",
)


def make_record(
    index: int = 0,
    *,
    carrier: str = "usps",
    tracking_number: str = "TEST123",
    tx_hash: str | None = None,
) -> TrackingRecord:
    return TrackingRecord(
        ref=RecordRef(tx_hash=tx_hash or f"{index:064x}", output_index=index),
        carrier=carrier,
        tracking_number=tracking_number,
        outbox_address="addr_test1outbox",
        deposited_lovelace=5_000_000,
    )


@dataclass
class FakeClock:
    now: datetime = field(default_factory=lambda: datetime(2025, 3, 1, 12, 0, tzinfo=UTC))

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class FakeLedger:
    """Ledger double: submissions land in ``chain`` unless told otherwise."""

    records: set[TrackingRecord] = field(default_factory=set)
    list_error: Exception | None = None
    submit_errors: list[SubmissionError] = field(default_factory=list)
    land_despite_error: bool = False
    chain: dict[TxRef, ConfirmationStatus] = field(default_factory=dict)
    submitted: list[TxRef] = field(default_factory=list)
    confirmation_calls: list[TxRef] = field(default_factory=list)
    confirmation_error: Exception | None = None
    submit_delay: float = 0.0

    async def list_open_records(self) -> set[TrackingRecord]:
        if self.list_error is not None:
            raise self.list_error
        return set(self.records)

    async def submit(self, transaction: SignedTransaction) -> TxRef:
        self.submitted.append(transaction.tx_hash)
        if self.submit_delay:
            await asyncio.sleep(self.submit_delay)
        if self.submit_errors:
            error = self.submit_errors.pop(0)
            if self.land_despite_error:
                self.chain[transaction.tx_hash] = ConfirmationStatus.PENDING
            raise error
        self.chain[transaction.tx_hash] = ConfirmationStatus.PENDING
        return transaction.tx_hash

    async def confirmation_status(self, tx_ref: TxRef) -> ConfirmationStatus:
        self.confirmation_calls.append(tx_ref)
        if self.confirmation_error is not None:
            raise self.confirmation_error
        return self.chain.get(tx_ref, ConfirmationStatus.NOT_FOUND)

    def confirm_all(self) -> None:
        for tx_ref in self.chain:
            self.chain[tx_ref] = ConfirmationStatus.CONFIRMED

    def drop(self, tx_ref: TxRef) -> None:
        self.chain.pop(tx_ref, None)

    def spend(self, record: TrackingRecord) -> None:
        self.records.discard(record)


def unavailable() -> LedgerUnavailableError:
    return LedgerUnavailableError("indexer down")


@dataclass
class FakeStatusResolver:
    statuses: dict[str, ShipmentStatus | Exception] = field(default_factory=dict)
    observed_at: datetime = datetime(2025, 3, 1, 11, 0, tzinfo=UTC)
    delay: float = 0.0
    calls: list[tuple[str, str]] = field(default_factory=list)

    async def resolve(self, carrier: str, tracking_number: str) -> StatusObservation:
        self.calls.append((carrier, tracking_number))
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.statuses.get(tracking_number, ShipmentStatus.UNKNOWN)
        if isinstance(outcome, Exception):
            raise outcome
        return StatusObservation(status=outcome, observed_at=self.observed_at, details="fake")


@dataclass
class FakeIntentResolver:
    """Resolves intents to deterministic hashes; ``salt`` changes them between attempts."""

    errors: list[Exception] = field(default_factory=list)
    intents: list[CloseIntent] = field(default_factory=list)
    salt: int = 0

    async def resolve(self, intent: CloseIntent) -> SignableTransaction:
        self.intents.append(intent)
        if self.errors:
            raise self.errors.pop(0)
        material = repr(sorted(intent_args(intent).items())) + str(self.salt)
        return SignableTransaction(
            cbor_hex="84a0a0f5f6",
            tx_hash=hashlib.blake2b(material.encode(), digest_size=32).hexdigest(),
        )


@dataclass
class FakeSigner:
    error: Exception | None = None
    signed: list[TxRef] = field(default_factory=list)

    def sign(self, transaction: SignableTransaction) -> SignedTransaction:
        if self.error is not None:
            raise self.error
        self.signed.append(transaction.tx_hash)
        return SignedTransaction(
            cbor=bytes.fromhex(transaction.cbor_hex), tx_hash=transaction.tx_hash
        )

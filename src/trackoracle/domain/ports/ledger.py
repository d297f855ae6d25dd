"""Port for the ledger indexer and transaction submission endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from trackoracle.domain.model import (
        ConfirmationStatus,
        SignedTransaction,
        TrackingRecord,
        TxRef,
    )


@runtime_checkable
class LedgerClient(Protocol):
    """Reads open tracking records, broadcasts transactions, reports confirmation."""

    async def list_open_records(self) -> set[TrackingRecord]:
        """Return a fresh snapshot of every unspent tracking output.

        Raises ``LedgerUnavailableError`` when the indexer cannot be reached.
        """
        ...

    async def submit(self, transaction: SignedTransaction) -> TxRef:
        """Broadcast ``transaction``; raise ``SubmissionError`` on failure."""
        ...

    async def confirmation_status(self, tx_ref: TxRef) -> ConfirmationStatus: ...

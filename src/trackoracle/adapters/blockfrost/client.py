"""Async client for a Blockfrost-compatible ledger indexer."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from trackoracle.adapters.http_resilience import ResilientClient
from trackoracle.domain.errors import LedgerUnavailableError, SubmissionError
from trackoracle.domain.model import ConfirmationStatus

from .schema import ErrorPayload, UtxoPage
from .translator import parse_tracking_record

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from trackoracle.config.blockfrost import LedgerConfig
    from trackoracle.config.http_resilience import ResilienceConfig
    from trackoracle.domain.model import SignedTransaction, TrackingRecord, TxRef

log = getLogger(__name__)

PAGE_SIZE = 100

SPENT_INPUTS_MARKER = "BadInputsUTxO"
VALIDITY_INTERVAL_MARKER = "OutsideValidityIntervalUTxO"


def _error_message(response: httpx.Response) -> str:
    try:
        payload = ErrorPayload.model_validate(response.json())
    except (ValueError, ValidationError):
        return response.text
    return payload.message or payload.error


class BlockfrostLedgerClient:
    """Ledger port backed by the Blockfrost REST API."""

    def __init__(
        self,
        *,
        config: LedgerConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._client = (client_factory or ResilientClient)(config.resilience)

    async def __aenter__(self) -> BlockfrostLedgerClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_open_records(self) -> set[TrackingRecord]:
        address = self._config.validator_address
        records: set[TrackingRecord] = set()
        page = 1
        while True:
            try:
                response = await self._client.get(
                    f"/addresses/{address}/utxos",
                    params={"page": page, "count": PAGE_SIZE},
                )
            except httpx.HTTPError as exc:
                raise LedgerUnavailableError(f"Cannot reach ledger indexer: {exc!r}") from exc

            if response.status_code == httpx.codes.NOT_FOUND:
                # the address has never held an output
                break
            if response.is_error:
                raise LedgerUnavailableError(
                    f"Listing outputs failed (status {response.status_code}): "
                    f"{_error_message(response)}"
                )
            try:
                utxos = UtxoPage.validate_python(response.json())
            except (ValueError, ValidationError) as exc:
                raise LedgerUnavailableError("Unexpected ledger indexer payload") from exc

            for utxo in utxos:
                record = parse_tracking_record(utxo)
                if record is not None:
                    records.add(record)

            if len(utxos) < PAGE_SIZE:
                break
            page += 1

        log.debug("Listed %d tracking record(s) at %s", len(records), address)
        return records

    async def submit(self, transaction: SignedTransaction) -> TxRef:
        try:
            response = await self._client.post(
                "/tx/submit",
                content=transaction.cbor,
                headers={"Content-Type": "application/cbor"},
            )
        except httpx.HTTPError as exc:
            raise SubmissionError(
                f"Submission of {transaction.tx_hash} did not complete: {exc!r}",
                retryable=True,
            ) from exc

        if response.is_error:
            raise self._classify_submit_error(transaction, response)

        try:
            tx_ref = response.json()
        except ValueError:
            tx_ref = None
        if not isinstance(tx_ref, str) or not tx_ref:
            log.warning("Ledger accepted %s without returning a hash", transaction.tx_hash)
            return transaction.tx_hash
        return tx_ref.lower()

    def _classify_submit_error(
        self,
        transaction: SignedTransaction,
        response: httpx.Response,
    ) -> SubmissionError:
        status = response.status_code
        message = _error_message(response)
        summary = f"Submission of {transaction.tx_hash} failed (status {status}): {message}"

        if status != httpx.codes.BAD_REQUEST:
            # only 400 speaks about the transaction itself
            return SubmissionError(summary, retryable=True)
        if SPENT_INPUTS_MARKER in message:
            return SubmissionError(summary, retryable=False, reason="input already spent")
        if VALIDITY_INTERVAL_MARKER in message:
            return SubmissionError(summary, retryable=True, reason="validity interval elapsed")
        return SubmissionError(summary, retryable=False, reason="invalid transaction")

    async def confirmation_status(self, tx_ref: TxRef) -> ConfirmationStatus:
        response = await self._lookup(f"/txs/{tx_ref}")
        if response.status_code == httpx.codes.OK:
            return ConfirmationStatus.CONFIRMED

        response = await self._lookup(f"/mempool/{tx_ref}")
        if response.status_code == httpx.codes.OK:
            return ConfirmationStatus.PENDING
        return ConfirmationStatus.NOT_FOUND

    async def _lookup(self, path: str) -> httpx.Response:
        try:
            response = await self._client.get(path)
        except httpx.HTTPError as exc:
            raise LedgerUnavailableError(f"Cannot reach ledger indexer: {exc!r}") from exc
        if response.status_code not in {httpx.codes.OK, httpx.codes.NOT_FOUND}:
            raise LedgerUnavailableError(
                f"Lookup {path} failed (status {response.status_code}): {_error_message(response)}"
            )
        return response


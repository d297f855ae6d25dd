"""JSON-RPC client resolving close intents through a TRP endpoint."""

from __future__ import annotations

import itertools
from datetime import UTC
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from trackoracle.adapters.http_resilience import ResilientClient
from trackoracle.domain.errors import ResolutionError
from trackoracle.domain.model import SignableTransaction

from .schema import JsonRpcRequest, JsonRpcResponse, ResolveParams, TirEnvelope

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from trackoracle.config.http_resilience import ResilienceConfig
    from trackoracle.config.trp import TrpConfig
    from trackoracle.domain.model import CloseIntent

log = getLogger(__name__)

RESOLVE_METHOD = "trp.resolve"


def intent_args(intent: CloseIntent) -> dict[str, str | int]:
    """Render a close intent as arguments of the compiled close-shipment transaction."""

    timestamp = intent.timestamp
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)
    return {
        "oracle": intent.oracle.address,
        "oracle_pkh": intent.oracle.pkh,
        "outbox": intent.outbox_address,
        "p_status": intent.status.on_chain_label.encode("utf-8").hex(),
        "p_timestamp": int(timestamp.timestamp()),
        "p_utxo_ref": str(intent.ref),
        "payment": intent.oracle.payment_address,
        "validator_script_ref": intent.oracle.validator_script_ref,
    }


class TrpIntentResolver:
    """Intent resolver port backed by a TRP JSON-RPC endpoint."""

    def __init__(
        self,
        *,
        config: TrpConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._client = (client_factory or ResilientClient)(config.resilience)
        self._ids = itertools.count(1)

    async def __aenter__(self) -> TrpIntentResolver:
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

    async def resolve(self, intent: CloseIntent) -> SignableTransaction:
        request = JsonRpcRequest(
            method=RESOLVE_METHOD,
            params=ResolveParams(
                tir=TirEnvelope(content=self._config.tir_hex, version=self._config.tir_version),
                args=intent_args(intent),
            ),
            id=next(self._ids),
        )

        try:
            response = await self._client.post("", json=request.model_dump(mode="json"))
        except httpx.HTTPError as exc:
            raise ResolutionError(
                f"Resolving close of {intent.ref} did not complete: {exc!r}", retryable=True
            ) from exc

        if response.is_error:
            retryable = (
                response.status_code == httpx.codes.TOO_MANY_REQUESTS
                or response.status_code >= httpx.codes.INTERNAL_SERVER_ERROR
            )
            raise ResolutionError(
                f"Resolving close of {intent.ref} failed (status {response.status_code})",
                retryable=retryable,
            )

        try:
            envelope = JsonRpcResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise ResolutionError(
                f"Unexpected resolver payload for {intent.ref}", retryable=False
            ) from exc

        if envelope.error is not None:
            log.debug("Resolver error data for %s: %s", intent.ref, envelope.error.data)
            raise ResolutionError(
                f"Resolver rejected close of {intent.ref}: "
                f"{envelope.error.message} (code {envelope.error.code})",
                retryable=False,
            )
        if envelope.result is None:
            raise ResolutionError(
                f"Resolver returned neither result nor error for {intent.ref}", retryable=False
            )

        result = envelope.result
        try:
            bytes.fromhex(result.tx)
        except ValueError as exc:
            raise ResolutionError(
                f"Resolver returned non-hex transaction for {intent.ref}", retryable=False
            ) from exc
        return SignableTransaction(cbor_hex=result.tx, tx_hash=result.tx_hash.lower())

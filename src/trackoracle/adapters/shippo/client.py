"""Async client for the Shippo tracking API."""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from trackoracle.adapters.http_resilience import ResilientClient
from trackoracle.domain.errors import StatusLookupError
from trackoracle.domain.model import ShipmentStatus, StatusObservation

from .schema import TrackPayload
from .translator import parse_observation

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from trackoracle.config.http_resilience import ResilienceConfig
    from trackoracle.config.shippo import ShippoConfig

log = getLogger(__name__)

# Shippo answers these for carriers or tracking numbers it does not know.
_UNKNOWN_SHIPMENT_STATUSES = frozenset({httpx.codes.BAD_REQUEST, httpx.codes.NOT_FOUND})


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ShippoStatusResolver:
    """Status resolver port backed by ``GET /tracks/{carrier}/{tracking_number}``."""

    def __init__(
        self,
        *,
        config: ShippoConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config = config
        self._client = (client_factory or ResilientClient)(config.resilience)
        self._clock = clock

    async def __aenter__(self) -> ShippoStatusResolver:
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

    async def resolve(self, carrier: str, tracking_number: str) -> StatusObservation:
        path = f"/tracks/{quote(carrier, safe='')}/{quote(tracking_number, safe='')}"
        try:
            response = await self._client.get(path)
        except httpx.HTTPError as exc:
            raise StatusLookupError(
                f"Tracking lookup {carrier}/{tracking_number} failed: {exc!r}"
            ) from exc

        now = self._clock()
        if response.status_code in _UNKNOWN_SHIPMENT_STATUSES:
            log.debug(
                "Shippo does not know %s/%s (status %d)",
                carrier,
                tracking_number,
                response.status_code,
            )
            return StatusObservation(
                status=ShipmentStatus.UNKNOWN,
                observed_at=now,
                details=f"tracking provider answered {response.status_code}",
            )
        if response.is_error:
            raise StatusLookupError(
                f"Tracking lookup {carrier}/{tracking_number} failed "
                f"(status {response.status_code})"
            )

        try:
            payload = TrackPayload.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise StatusLookupError(
                f"Unexpected tracking payload for {carrier}/{tracking_number}"
            ) from exc
        return parse_observation(payload, now=now)

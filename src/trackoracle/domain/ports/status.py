"""Port for real-world shipment status lookups."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from trackoracle.domain.model import StatusObservation


@runtime_checkable
class StatusResolver(Protocol):
    async def resolve(self, carrier: str, tracking_number: str) -> StatusObservation:
        """Return the normalized status; unknown shipments map to ``UNKNOWN``.

        Transient upstream failures raise ``StatusLookupError``.
        """
        ...

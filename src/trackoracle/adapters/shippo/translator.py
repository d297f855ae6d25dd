"""Map Shippo tracking payloads onto shipment statuses."""

from __future__ import annotations

from datetime import UTC
from typing import TYPE_CHECKING

from trackoracle.domain.model import ShipmentStatus, StatusObservation

if TYPE_CHECKING:
    from datetime import datetime

    from .schema import TrackPayload

_STATUS_MAP: dict[str, ShipmentStatus] = {
    "DELIVERED": ShipmentStatus.DELIVERED,
    "RETURNED": ShipmentStatus.NOT_DELIVERED,
    "FAILURE": ShipmentStatus.NOT_DELIVERED,
    "TRANSIT": ShipmentStatus.IN_TRANSIT,
    "PRE_TRANSIT": ShipmentStatus.IN_TRANSIT,
}


def map_status(value: str | None) -> ShipmentStatus:
    if value is None:
        return ShipmentStatus.UNKNOWN
    return _STATUS_MAP.get(value.strip().upper(), ShipmentStatus.UNKNOWN)


def parse_observation(payload: TrackPayload, *, now: datetime) -> StatusObservation:
    tracking_status = payload.tracking_status
    if tracking_status is None:
        return StatusObservation(
            status=ShipmentStatus.UNKNOWN, observed_at=now, details="no tracking status"
        )

    observed_at = tracking_status.status_date or now
    if observed_at.tzinfo is None:
        observed_at = observed_at.replace(tzinfo=UTC)
    details = tracking_status.status_details or tracking_status.status
    return StatusObservation(
        status=map_status(tracking_status.status),
        observed_at=observed_at.astimezone(UTC),
        details=details,
    )

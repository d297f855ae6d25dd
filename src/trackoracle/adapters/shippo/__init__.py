"""Public interface for the Shippo status adapter."""

from __future__ import annotations

from .client import ShippoStatusResolver
from .schema import TrackingStatusPayload, TrackPayload
from .translator import map_status, parse_observation

__all__ = [
    "ShippoStatusResolver",
    "TrackPayload",
    "TrackingStatusPayload",
    "map_status",
    "parse_observation",
]

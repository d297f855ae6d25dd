"""Pydantic models describing the Shippo tracking payloads."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ShippoBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TrackingStatusPayload(ShippoBaseModel):
    status: str | None = None
    substatus: object | None = None
    status_details: str | None = None
    status_date: datetime | None = None


class TrackPayload(ShippoBaseModel):
    carrier: str | None = None
    tracking_number: str | None = None
    tracking_status: TrackingStatusPayload | None = None

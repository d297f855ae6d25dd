"""Public interface for the Blockfrost ledger adapter."""

from __future__ import annotations

from .client import BlockfrostLedgerClient
from .schema import UtxoPayload
from .translator import TrackingDatum, decode_tracking_datum, parse_tracking_record

__all__ = [
    "BlockfrostLedgerClient",
    "TrackingDatum",
    "UtxoPayload",
    "decode_tracking_datum",
    "parse_tracking_record",
]

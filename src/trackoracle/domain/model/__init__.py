"""Domain model for tracking-record reconciliation."""

from __future__ import annotations

from .enums import ConfirmationStatus, RejectionKind, ShipmentStatus, StateKind
from .records import (
    CloseIntent,
    OracleIdentity,
    RecordRef,
    SignableTransaction,
    SignedTransaction,
    StatusObservation,
    TrackingRecord,
    TxRef,
)
from .state import SETTLED_KINDS, ReconciliationState

__all__ = [
    "SETTLED_KINDS",
    "CloseIntent",
    "ConfirmationStatus",
    "OracleIdentity",
    "ReconciliationState",
    "RecordRef",
    "RejectionKind",
    "ShipmentStatus",
    "SignableTransaction",
    "SignedTransaction",
    "StateKind",
    "StatusObservation",
    "TrackingRecord",
    "TxRef",
]

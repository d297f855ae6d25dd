"""Domain port definitions for adapters."""

from __future__ import annotations

from .intents import IntentResolver, TransactionSigner
from .ledger import LedgerClient
from .state_store import RecordStateStore
from .status import StatusResolver

__all__ = [
    "IntentResolver",
    "LedgerClient",
    "RecordStateStore",
    "StatusResolver",
    "TransactionSigner",
]

"""SQLAlchemy adapter package for trackoracle."""

from __future__ import annotations

from .mappings import create_all_tables, metadata, reconciliation_state_table
from .store import SqlAlchemyRecordStateStore, StartupError, shutdown, startup

__all__ = [
    "SqlAlchemyRecordStateStore",
    "StartupError",
    "create_all_tables",
    "metadata",
    "reconciliation_state_table",
    "shutdown",
    "startup",
]

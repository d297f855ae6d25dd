"""Public interface for the TRP intent resolver adapter."""

from __future__ import annotations

from .client import TrpIntentResolver, intent_args

__all__ = ["TrpIntentResolver", "intent_args"]

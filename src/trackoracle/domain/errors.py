"""Error taxonomy shared by the engine and the adapters.

Adapters translate transport and payload failures into these types at their
boundary; the engine decides what each one means for a record.
"""

from __future__ import annotations


class OracleError(RuntimeError):
    """Base class for reconciliation errors."""


class TransientError(OracleError):
    """A failure expected to go away on its own (timeouts, rate limits, node lag)."""


class StatusLookupError(TransientError):
    """The tracking provider could not answer for one record right now."""


class LedgerUnavailableError(OracleError):
    """The ledger indexer could not be queried.

    Fatal for a pass when raised while listing open records; transient when raised
    while polling confirmations.
    """


class SubmissionError(OracleError):
    """Broadcasting a signed transaction failed."""

    def __init__(self, message: str, *, retryable: bool, reason: str | None = None) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.reason = reason or message


class ResolutionError(OracleError):
    """The intent resolver could not produce a transaction for a close intent."""

    def __init__(self, message: str, *, retryable: bool) -> None:
        super().__init__(message)
        self.retryable = retryable


class SigningError(OracleError):
    """The resolved transaction could not be signed with the oracle key."""

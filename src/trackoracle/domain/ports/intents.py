"""Ports for turning a close intent into a signed transaction."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from trackoracle.domain.model import CloseIntent, SignableTransaction, SignedTransaction


@runtime_checkable
class IntentResolver(Protocol):
    async def resolve(self, intent: CloseIntent) -> SignableTransaction:
        """Resolve ``intent`` into a transaction; raise ``ResolutionError`` on failure."""
        ...


@runtime_checkable
class TransactionSigner(Protocol):
    def sign(self, transaction: SignableTransaction) -> SignedTransaction: ...

"""Port for the per-record reconciliation state store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from trackoracle.domain.model import ReconciliationState, RecordRef, StateKind


@runtime_checkable
class RecordStateStore(Protocol):
    """Dumb key-value holder; every ``put`` is committed on its own."""

    def get(self, ref: RecordRef) -> ReconciliationState | None: ...

    def put(self, ref: RecordRef, state: ReconciliationState) -> None: ...

    def all_in(
        self, kinds: Iterable[StateKind]
    ) -> Sequence[tuple[RecordRef, ReconciliationState]]: ...

"""In-memory record state store for tests and dry runs."""

from __future__ import annotations

from threading import Lock
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from trackoracle.domain.model import ReconciliationState, RecordRef, StateKind


class InMemoryRecordStateStore:
    def __init__(self) -> None:
        self._states: dict[RecordRef, ReconciliationState] = {}
        self._lock = Lock()

    def get(self, ref: RecordRef) -> ReconciliationState | None:
        with self._lock:
            return self._states.get(ref)

    def put(self, ref: RecordRef, state: ReconciliationState) -> None:
        with self._lock:
            self._states[ref] = state

    def all_in(self, kinds: Iterable[StateKind]) -> Sequence[tuple[RecordRef, ReconciliationState]]:
        wanted = frozenset(kinds)
        with self._lock:
            return sorted(
                ((ref, state) for ref, state in self._states.items() if state.kind in wanted),
                key=lambda item: item[0],
            )

    def __len__(self) -> int:
        return len(self._states)


if TYPE_CHECKING:
    from trackoracle.domain.ports import RecordStateStore

    _store_check: RecordStateStore = InMemoryRecordStateStore()

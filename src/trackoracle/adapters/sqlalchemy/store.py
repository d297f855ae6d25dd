"""SQLAlchemy-backed record state store."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy import and_, create_engine, select, update
from sqlalchemy.orm import Session, sessionmaker

from trackoracle.adapters.sqlalchemy.migrations import schema_revision, upgrade_head
from trackoracle.config.storage import get_database_config

from .mappings import reconciliation_state_table, row_to_state, state_to_row

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy import ColumnElement
    from sqlalchemy.engine import Engine

    from trackoracle.domain.model import ReconciliationState, RecordRef, StateKind

log = getLogger(__name__)

_table = reconciliation_state_table


class StartupError(RuntimeError):
    """Raised when the SQLAlchemy store is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    _engine: Engine | None = None
    _session_factory: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @engine.setter
    def engine(self, value: Engine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._engine is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call trackoracle.adapters.sqlalchemy."
                "store.startup() before opening the state store."
            )
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._session_factory


_STATE = _AdapterState()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Initialise the SQLAlchemy engine and bring the schema to the latest revision."""

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    resolved_engine = engine
    if resolved_engine is None:
        database = get_database_config()
        resolved_engine = create_engine(
            database_uri or database.uri, echo=database.echo, future=True
        )
    upgrade_head(engine=resolved_engine)
    _STATE.engine = resolved_engine
    log.info(
        "State store ready at %s (schema revision %s)",
        resolved_engine.url.render_as_string(hide_password=True),
        schema_revision(resolved_engine),
    )


def configured_engine() -> Engine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def is_started() -> bool:
    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None


class SqlAlchemyRecordStateStore:
    """Record state store; each ``put`` runs and commits in its own session."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self.session_factory: sessionmaker[Session] = session_factory or _STATE.session_factory

    def get(self, ref: RecordRef) -> ReconciliationState | None:
        with self.session_factory() as session:
            row = (
                session.execute(select(_table).where(self._identity(ref)))
                .mappings()
                .one_or_none()
            )
        if row is None:
            return None
        return row_to_state(row)[1]

    def put(self, ref: RecordRef, state: ReconciliationState) -> None:
        values = state_to_row(ref, state)
        with self.session_factory() as session, session.begin():
            result = session.execute(update(_table).where(self._identity(ref)).values(values))
            if result.rowcount == 0:
                session.execute(_table.insert().values(values))

    def all_in(self, kinds: Iterable[StateKind]) -> Sequence[tuple[RecordRef, ReconciliationState]]:
        wanted = list(kinds)
        if not wanted:
            return []
        statement = (
            select(_table)
            .where(_table.c.kind.in_(wanted))
            .order_by(_table.c.tx_hash, _table.c.output_index)
        )
        with self.session_factory() as session:
            rows = session.execute(statement).mappings().all()
        return [row_to_state(row) for row in rows]

    @staticmethod
    def _identity(ref: RecordRef) -> ColumnElement[bool]:
        return and_(
            _table.c.tx_hash == ref.tx_hash,
            _table.c.output_index == ref.output_index,
        )


if TYPE_CHECKING:
    from trackoracle.domain.ports import RecordStateStore

    _store_check: RecordStateStore = SqlAlchemyRecordStateStore()

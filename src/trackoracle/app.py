"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
import signal
from contextlib import AsyncExitStack, asynccontextmanager, suppress
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, TypedDict, Unpack

from trackoracle.adapters.blockfrost import BlockfrostLedgerClient
from trackoracle.adapters.shippo import ShippoStatusResolver
from trackoracle.adapters.signing import Ed25519TransactionSigner
from trackoracle.adapters.sqlalchemy import SqlAlchemyRecordStateStore, startup
from trackoracle.adapters.sqlalchemy.store import is_started
from trackoracle.adapters.trp import TrpIntentResolver
from trackoracle.config import (
    get_ledger_config,
    get_oracle_identity,
    get_reconciliation_policy,
    get_schedule_config,
    get_shippo_config,
    get_signing_config,
    get_trp_config,
)
from trackoracle.domain.model import ReconciliationState, StateKind
from trackoracle.domain.reconciliation import ReconciliationEngine
from trackoracle.scheduler import ReconciliationScheduler

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable, Sequence

    from trackoracle.config.schedule import ScheduleConfig
    from trackoracle.domain.model import OracleIdentity, RecordRef
    from trackoracle.domain.ports import (
        IntentResolver,
        LedgerClient,
        RecordStateStore,
        StatusResolver,
        TransactionSigner,
    )
    from trackoracle.domain.reconciliation import PassReport, ReconciliationPolicy

log = getLogger(__name__)


class EngineOverrides(TypedDict, total=False):
    ledger: LedgerClient
    status_resolver: StatusResolver
    intent_resolver: IntentResolver
    signer: TransactionSigner
    store: RecordStateStore
    oracle: OracleIdentity
    policy: ReconciliationPolicy


# An operator may only restart records that provably hold no transaction of ours.
RESETTABLE_KINDS = frozenset({StateKind.REJECTED, StateKind.VANISHED})


def open_state_store() -> RecordStateStore:
    """Return the SQLAlchemy store, initialising the database on first use."""

    if not is_started():
        startup()
    return SqlAlchemyRecordStateStore()


@asynccontextmanager
async def open_engine(
    *,
    ledger: LedgerClient | None = None,
    status_resolver: StatusResolver | None = None,
    intent_resolver: IntentResolver | None = None,
    signer: TransactionSigner | None = None,
    store: RecordStateStore | None = None,
    oracle: OracleIdentity | None = None,
    policy: ReconciliationPolicy | None = None,
) -> AsyncIterator[ReconciliationEngine]:
    """Build an engine from configuration; adapters opened here are closed on exit."""

    async with AsyncExitStack() as stack:
        if ledger is None:
            ledger = await stack.enter_async_context(
                BlockfrostLedgerClient(config=get_ledger_config())
            )
        if status_resolver is None:
            status_resolver = await stack.enter_async_context(
                ShippoStatusResolver(config=get_shippo_config())
            )
        if intent_resolver is None:
            intent_resolver = await stack.enter_async_context(
                TrpIntentResolver(config=get_trp_config())
            )
        if signer is None:
            signer = Ed25519TransactionSigner.from_hex(get_signing_config().signing_key_hex)

        yield ReconciliationEngine(
            ledger=ledger,
            status_resolver=status_resolver,
            intent_resolver=intent_resolver,
            signer=signer,
            store=store or open_state_store(),
            oracle=oracle or get_oracle_identity(),
            policy=policy or get_reconciliation_policy(),
        )


async def run_pass_async(**overrides: Unpack[EngineOverrides]) -> PassReport:
    async with open_engine(**overrides) as engine:
        return await engine.run_pass()


def run_single_pass() -> PassReport:
    """Run exactly one reconciliation pass with the configured adapters."""

    report = asyncio.run(run_pass_async())
    log.info("Single pass finished: %s", report.summary())
    return report


async def run_scheduler_async(
    *,
    schedule: ScheduleConfig | None = None,
    max_passes: int | None = None,
    handle_signals: bool = True,
    **overrides: Unpack[EngineOverrides],
) -> int:
    effective_schedule = schedule or get_schedule_config()
    async with open_engine(**overrides) as engine:
        scheduler = ReconciliationScheduler(engine, effective_schedule)
        loop = asyncio.get_running_loop()
        installed: list[signal.Signals] = []
        if handle_signals:
            for signum in (signal.SIGINT, signal.SIGTERM):
                # not available on every platform (e.g. Windows event loops)
                with suppress(NotImplementedError, RuntimeError):
                    loop.add_signal_handler(signum, scheduler.stop)
                    installed.append(signum)
        try:
            return await scheduler.run(max_passes=max_passes)
        finally:
            for signum in installed:
                loop.remove_signal_handler(signum)


def run_scheduler(*, max_passes: int | None = None) -> int:
    """Run cron-triggered passes until interrupted."""

    return asyncio.run(run_scheduler_async(max_passes=max_passes))


def list_states(
    kinds: Iterable[StateKind] | None = None,
    *,
    store: RecordStateStore | None = None,
) -> Sequence[tuple[RecordRef, ReconciliationState]]:
    effective_store = store or open_state_store()
    return effective_store.all_in(kinds or tuple(StateKind))


def reset_record(
    ref: RecordRef,
    *,
    store: RecordStateStore | None = None,
    now: datetime | None = None,
) -> ReconciliationState:
    """Send a rejected or vanished record back through status resolution."""

    effective_store = store or open_state_store()
    current = effective_store.get(ref)
    if current is None:
        raise ValueError(f"No state recorded for {ref}")
    if current.kind not in RESETTABLE_KINDS:
        raise ValueError(f"Cannot reset {ref} in state {current.kind.value}")
    if current.is_abandoned_attempt:
        raise ValueError(f"Cannot reset {ref}: transaction {current.tx_ref} may still land")

    state = ReconciliationState.discovered(at=now or datetime.now(UTC))
    effective_store.put(ref, state)
    log.info(
        "Reset %s from %s (%s) to %s",
        ref,
        current.kind.value,
        current.reason or "no reason recorded",
        state.kind.value,
    )
    return state

"""Reconciliation engine: drives every tracking record to exactly one closing transaction.

A pass reconciles three systems that fail independently (the ledger indexer, the
tracking provider and the intent resolver) through a state machine persisted per
record in a ``RecordStateStore``:

    DISCOVERED -> STATUS_PENDING -> STATUS_RESOLVED -> SUBMITTING -> SUBMITTED -> CONFIRMED
                                                                \\-> REJECTED

Two facts are kept apart. Whether a shipment is final is a real-world fact and is
re-queried freely. Whether a closing transaction was broadcast is a ledger fact: the
hash of every attempt is persisted before broadcasting and a record that reached
``SUBMITTED`` is only ever polled for confirmation afterwards.

The engine owns no timers; a scheduler calls ``run_pass`` and never overlaps passes.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from trackoracle.domain.errors import (
    LedgerUnavailableError,
    OracleError,
    ResolutionError,
    SigningError,
    SubmissionError,
    TransientError,
)
from trackoracle.domain.model import (
    CloseIntent,
    ConfirmationStatus,
    ReconciliationState,
    RejectionKind,
    StateKind,
)

from .policy import ReconciliationPolicy
from .report import PassReport

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Coroutine, Iterable

    from trackoracle.domain.model import (
        OracleIdentity,
        RecordRef,
        SignedTransaction,
        TrackingRecord,
    )
    from trackoracle.domain.ports import (
        IntentResolver,
        LedgerClient,
        RecordStateStore,
        StatusResolver,
        TransactionSigner,
    )

log = getLogger(__name__)

# Kinds that can hold an attempt still on its way to the ledger.
_IN_FLIGHT_KINDS = (StateKind.SUBMITTING, StateKind.SUBMITTED, StateKind.REJECTED)
_NEEDS_STATUS = frozenset({StateKind.DISCOVERED, StateKind.STATUS_PENDING})
_NEEDS_SUBMISSION = frozenset({StateKind.STATUS_RESOLVED, StateKind.SUBMITTING})
_VANISHABLE = (
    StateKind.DISCOVERED,
    StateKind.STATUS_PENDING,
    StateKind.STATUS_RESOLVED,
    StateKind.SUBMITTING,
    StateKind.REJECTED,
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ReconciliationEngine:
    """Run reconciliation passes over the open tracking records."""

    def __init__(
        self,
        *,
        ledger: LedgerClient,
        status_resolver: StatusResolver,
        intent_resolver: IntentResolver,
        signer: TransactionSigner,
        store: RecordStateStore,
        oracle: OracleIdentity,
        policy: ReconciliationPolicy | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._ledger = ledger
        self._status_resolver = status_resolver
        self._intent_resolver = intent_resolver
        self._signer = signer
        self._store = store
        self._oracle = oracle
        self._policy = policy or ReconciliationPolicy()
        self._clock = clock
        self._locks: dict[RecordRef, asyncio.Lock] = {}
        self._stop_requested = False

    @property
    def policy(self) -> ReconciliationPolicy:
        return self._policy

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def request_stop(self) -> None:
        """Stop starting new records; broadcasts already in flight still complete."""

        self._stop_requested = True

    async def run_pass(self) -> PassReport:
        report = PassReport()
        # passes never overlap; locks must not outlive the event loop that created them
        self._locks = {}

        try:
            records = await self._call(self._ledger.list_open_records())
        except (LedgerUnavailableError, TimeoutError) as exc:
            message = str(exc) or type(exc).__name__
            log.exception("Pass aborted, cannot list open tracking records: %s", message)
            report.aborted = True
            report.error = message
            return report

        open_records = {record.ref: record for record in records}
        report.open_records = len(open_records)
        log.info("Found %d open tracking record(s)", len(open_records))

        cleared = await self._poll_confirmations(report)
        self._mark_vanished(open_records, cleared, report)

        to_resolve, to_submit = self._partition(open_records, cleared, report)
        resolved = await self._bounded(
            self._policy.status_workers,
            [self._resolve_status(record, report) for record in to_resolve],
            report,
        )
        to_submit.extend(record for record in resolved if record is not None)
        await self._bounded(
            self._policy.submission_workers,
            [self._submit(record, report) for record in to_submit],
            report,
        )

        log.info("Pass finished: %s", report.summary())
        return report

    # -- confirmation -------------------------------------------------------------------

    async def _poll_confirmations(self, report: PassReport) -> set[RecordRef]:
        """Poll every attempt that may have reached the ledger.

        This includes records that gave up retrying after a broadcast. Returns the refs
        of those and of ``SUBMITTING`` records whose last attempt is known not to have
        landed, which makes them safe to retry or restart.
        """

        candidates = [
            ref for ref, state in self._store.all_in(_IN_FLIGHT_KINDS) if state.awaits_ledger
        ]
        outcomes = await self._bounded(
            self._policy.status_workers,
            [self._confirm(ref, report) for ref in candidates],
            report,
        )
        cleared: set[RecordRef] = set()
        for ref, outcome in zip(candidates, outcomes, strict=True):
            if outcome is ConfirmationStatus.NOT_FOUND:
                state = self._store.get(ref)
                if state is not None and state.kind is not StateKind.SUBMITTED:
                    cleared.add(ref)
        if cleared:
            log.debug("%d submission attempt(s) did not land: %s", len(cleared), cleared)
        return cleared

    async def _confirm(self, ref: RecordRef, report: PassReport) -> ConfirmationStatus | None:
        async with self._lock_for(ref):
            state = self._store.get(ref)
            if state is None or not state.awaits_ledger:
                return None
            assert state.tx_ref is not None
            outcome = await self._confirmation_status(ref, state.tx_ref, report)
            if outcome is None:
                return None

            now = self._clock()
            if outcome is ConfirmationStatus.CONFIRMED:
                self._store.put(ref, state.confirmed(at=now))
                report.confirmed += 1
                log.info("Record %s confirmed by transaction %s", ref, state.tx_ref)
            elif outcome is ConfirmationStatus.PENDING:
                if state.kind is not StateKind.SUBMITTED:
                    # the "failed" attempt actually reached the mempool
                    self._store.put(ref, state.submitted(state.tx_ref, at=now))
                    log.info("Record %s: attempt %s is in the mempool", ref, state.tx_ref)
            elif state.kind is StateKind.SUBMITTED:
                self._note_missing_confirmation(ref, state, report)
            return outcome

    def _note_missing_confirmation(
        self,
        ref: RecordRef,
        state: ReconciliationState,
        report: PassReport,
    ) -> None:
        now = self._clock()
        bound = self._policy.max_confirmation_polls
        if state.confirmation_polls >= bound:
            # This poll was the re-check of the original transaction, made a full pass
            # after the bound was reached. Nothing here ever resubmits.
            reason = (
                f"transaction {state.tx_ref} not found after "
                f"{state.confirmation_polls} confirmation polls and a re-check"
            )
            self._store.put(ref, state.rejected(RejectionKind.AMBIGUOUS, reason, at=now))
            report.rejected += 1
            log.warning("Record %s needs an operator: %s", ref, reason)
            return

        polled = state.with_confirmation_poll(at=now)
        self._store.put(ref, polled)
        if polled.confirmation_polls < bound:
            log.info(
                "Record %s: transaction %s not seen yet (poll %d/%d)",
                ref,
                state.tx_ref,
                polled.confirmation_polls,
                bound,
            )
        else:
            log.warning(
                "Record %s: transaction %s still not seen after %d polls, re-checking next pass",
                ref,
                state.tx_ref,
                polled.confirmation_polls,
            )

    async def _confirmation_status(
        self,
        ref: RecordRef,
        tx_ref: str,
        report: PassReport,
    ) -> ConfirmationStatus | None:
        try:
            return await self._call(self._ledger.confirmation_status(tx_ref))
        except (LedgerUnavailableError, TransientError, TimeoutError) as exc:
            report.failures += 1
            log.warning("Confirmation lookup failed for %s (%s): %s", ref, tx_ref, exc)
            return None

    # -- discovery ----------------------------------------------------------------------

    def _mark_vanished(
        self,
        open_records: dict[RecordRef, TrackingRecord],
        cleared: set[RecordRef],
        report: PassReport,
    ) -> None:
        now = self._clock()
        for ref, state in self._store.all_in(_VANISHABLE):
            if ref in open_records or state.is_permanently_rejected:
                continue
            if state.awaits_ledger and ref not in cleared:
                # our attempt may still be the one that spent it
                continue
            self._store.put(ref, ReconciliationState.vanished(at=now))
            report.vanished += 1
            log.warning("Record %s vanished from the ledger without our transaction", ref)

    def _partition(
        self,
        open_records: dict[RecordRef, TrackingRecord],
        cleared: set[RecordRef],
        report: PassReport,
    ) -> tuple[list[TrackingRecord], list[TrackingRecord]]:
        to_resolve: list[TrackingRecord] = []
        to_submit: list[TrackingRecord] = []
        now = self._clock()

        for ref in sorted(open_records):
            record = open_records[ref]
            state = self._store.get(ref)

            if state is None:
                self._store.put(ref, ReconciliationState.discovered(at=now))
                report.discovered += 1
                log.info(
                    "Discovered record %s (%s/%s, %d lovelace)",
                    ref,
                    record.carrier,
                    record.tracking_number,
                    record.deposited_lovelace,
                )
                to_resolve.append(record)
            elif state.is_settled or state.is_permanently_rejected:
                report.skipped += 1
            elif state.awaits_ledger and ref not in cleared:
                # the last attempt could not be ruled out this pass
                report.skipped += 1
            elif state.kind in {StateKind.REJECTED, StateKind.VANISHED}:
                self._store.put(ref, ReconciliationState.discovered(at=now))
                log.info("Record %s is open again after %s, restarting", ref, state.kind)
                to_resolve.append(record)
            elif state.kind in _NEEDS_STATUS:
                to_resolve.append(record)
            elif state.kind is StateKind.STATUS_RESOLVED:
                to_submit.append(record)
            elif state.is_due(now):
                to_submit.append(record)
            else:
                report.skipped += 1

        return to_resolve, to_submit

    # -- status -------------------------------------------------------------------------

    async def _resolve_status(
        self,
        record: TrackingRecord,
        report: PassReport,
    ) -> TrackingRecord | None:
        """Look up the shipment; return the record when its status became final."""

        if self._stop_requested:
            report.skipped += 1
            return None

        try:
            observation = await self._call(
                self._status_resolver.resolve(record.carrier, record.tracking_number)
            )
        except (OracleError, TimeoutError) as exc:
            report.failures += 1
            log.warning(
                "Status lookup failed for %s (%s/%s): %s",
                record.ref,
                record.carrier,
                record.tracking_number,
                exc,
            )
            return None

        async with self._lock_for(record.ref):
            state = self._store.get(record.ref)
            if state is None or state.kind not in _NEEDS_STATUS:
                return None
            now = self._clock()
            if observation.status.is_final:
                resolved = ReconciliationState.status_resolved(observation, at=now)
                self._store.put(record.ref, resolved)
                report.resolved += 1
                log.info("Record %s reached final status %s", record.ref, observation.status)
                return record

            self._store.put(record.ref, ReconciliationState.status_pending(observation, at=now))
            report.pending += 1
            log.info(
                "Record %s status %s is not final (%s)",
                record.ref,
                observation.status,
                observation.details or "no details",
            )
            return None

    # -- submission ---------------------------------------------------------------------

    async def _submit(self, record: TrackingRecord, report: PassReport) -> None:
        if self._stop_requested:
            report.skipped += 1
            return

        async with self._lock_for(record.ref):
            state = self._store.get(record.ref)
            if state is None or state.kind not in _NEEDS_SUBMISSION:
                return
            if state.kind is StateKind.SUBMITTING and not state.is_due(self._clock()):
                report.skipped += 1
                return
            await self._attempt(record, state, report)

    async def _attempt(
        self,
        record: TrackingRecord,
        state: ReconciliationState,
        report: PassReport,
    ) -> None:
        state = state.submitting(at=self._clock(), attempt_count=state.attempt_count)
        self._store.put(record.ref, state)

        if state.status is None or state.observed_at is None:
            self._reject(record.ref, state, "resolved state lost its status", report)
            return
        intent = CloseIntent.for_record(
            record,
            status=state.status,
            timestamp=state.observed_at,
            oracle=self._oracle,
        )

        try:
            transaction = await self._call(self._intent_resolver.resolve(intent))
            signed = self._signer.sign(transaction)
        except ResolutionError as exc:
            if exc.retryable:
                self._schedule_retry(record.ref, state, f"intent resolution: {exc}", report)
            else:
                self._reject(record.ref, state, f"intent rejected: {exc}", report)
            return
        except (TransientError, TimeoutError) as exc:
            self._schedule_retry(record.ref, state, f"intent resolution: {exc!r}", report)
            return
        except SigningError as exc:
            self._reject(record.ref, state, f"signing failed: {exc}", report)
            return

        # Persist the attempt before it leaves the process: after a crash the next
        # pass polls this hash instead of broadcasting a second transaction.
        state = state.submitting(
            at=self._clock(),
            attempt_count=state.attempt_count,
            tx_ref=signed.tx_hash,
        )
        self._store.put(record.ref, state)

        await asyncio.shield(self._broadcast(record, state, signed, report))

    async def _broadcast(
        self,
        record: TrackingRecord,
        state: ReconciliationState,
        signed: SignedTransaction,
        report: PassReport,
    ) -> None:
        try:
            tx_ref = await self._call(self._ledger.submit(signed))
        except SubmissionError as exc:
            if exc.retryable:
                self._schedule_retry(record.ref, state, f"submission: {exc}", report)
            else:
                self._reject(record.ref, state, exc.reason, report)
            return
        except (TransientError, LedgerUnavailableError, TimeoutError) as exc:
            self._schedule_retry(record.ref, state, f"submission: {exc!r}", report)
            return

        if tx_ref != signed.tx_hash:
            log.warning(
                "Ledger reported hash %s for %s, expected %s", tx_ref, record.ref, signed.tx_hash
            )
        self._store.put(record.ref, state.submitted(tx_ref, at=self._clock()))
        report.submitted += 1
        log.info(
            "Submitted close of %s with status %s: transaction %s",
            record.ref,
            state.status,
            tx_ref,
        )

    def _schedule_retry(
        self,
        ref: RecordRef,
        state: ReconciliationState,
        reason: str,
        report: PassReport,
    ) -> None:
        attempts = state.attempt_count + 1
        now = self._clock()
        if attempts >= self._policy.max_submission_attempts:
            message = f"gave up after {attempts} attempts, last error {reason}"
            self._store.put(ref, state.rejected(RejectionKind.RETRYABLE, message, at=now))
            report.rejected += 1
            log.warning("Record %s: %s", ref, message)
            return

        delay = self._policy.backoff.delay(attempts)
        self._store.put(
            ref,
            state.submitting(
                at=now,
                attempt_count=attempts,
                next_attempt_at=now + delay,
                tx_ref=state.tx_ref,
            ),
        )
        report.retry_scheduled += 1
        log.warning("Record %s: attempt %d failed (%s), retry in %s", ref, attempts, reason, delay)

    def _reject(
        self,
        ref: RecordRef,
        state: ReconciliationState,
        reason: str,
        report: PassReport,
    ) -> None:
        self._store.put(ref, state.rejected(RejectionKind.TERMINAL, reason, at=self._clock()))
        report.rejected += 1
        log.warning("Record %s rejected: %s", ref, reason)

    # -- helpers ------------------------------------------------------------------------

    async def _call[T](self, awaitable: Awaitable[T]) -> T:
        async with asyncio.timeout(self._policy.call_timeout_seconds):
            return await awaitable

    def _lock_for(self, ref: RecordRef) -> asyncio.Lock:
        lock = self._locks.get(ref)
        if lock is None:
            lock = self._locks[ref] = asyncio.Lock()
        return lock

    async def _bounded[T](
        self,
        limit: int,
        jobs: Iterable[Coroutine[object, object, T]],
        report: PassReport,
    ) -> list[T | None]:
        semaphore = asyncio.Semaphore(limit)

        async def run(job: Coroutine[object, object, T]) -> T:
            async with semaphore:
                return await job

        results = await asyncio.gather(*(run(job) for job in jobs), return_exceptions=True)
        collected: list[T | None] = []
        for result in results:
            if isinstance(result, Exception):
                report.failures += 1
                log.error("Unexpected error while reconciling a record", exc_info=result)
                collected.append(None)
            elif isinstance(result, BaseException):
                raise result
            else:
                collected.append(result)
        return collected

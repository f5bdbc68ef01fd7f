from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from quotesync.application.conflicts_service import CONFLICTS_KEY, ConflictLedger
from quotesync.application.merge_engine import merge
from quotesync.application.replica_store import QUOTES_KEY, ReplicaStore
from quotesync.bootstrap.logging import log_operational_error
from quotesync.core.errors import FetchError, PersistenceError, StoreDisposedError
from quotesync.core.metrics import MetricsRegistry, metrics_registry
from quotesync.core.observability import OperationContext, generate_correlation_id, get_correlation_id, log_event
from quotesync.domain.ports import BlobStorePort, Clock, RemoteQuotesPort, SyncListener
from quotesync.domain.sync_models import SyncOutcome, SyncState, SyncStatus, SyncTrigger
from quotesync.domain.time_utils import now_iso

logger = logging.getLogger(__name__)

BUSY_MESSAGE = "A sync is already running."


class SyncOrchestrator:
    """Runs one fetch -> merge -> persist cycle at a time.

    The fetch happens outside the replica lock; merge and persistence happen under it on
    staged copies, which are adopted in memory only after both blobs were written.
    """

    def __init__(
        self,
        replica: ReplicaStore,
        ledger: ConflictLedger,
        remote: RemoteQuotesPort,
        blob_store: BlobStorePort,
        *,
        clock: Clock = now_iso,
        metrics: MetricsRegistry = metrics_registry,
        listeners: Iterable[SyncListener] = (),
    ) -> None:
        self._replica = replica
        self._ledger = ledger
        self._remote = remote
        self._blob_store = blob_store
        self._clock = clock
        self._metrics = metrics
        self._listeners: list[SyncListener] = list(listeners)
        self._cycle_lock = threading.Lock()
        self._state = SyncState.IDLE
        self._last_outcome: SyncOutcome | None = None

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def last_outcome(self) -> SyncOutcome | None:
        return self._last_outcome

    def add_listener(self, listener: SyncListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SyncListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def run_cycle(self, trigger: SyncTrigger | str = SyncTrigger.MANUAL) -> SyncOutcome:
        trigger = SyncTrigger(trigger)
        if self._replica.disposed:
            raise StoreDisposedError("Replica store has been disposed.")
        started_at = self._clock()
        if not self._cycle_lock.acquire(blocking=False):
            return self._busy(trigger, started_at)
        try:
            self._state = SyncState.SYNCING
            with OperationContext("sync_cycle") as operation:
                outcome = self._run(trigger, started_at, operation)
        finally:
            self._state = SyncState.IDLE
            self._cycle_lock.release()
        self._last_outcome = outcome
        self._notify(outcome)
        return outcome

    def _run(self, trigger: SyncTrigger, started_at: str, operation: OperationContext) -> SyncOutcome:
        operation.log(logger, "sync_started", trigger=trigger.value)
        self._metrics.increment("sync_cycles")
        try:
            remote_batch = self._remote.fetch()
        except FetchError as exc:
            return self._failed(trigger, started_at, operation, exc, stage="fetch")

        with self._replica.lock:
            result = merge(self._replica.all(), remote_batch, clock=self._clock)
            staged_conflicts = self._ledger.with_recorded(result.conflicts)
            try:
                with self._blob_store.atomic():
                    self._blob_store.save(QUOTES_KEY, self._replica.encode(result.quotes))
                    self._blob_store.save(CONFLICTS_KEY, self._ledger.encode(staged_conflicts))
            except PersistenceError as exc:
                return self._failed(trigger, started_at, operation, exc, stage="persist")
            self._replica.adopt(result.quotes)
            self._ledger.adopt(staged_conflicts)

        self._metrics.increment("conflicts_detected", result.conflict_count)
        duration_ms = operation.elapsed_ms()
        self._metrics.record_timing("latency.sync_cycle_ms", duration_ms)
        operation.log(
            logger,
            "sync_succeeded",
            trigger=trigger.value,
            added=result.added_count,
            updated=result.updated_count,
            conflicts=result.conflict_count,
            duration_ms=duration_ms,
        )
        return SyncOutcome(
            status=SyncStatus.SUCCESS,
            trigger=trigger,
            started_at=started_at,
            finished_at=self._clock(),
            added_count=result.added_count,
            updated_count=result.updated_count,
            conflict_count=result.conflict_count,
            conflicts=tuple(staged_conflicts),
            correlation_id=operation.correlation_id,
            duration_ms=duration_ms,
        )

    def _failed(
        self,
        trigger: SyncTrigger,
        started_at: str,
        operation: OperationContext,
        exc: Exception,
        *,
        stage: str,
    ) -> SyncOutcome:
        self._metrics.increment("sync_failures")
        duration_ms = operation.elapsed_ms()
        self._metrics.record_timing("latency.sync_cycle_ms", duration_ms)
        operation.log(logger, "sync_failed", trigger=trigger.value, stage=stage, error=str(exc))
        log_operational_error(
            logger,
            "Sync failed",
            exc=exc,
            extra={"stage": stage, "trigger": trigger.value, "correlation_id": operation.correlation_id},
        )
        return SyncOutcome(
            status=SyncStatus.FAILED,
            trigger=trigger,
            started_at=started_at,
            finished_at=self._clock(),
            conflicts=tuple(self._ledger.list()),
            error=str(exc) or type(exc).__name__,
            correlation_id=operation.correlation_id,
            duration_ms=duration_ms,
        )

    def _busy(self, trigger: SyncTrigger, started_at: str) -> SyncOutcome:
        self._metrics.increment("sync_busy")
        correlation_id = get_correlation_id() or generate_correlation_id()
        log_event(logger, "sync_busy", {"trigger": trigger.value}, correlation_id)
        outcome = SyncOutcome(
            status=SyncStatus.BUSY,
            trigger=trigger,
            started_at=started_at,
            finished_at=started_at,
            error=BUSY_MESSAGE,
            correlation_id=correlation_id,
        )
        self._notify(outcome)
        return outcome

    def _notify(self, outcome: SyncOutcome) -> None:
        for listener in list(self._listeners):
            try:
                listener(outcome)
            except Exception as exc:  # noqa: BLE001
                log_operational_error(
                    logger,
                    "Sync listener failed",
                    exc=exc,
                    extra={"status": outcome.status.value, "correlation_id": outcome.correlation_id},
                )

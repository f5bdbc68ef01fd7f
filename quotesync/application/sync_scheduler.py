from __future__ import annotations

import logging
import queue
import threading

from quotesync.application.sync_orchestrator import SyncOrchestrator
from quotesync.bootstrap.logging import log_operational_error
from quotesync.domain.sync_models import SyncOutcome, SyncTick, SyncTrigger

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 30.0
DEFAULT_INITIAL_DELAY_SECONDS = 1.0


class SyncScheduler:
    """Single consumer loop that feeds ticks to the orchestrator one at a time.

    The periodic timer is the wait timeout on the tick queue: when nothing arrives within
    the timeout a scheduled tick fires. Manual requests share a one-slot queue, so extra
    requests while one is pending are coalesced.
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        *,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        initial_delay: float = DEFAULT_INITIAL_DELAY_SECONDS,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._orchestrator = orchestrator
        self._interval = interval
        self._initial_delay = max(0.0, initial_delay)
        self._ticks: queue.Queue[SyncTick | None] = queue.Queue(maxsize=1)
        self._stop_requested = threading.Event()
        self._thread: threading.Thread | None = None
        self._cycles = 0

    @property
    def cycles(self) -> int:
        return self._cycles

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def request_sync(self) -> bool:
        try:
            self._ticks.put_nowait(SyncTick(SyncTrigger.MANUAL))
        except queue.Full:
            logger.info("Manual sync coalesced with a pending request")
            return False
        return True

    def run_forever(self, max_cycles: int | None = None) -> int:
        timeout = self._initial_delay
        while not self._stop_requested.is_set():
            if max_cycles is not None and self._cycles >= max_cycles:
                break
            try:
                tick = self._ticks.get(timeout=timeout)
            except queue.Empty:
                tick = SyncTick(SyncTrigger.SCHEDULED)
            timeout = self._interval
            if tick is None or self._stop_requested.is_set():
                break
            self._process(tick)
        return self._cycles

    def start(self) -> None:
        if self.running:
            return
        self._stop_requested.clear()
        self._thread = threading.Thread(target=self.run_forever, name="quotesync-sync", daemon=True)
        self._thread.start()
        logger.info("Sync scheduler started", extra={"extra": {"interval": self._interval}})

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop_requested.set()
        try:
            self._ticks.put_nowait(None)
        except queue.Full:
            pass
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self._drain()
        logger.info("Sync scheduler stopped", extra={"extra": {"cycles": self._cycles}})

    def _drain(self) -> None:
        while True:
            try:
                self._ticks.get_nowait()
            except queue.Empty:
                return

    def _process(self, tick: SyncTick) -> SyncOutcome | None:
        self._cycles += 1
        try:
            return self._orchestrator.run_cycle(tick.trigger)
        except Exception as exc:  # noqa: BLE001
            log_operational_error(logger, "Sync cycle aborted", exc=exc, extra={"trigger": tick.trigger.value})
            return None

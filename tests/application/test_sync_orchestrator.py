from __future__ import annotations

import threading

import pytest

from quotesync.application.conflicts_service import CONFLICTS_KEY, ConflictLedger
from quotesync.application.replica_store import QUOTES_KEY, ReplicaStore
from quotesync.application.sync_orchestrator import SyncOrchestrator
from quotesync.core.errors import StoreDisposedError
from quotesync.domain.models import QuoteSource
from quotesync.domain.remote_errors import RemoteUnavailableError
from quotesync.domain.sync_models import SyncState, SyncStatus, SyncTrigger
from tests.fakes import BlockingRemoteQuotes, FakeRemoteQuotes, FlakyBlobStore, make_quote


def _server(quote_id: str, text: str):
    return make_quote(quote_id, text, source=QuoteSource.SERVER, updated_at="2025-06-01T00:00:00.000Z")


def _snapshot(blob_store) -> tuple[bytes | None, bytes | None]:
    return blob_store.load(QUOTES_KEY), blob_store.load(CONFLICTS_KEY)


def test_successful_cycle_merges_persists_and_reports(replica, ledger, blob_store, clock, metrics) -> None:
    replica.add({"id": "a", "text": "Life...", "category": "Life"})
    remote = FakeRemoteQuotes([_server("a", "Changed"), _server("b", "New")])
    orchestrator = SyncOrchestrator(replica, ledger, remote, blob_store, clock=clock, metrics=metrics)

    outcome = orchestrator.run_cycle(SyncTrigger.MANUAL)

    assert outcome.status is SyncStatus.SUCCESS
    assert (outcome.added_count, outcome.updated_count, outcome.conflict_count) == (1, 1, 1)
    assert [conflict.id for conflict in outcome.conflicts] == ["a"]
    assert replica.get("a").text == "Changed"
    assert ledger.get("a").local.text == "Life..."
    assert b"Changed" in blob_store.load(QUOTES_KEY)
    assert b"Life..." in blob_store.load(CONFLICTS_KEY)
    assert orchestrator.state is SyncState.IDLE
    assert orchestrator.last_outcome == outcome
    assert metrics.counter("sync_cycles") == 1
    assert metrics.counter("conflicts_detected") == 1
    assert metrics.snapshot()["timings_ms"]["latency.sync_cycle_ms"]["count"] == 1


def test_fetch_failure_leaves_state_untouched(replica, ledger, blob_store, clock, metrics) -> None:
    replica.add({"id": "a", "text": "Keep", "category": "Life"})
    before = _snapshot(blob_store)
    remote = FakeRemoteQuotes(error=RemoteUnavailableError("network down"))
    orchestrator = SyncOrchestrator(replica, ledger, remote, blob_store, clock=clock, metrics=metrics)

    outcome = orchestrator.run_cycle("scheduled")

    assert outcome.status is SyncStatus.FAILED
    assert outcome.trigger is SyncTrigger.SCHEDULED
    assert outcome.error == "network down"
    assert _snapshot(blob_store) == before
    assert [quote.text for quote in replica.all()] == ["Keep"]
    assert ledger.list() == []
    assert metrics.counter("sync_failures") == 1


def test_persistence_failure_keeps_memory_and_storage_consistent(blob_store, clock, metrics) -> None:
    flaky = FlakyBlobStore(blob_store)
    replica = ReplicaStore.create(flaky, clock=clock)
    ledger = ConflictLedger.create(flaky, replica)
    replica.add({"id": "a", "text": "A", "category": "Life"})
    before = _snapshot(blob_store)
    flaky.fail_saves = True
    orchestrator = SyncOrchestrator(
        replica, ledger, FakeRemoteQuotes([_server("a", "B"), _server("c", "C")]), flaky, clock=clock, metrics=metrics
    )

    outcome = orchestrator.run_cycle()

    assert outcome.status is SyncStatus.FAILED
    assert "disk full" in outcome.error
    assert [quote.text for quote in replica.all()] == ["A"]
    assert ledger.count() == 0
    assert _snapshot(blob_store) == before


def test_overlapping_cycle_reports_busy(replica, ledger, blob_store, clock, metrics) -> None:
    remote = BlockingRemoteQuotes([_server("b", "New")])
    orchestrator = SyncOrchestrator(replica, ledger, remote, blob_store, clock=clock, metrics=metrics)
    results = []
    worker = threading.Thread(target=lambda: results.append(orchestrator.run_cycle()))
    worker.start()
    assert remote.entered.wait(timeout=5)

    busy = orchestrator.run_cycle()
    remote.release.set()
    worker.join(timeout=5)

    assert busy.status is SyncStatus.BUSY
    assert results[0].status is SyncStatus.SUCCESS
    assert remote.calls == 1
    assert len(replica) == 1
    assert metrics.counter("sync_busy") == 1


def test_listeners_receive_outcomes_and_failures_are_isolated(replica, ledger, blob_store, clock, metrics) -> None:
    received = []

    def broken_listener(outcome) -> None:
        raise RuntimeError("render failed")

    orchestrator = SyncOrchestrator(
        replica,
        ledger,
        FakeRemoteQuotes([_server("b", "New")]),
        blob_store,
        clock=clock,
        metrics=metrics,
        listeners=[broken_listener],
    )
    orchestrator.add_listener(received.append)

    outcome = orchestrator.run_cycle()

    assert received == [outcome]
    assert outcome.succeeded
    orchestrator.remove_listener(received.append)
    orchestrator.run_cycle()
    assert len(received) == 1


def test_second_identical_cycle_adds_nothing(replica, ledger, blob_store, clock, metrics) -> None:
    replica.add({"id": "x", "text": "A", "category": "Life"})
    remote = FakeRemoteQuotes([_server("x", "B"), _server("y", "C")])
    orchestrator = SyncOrchestrator(replica, ledger, remote, blob_store, clock=clock, metrics=metrics)

    orchestrator.run_cycle()
    second = orchestrator.run_cycle()

    assert (second.added_count, second.updated_count, second.conflict_count) == (0, 0, 0)
    assert ledger.count() == 1


def test_cycle_on_disposed_replica_raises(replica, ledger, blob_store, clock, metrics) -> None:
    orchestrator = SyncOrchestrator(replica, ledger, FakeRemoteQuotes(), blob_store, clock=clock, metrics=metrics)
    replica.dispose()

    with pytest.raises(StoreDisposedError):
        orchestrator.run_cycle()

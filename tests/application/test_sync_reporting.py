from __future__ import annotations

from datetime import timezone

from quotesync.application.sync_reporting import format_conflict, format_quote, format_sync_status
from quotesync.domain.models import Conflict, QuoteSource
from quotesync.domain.sync_models import SyncOutcome, SyncStatus, SyncTrigger
from tests.fakes import make_quote


def _outcome(status: SyncStatus, **kwargs) -> SyncOutcome:
    return SyncOutcome(
        status=status,
        trigger=kwargs.pop("trigger", SyncTrigger.MANUAL),
        started_at="2025-01-01T11:59:59.000Z",
        finished_at="2025-01-01T12:00:00.000Z",
        **kwargs,
    )


def test_success_status_line() -> None:
    outcome = _outcome(SyncStatus.SUCCESS, added_count=1, updated_count=1, conflict_count=1)

    assert format_sync_status(outcome, tz=timezone.utc) == (
        "Last sync (manual): +1 added, 1 updated, 1 conflicts. (12:00:00)"
    )


def test_failed_and_busy_status_lines() -> None:
    assert format_sync_status(_outcome(SyncStatus.FAILED, error="timeout")) == "Sync failed: timeout"
    assert format_sync_status(_outcome(SyncStatus.BUSY)) == "Sync skipped: a sync is already running."


def test_outcome_to_dict_serializes_enums() -> None:
    payload = _outcome(SyncStatus.SUCCESS, trigger=SyncTrigger.SCHEDULED).to_dict()

    assert payload["status"] == "success"
    assert payload["trigger"] == "scheduled"
    assert payload["conflicts"] == []


def test_format_quote_and_conflict() -> None:
    local = make_quote("x", "A", author="Ann")
    server = make_quote("x", "B", author="User 1", source=QuoteSource.SERVER)
    conflict = Conflict(id="x", local=local, server=server, timestamp="2025-01-01T00:00:00.000Z")

    assert format_quote(local) == '"A" - Ann [Life]'
    lines = format_conflict(conflict).splitlines()
    assert lines[0] == "Conflict x (detected 2025-01-01T00:00:00.000Z)"
    assert lines[1].endswith('"A" - Ann [Life]')
    assert lines[2].endswith('"B" - User 1 [Life]')

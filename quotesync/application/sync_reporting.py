from __future__ import annotations

from datetime import tzinfo

from quotesync.domain.models import Conflict, Quote
from quotesync.domain.sync_models import SyncOutcome, SyncStatus
from quotesync.domain.time_utils import parse_iso


def _clock_time(value: str, tz: tzinfo | None) -> str:
    parsed = parse_iso(value)
    if parsed is None:
        return value
    return parsed.astimezone(tz).strftime("%H:%M:%S")


def format_sync_status(outcome: SyncOutcome, *, tz: tzinfo | None = None) -> str:
    if outcome.status is SyncStatus.BUSY:
        return "Sync skipped: a sync is already running."
    if outcome.status is SyncStatus.FAILED:
        return f"Sync failed: {outcome.error}"
    return (
        f"Last sync ({outcome.trigger.value}): +{outcome.added_count} added, "
        f"{outcome.updated_count} updated, {outcome.conflict_count} conflicts. "
        f"({_clock_time(outcome.finished_at, tz)})"
    )


def format_quote(quote: Quote) -> str:
    return f'"{quote.text}" - {quote.author} [{quote.category}]'


def format_conflict(conflict: Conflict) -> str:
    lines = [
        f"Conflict {conflict.id} (detected {conflict.timestamp})",
        f"  local:  {format_quote(conflict.local)}",
        f"  server: {format_quote(conflict.server)}",
    ]
    return "\n".join(lines)

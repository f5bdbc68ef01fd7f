from __future__ import annotations

import dataclasses
from collections.abc import Iterable
from enum import Enum

from quotesync.domain.models import Conflict, Quote
from quotesync.domain.ports import Clock
from quotesync.domain.sync_models import MergeResult
from quotesync.domain.time_utils import now_iso


class MergeAction(str, Enum):
    ADD = "add"
    REFRESH = "refresh"
    OVERWRITE = "overwrite"


def evaluate_merge_action(local: Quote | None, remote: Quote) -> MergeAction:
    """Decide what a remote record does to the replica.

    Rules:
    - No local record with the id: the remote one is appended.
    - Same text, author and category: only provenance (``updated_at``/``source``) is refreshed.
    - Anything else: remote wins and the divergence is recorded as a conflict.
    """
    if local is None:
        return MergeAction.ADD
    if local.same_content(remote):
        return MergeAction.REFRESH
    return MergeAction.OVERWRITE


def collapse_batch(remote_batch: Iterable[Quote]) -> list[Quote]:
    """Last record per id wins, at the position where the id first appeared."""
    collapsed: dict[str, Quote] = {}
    for quote in remote_batch:
        collapsed[quote.id] = quote
    return list(collapsed.values())


def merge(local_quotes: Iterable[Quote], remote_batch: Iterable[Quote], *, clock: Clock = now_iso) -> MergeResult:
    quotes = list(local_quotes)
    positions = {quote.id: index for index, quote in enumerate(quotes)}
    added = 0
    updated = 0
    conflicts: list[Conflict] = []
    detected_at = clock()

    for remote in collapse_batch(remote_batch):
        position = positions.get(remote.id)
        local = None if position is None else quotes[position]
        action = evaluate_merge_action(local, remote)
        if action is MergeAction.ADD:
            positions[remote.id] = len(quotes)
            quotes.append(remote)
            added += 1
        elif action is MergeAction.REFRESH:
            quotes[position] = dataclasses.replace(local, updated_at=remote.updated_at, source=remote.source)
        else:
            quotes[position] = remote
            conflicts.append(Conflict(id=remote.id, local=local, server=remote, timestamp=detected_at))
            updated += 1

    return MergeResult(quotes=tuple(quotes), added_count=added, updated_count=updated, conflicts=tuple(conflicts))

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from quotesync.application.blob_codec import decode_list_blob, encode_blob
from quotesync.application.normalization import is_valid_quote, normalize_quote
from quotesync.application.replica_store import QUOTES_KEY, ReplicaStore
from quotesync.core.errors import PersistenceReadError, StoreDisposedError, ValidationError
from quotesync.domain.models import Conflict, Quote, QuoteSource, ResolutionChoice
from quotesync.domain.ports import BlobStorePort

logger = logging.getLogger(__name__)

CONFLICTS_KEY = "conflicts"


def parse_resolution_choice(value: ResolutionChoice | str) -> ResolutionChoice:
    if isinstance(value, ResolutionChoice):
        return value
    try:
        return ResolutionChoice(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationError(f"Unknown resolution '{value}'. Use 'local' or 'server'.") from exc


def _snapshot_from_payload(raw: Any, fallback_source: QuoteSource) -> Quote | None:
    if not isinstance(raw, Mapping):
        return None
    quote = normalize_quote(raw, raw.get("source") or fallback_source)
    return quote if is_valid_quote(quote) else None


def conflict_from_payload(raw: Any) -> Conflict | None:
    if not isinstance(raw, Mapping):
        return None
    conflict_id = str(raw.get("id") or "").strip()
    local = _snapshot_from_payload(raw.get("local"), QuoteSource.LOCAL)
    server = _snapshot_from_payload(raw.get("server"), QuoteSource.SERVER)
    if not conflict_id or local is None or server is None:
        return None
    return Conflict(
        id=conflict_id,
        local=dataclasses.replace(local, id=conflict_id),
        server=dataclasses.replace(server, id=conflict_id),
        timestamp=str(raw.get("timestamp") or ""),
    )


class ConflictLedger:
    """Open conflicts keyed by quote id, kept in detection order.

    Shares the replica's lock and blob store: a resolution rewrites the replica and the
    ledger inside a single ``atomic()`` block.
    """

    storage_key = CONFLICTS_KEY

    def __init__(self, blob_store: BlobStorePort, replica: ReplicaStore) -> None:
        self._blob_store = blob_store
        self._replica = replica
        self._conflicts: dict[str, Conflict] = {}

    @classmethod
    def create(cls, blob_store: BlobStorePort, replica: ReplicaStore) -> "ConflictLedger":
        ledger = cls(blob_store, replica)
        ledger.load()
        return ledger

    @property
    def lock(self):
        return self._replica.lock

    def load(self) -> int:
        with self.lock:
            try:
                payload = decode_list_blob(self._blob_store.load(CONFLICTS_KEY), CONFLICTS_KEY)
            except PersistenceReadError as exc:
                logger.warning("Stored conflicts discarded: %s", exc)
                payload = None
            loaded: list[Conflict] = []
            for raw in payload or []:
                conflict = conflict_from_payload(raw)
                if conflict is None:
                    logger.warning("Stored conflict skipped: malformed entry")
                    continue
                loaded.append(conflict)
            self._adopt(self._merged(loaded))
            return len(self._conflicts)

    def record(self, conflict: Conflict) -> None:
        with self.lock:
            staged = self.with_recorded([conflict])
            self._blob_store.save(CONFLICTS_KEY, self.encode(staged))
            self._adopt(staged)
            logger.info("Conflict recorded", extra={"extra": {"id": conflict.id}})

    def with_recorded(self, conflicts: Iterable[Conflict]) -> list[Conflict]:
        return self._merged([*self._conflicts.values(), *conflicts])

    def list(self) -> list[Conflict]:
        with self.lock:
            return list(self._conflicts.values())

    def count(self) -> int:
        return len(self._conflicts)

    def get(self, conflict_id: str) -> Conflict | None:
        with self.lock:
            return self._conflicts.get(conflict_id)

    def resolve(self, conflict_id: str, choice: ResolutionChoice | str) -> Quote | None:
        resolution = parse_resolution_choice(choice)
        with self.lock:
            if self._replica.disposed:
                raise StoreDisposedError("Replica store has been disposed.")
            conflict = self._conflicts.get(conflict_id)
            if conflict is None:
                logger.info("Conflict not found", extra={"extra": {"id": conflict_id}})
                return None
            chosen = dataclasses.replace(conflict.snapshot_for(resolution), updated_at=self._replica.clock())
            staged_quotes = self._replica.staged_upsert(chosen)
            staged_conflicts = [item for item in self._conflicts.values() if item.id != conflict_id]
            with self._blob_store.atomic():
                self._blob_store.save(QUOTES_KEY, self._replica.encode(staged_quotes))
                self._blob_store.save(CONFLICTS_KEY, self.encode(staged_conflicts))
            self._replica.adopt(staged_quotes)
            self._adopt(staged_conflicts)
            logger.info(
                "Conflict resolved",
                extra={"extra": {"id": conflict_id, "choice": resolution.value}},
            )
            return chosen

    def encode(self, conflicts: Iterable[Conflict] | None = None) -> bytes:
        items = self._conflicts.values() if conflicts is None else conflicts
        return encode_blob([conflict.to_dict() for conflict in items])

    def adopt(self, conflicts: Iterable[Conflict]) -> None:
        """Swaps in conflicts that the caller has already persisted."""
        with self.lock:
            self._adopt(list(conflicts))

    @staticmethod
    def _merged(conflicts: Iterable[Conflict]) -> list[Conflict]:
        # A later conflict for the same id replaces the earlier one and moves to the end.
        merged: dict[str, Conflict] = {}
        for conflict in conflicts:
            merged.pop(conflict.id, None)
            merged[conflict.id] = conflict
        return list(merged.values())

    def _adopt(self, conflicts: list[Conflict]) -> None:
        self._conflicts = {conflict.id: conflict for conflict in conflicts}

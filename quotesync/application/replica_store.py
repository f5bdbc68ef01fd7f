from __future__ import annotations

import json
import logging
import random
import threading
from collections.abc import Iterable, Mapping
from typing import Any

from quotesync.application.blob_codec import decode_list_blob, encode_blob
from quotesync.application.normalization import normalize_quote, quote_validation_errors
from quotesync.bootstrap.logging import log_operational_error
from quotesync.core.errors import PersistenceError, PersistenceReadError, StoreDisposedError, ValidationError
from quotesync.domain.models import ALL_CATEGORIES, Quote, QuoteSource
from quotesync.domain.ports import BlobStorePort, Clock
from quotesync.domain.sync_models import ImportResult
from quotesync.domain.time_utils import now_iso

logger = logging.getLogger(__name__)

QUOTES_KEY = "quotes"


class ReplicaStore:
    """Authoritative, insertion-ordered list of quotes for this client.

    Every mutation is staged on a copy, persisted, and only then adopted in memory, so a
    failed write leaves the replica as it was. ``lock`` is shared with the conflict ledger
    and the sync orchestrator.
    """

    storage_key = QUOTES_KEY

    def __init__(
        self,
        blob_store: BlobStorePort,
        *,
        seed_quotes: Iterable[Mapping[str, Any]] = (),
        clock: Clock = now_iso,
        lock: threading.RLock | None = None,
    ) -> None:
        self._blob_store = blob_store
        self._seed_quotes = tuple(seed_quotes)
        self._clock = clock
        self._lock = lock or threading.RLock()
        self._quotes: list[Quote] = []
        self._index: dict[str, int] = {}
        self._disposed = False

    @classmethod
    def create(cls, blob_store: BlobStorePort, **kwargs: Any) -> "ReplicaStore":
        store = cls(blob_store, **kwargs)
        store.load()
        return store

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def clock(self) -> Clock:
        return self._clock

    def load(self) -> int:
        with self._lock:
            self._ensure_open()
            try:
                payload = decode_list_blob(self._blob_store.load(QUOTES_KEY), QUOTES_KEY)
            except PersistenceReadError as exc:
                logger.warning("Stored replica discarded: %s", exc)
                payload = None
            quotes = self._quotes_from_payload(payload or [])
            if quotes:
                self._adopt(quotes)
                logger.info("Replica loaded", extra={"extra": {"quotes": len(quotes)}})
                return len(quotes)
            seeded = [normalize_quote(raw, QuoteSource.LOCAL, clock=self._clock) for raw in self._seed_quotes]
            self._adopt(seeded)
            if seeded:
                try:
                    self._blob_store.save(QUOTES_KEY, self.encode(seeded))
                except PersistenceError as exc:
                    log_operational_error(logger, "Seeded replica could not be persisted", exc=exc)
                logger.info("Replica seeded with default quotes", extra={"extra": {"quotes": len(seeded)}})
            return len(self._quotes)

    def dispose(self) -> None:
        with self._lock:
            self._disposed = True
            self._quotes = []
            self._index = {}

    @property
    def disposed(self) -> bool:
        return self._disposed

    def add(self, raw: Mapping[str, Any]) -> Quote:
        with self._lock:
            self._ensure_open()
            quote = normalize_quote(raw, QuoteSource.LOCAL, clock=self._clock)
            errors = quote_validation_errors(quote)
            if quote.id in self._index:
                errors.append(f"A quote with id '{quote.id}' already exists.")
            if errors:
                logger.info("Quote rejected", extra={"extra": {"errors": errors}})
                raise ValidationError(" ".join(errors), errors)
            self._commit([*self._quotes, quote])
            logger.info("Quote added", extra={"extra": {"id": quote.id, "category": quote.category}})
            return quote

    def import_batch(self, raw_items: Iterable[Any]) -> ImportResult:
        with self._lock:
            self._ensure_open()
            accepted: list[Quote] = []
            errors: list[str] = []
            seen = set(self._index)
            rejected = 0
            for position, raw in enumerate(raw_items, start=1):
                if not isinstance(raw, Mapping):
                    rejected += 1
                    errors.append(f"Item {position}: expected an object.")
                    continue
                quote = normalize_quote(raw, raw.get("source") or QuoteSource.LOCAL, clock=self._clock)
                item_errors = quote_validation_errors(quote)
                if quote.id in seen:
                    item_errors.append(f"duplicate id '{quote.id}'.")
                if item_errors:
                    rejected += 1
                    errors.append(f"Item {position}: {' '.join(item_errors)}")
                    continue
                seen.add(quote.id)
                accepted.append(quote)
            if accepted:
                self._commit([*self._quotes, *accepted])
            logger.info(
                "Quotes imported",
                extra={"extra": {"imported": len(accepted), "rejected": rejected}},
            )
            return ImportResult(imported=len(accepted), rejected=rejected, errors=tuple(errors), quotes=tuple(accepted))

    def import_json(self, text: str) -> ImportResult:
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValidationError("Error parsing JSON file.") from exc
        if not isinstance(payload, list):
            raise ValidationError("Invalid JSON format. Expected an array.")
        result = self.import_batch(payload)
        if not result.imported:
            raise ValidationError("No valid quotes found.", list(result.errors) or None)
        return result

    def export_json(self) -> str:
        with self._lock:
            self._ensure_open()
            return json.dumps([quote.to_dict() for quote in self._quotes], indent=2, ensure_ascii=False)

    def get(self, quote_id: str) -> Quote | None:
        with self._lock:
            position = self._index.get(quote_id)
            return None if position is None else self._quotes[position]

    def all(self) -> tuple[Quote, ...]:
        with self._lock:
            return tuple(self._quotes)

    def __len__(self) -> int:
        return len(self._quotes)

    def __contains__(self, quote_id: object) -> bool:
        return quote_id in self._index

    def replace(self, quote_id: str, quote: Quote) -> Quote:
        with self._lock:
            self._ensure_open()
            if quote_id not in self._index:
                raise KeyError(quote_id)
            if quote.id != quote_id:
                raise ValueError(f"Replacement for '{quote_id}' carries id '{quote.id}'.")
            self._commit(self.staged_upsert(quote))
            return quote

    def staged_upsert(self, quote: Quote) -> list[Quote]:
        staged = list(self._quotes)
        position = self._index.get(quote.id)
        if position is None:
            staged.append(quote)
        else:
            staged[position] = quote
        return staged

    def encode(self, quotes: Iterable[Quote] | None = None) -> bytes:
        items = self._quotes if quotes is None else quotes
        return encode_blob([quote.to_dict() for quote in items])

    def adopt(self, quotes: Iterable[Quote]) -> None:
        """Swaps in quotes that the caller has already persisted."""
        with self._lock:
            self._ensure_open()
            self._adopt(list(quotes))

    def categories(self) -> list[str]:
        with self._lock:
            return sorted({quote.category for quote in self._quotes}, key=str.casefold)

    def filter_by_category(self, category: str | None = ALL_CATEGORIES) -> list[Quote]:
        with self._lock:
            if not category or category == ALL_CATEGORIES:
                return list(self._quotes)
            return [quote for quote in self._quotes if quote.category == category]

    def random_quote(self, category: str | None = ALL_CATEGORIES, rng: random.Random | None = None) -> Quote | None:
        pool = self.filter_by_category(category)
        if not pool:
            return None
        return (rng or random).choice(pool)

    def _commit(self, staged: list[Quote]) -> None:
        self._blob_store.save(QUOTES_KEY, self.encode(staged))
        self._adopt(staged)

    def _adopt(self, quotes: list[Quote]) -> None:
        self._quotes = quotes
        self._index = {quote.id: position for position, quote in enumerate(quotes)}

    def _ensure_open(self) -> None:
        if self._disposed:
            raise StoreDisposedError("Replica store has been disposed.")

    def _quotes_from_payload(self, payload: list[Any]) -> list[Quote]:
        quotes: list[Quote] = []
        seen: set[str] = set()
        for raw in payload:
            if not isinstance(raw, Mapping):
                logger.warning("Stored quote skipped: not an object")
                continue
            quote = normalize_quote(raw, raw.get("source") or QuoteSource.LOCAL, clock=self._clock)
            if quote_validation_errors(quote) or quote.id in seen:
                logger.warning("Stored quote skipped", extra={"extra": {"id": quote.id}})
                continue
            seen.add(quote.id)
            quotes.append(quote)
        return quotes

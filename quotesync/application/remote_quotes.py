from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from quotesync.application.normalization import normalize_quote, quote_validation_errors
from quotesync.domain.models import REMOTE_ID_PREFIX, Quote, QuoteSource
from quotesync.domain.ports import Clock, RemoteSourcePort
from quotesync.domain.remote_errors import RemotePayloadError
from quotesync.domain.time_utils import now_iso

logger = logging.getLogger(__name__)


def namespaced_remote_id(raw_id: Any) -> str:
    value = "" if raw_id is None else str(raw_id).strip()
    if not value:
        return ""
    if value.startswith(f"{REMOTE_ID_PREFIX}-"):
        return value
    return f"{REMOTE_ID_PREFIX}-{value}"


class RemoteQuoteAdapter:
    """Turns whatever the remote source returns into server-tagged quotes.

    Raises ``FetchError`` subclasses only; entries that cannot become a quote are logged
    and dropped.
    """

    def __init__(self, source: RemoteSourcePort, *, clock: Clock = now_iso) -> None:
        self._source = source
        self._clock = clock

    def fetch(self) -> list[Quote]:
        payload = self._source.fetch_records()
        if not isinstance(payload, list):
            raise RemotePayloadError(f"Remote payload must be a list, got {type(payload).__name__}.")
        quotes: list[Quote] = []
        skipped = 0
        for position, raw in enumerate(payload):
            quote = self._to_quote(raw)
            if quote is None:
                skipped += 1
                logger.warning("Remote record skipped", extra={"extra": {"position": position}})
                continue
            quotes.append(quote)
        logger.info("Remote batch fetched", extra={"extra": {"quotes": len(quotes), "skipped": skipped}})
        return quotes

    def _to_quote(self, raw: Any) -> Quote | None:
        if not isinstance(raw, Mapping):
            return None
        record = dict(raw)
        record["id"] = namespaced_remote_id(record.get("id"))
        record["source"] = QuoteSource.SERVER.value
        quote = normalize_quote(record, QuoteSource.SERVER, clock=self._clock)
        if quote_validation_errors(quote):
            return None
        return quote

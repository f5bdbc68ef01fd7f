from __future__ import annotations

import itertools
import time
import uuid
from collections.abc import Mapping
from typing import Any

from quotesync.domain.models import DEFAULT_AUTHOR, DEFAULT_CATEGORY, Quote, QuoteSource
from quotesync.domain.ports import Clock
from quotesync.domain.time_utils import now_iso

_ID_SEQUENCE = itertools.count(1)


def generate_quote_id(source: QuoteSource | str = QuoteSource.LOCAL) -> str:
    """Builds ``<prefix>-<epoch ms>-<sequence>-<random>``; the sequence keeps ids unique per process."""
    resolved = QuoteSource.parse(source) or QuoteSource.LOCAL
    millis = int(time.time() * 1000)
    return f"{resolved.id_prefix}-{millis}-{next(_ID_SEQUENCE)}-{uuid.uuid4().hex[:6]}"


def _clean_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _first_present(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None and _clean_text(value):
            return value
    return None


def normalize_quote(
    raw: Mapping[str, Any],
    fallback_source: QuoteSource | str = QuoteSource.LOCAL,
    *,
    clock: Clock = now_iso,
) -> Quote:
    """Fills every missing field of ``raw`` with its default.

    Never raises for mapping input: an empty ``text`` or ``category`` survives here and
    is rejected by the caller through :func:`quote_validation_errors`.
    """
    if not isinstance(raw, Mapping):
        raw = {}
    fallback = QuoteSource.parse(fallback_source) or QuoteSource.LOCAL
    source = QuoteSource.parse(raw.get("source"))
    quote_id = _clean_text(raw.get("id")) or generate_quote_id(fallback)
    category_raw = raw.get("category")
    updated_at = _first_present(raw, "updatedAt", "updated_at")
    return Quote(
        id=quote_id,
        text=_clean_text(raw.get("text")),
        author=_clean_text(raw.get("author")) or DEFAULT_AUTHOR,
        category=DEFAULT_CATEGORY if category_raw is None else _clean_text(category_raw),
        updated_at=_clean_text(updated_at) if updated_at is not None else clock(),
        source=source or fallback,
    )


def quote_validation_errors(quote: Quote) -> list[str]:
    errors: list[str] = []
    if not quote.text.strip():
        errors.append("Quote text is required.")
    if not quote.category.strip():
        errors.append("Quote category is required.")
    return errors


def is_valid_quote(quote: Quote) -> bool:
    return not quote_validation_errors(quote)

from __future__ import annotations

import logging

from quotesync.core.errors import PersistenceReadError
from quotesync.domain.models import ALL_CATEGORIES
from quotesync.domain.ports import BlobStorePort

logger = logging.getLogger(__name__)

SELECTED_CATEGORY_KEY = "selectedCategory"


class CategoryPreference:
    """Remembers the category filter between runs; ``"all"`` means no filter."""

    def __init__(self, blob_store: BlobStorePort) -> None:
        self._blob_store = blob_store

    def load(self) -> str:
        try:
            data = self._blob_store.load(SELECTED_CATEGORY_KEY)
        except PersistenceReadError as exc:
            logger.warning("Stored category filter unreadable: %s", exc)
            return ALL_CATEGORIES
        if not data:
            return ALL_CATEGORIES
        try:
            value = data.decode("utf-8").strip()
        except UnicodeDecodeError:
            return ALL_CATEGORIES
        return value or ALL_CATEGORIES

    def save(self, category: str | None) -> str:
        value = (category or "").strip() or ALL_CATEGORIES
        self._blob_store.save(SELECTED_CATEGORY_KEY, value.encode("utf-8"))
        return value

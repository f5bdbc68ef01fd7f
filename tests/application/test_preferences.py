from __future__ import annotations

from quotesync.application.preferences import SELECTED_CATEGORY_KEY, CategoryPreference
from tests.fakes import MemoryBlobStore


def test_default_is_all() -> None:
    assert CategoryPreference(MemoryBlobStore()).load() == "all"


def test_save_and_load_round_trip(blob_store) -> None:
    preference = CategoryPreference(blob_store)

    preference.save(" Life ")

    assert preference.load() == "Life"
    assert blob_store.load(SELECTED_CATEGORY_KEY) == b"Life"


def test_blank_category_resets_filter() -> None:
    preference = CategoryPreference(MemoryBlobStore())

    assert preference.save("   ") == "all"
    assert preference.load() == "all"

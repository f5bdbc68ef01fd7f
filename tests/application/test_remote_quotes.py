from __future__ import annotations

import pytest

from quotesync.application.remote_quotes import RemoteQuoteAdapter, namespaced_remote_id
from quotesync.domain.models import QuoteSource
from quotesync.domain.remote_errors import RemotePayloadError, RemoteUnavailableError
from tests.fakes import FakeRemoteSource


def test_namespaced_remote_id() -> None:
    assert namespaced_remote_id(3) == "srv-3"
    assert namespaced_remote_id("srv-3") == "srv-3"
    assert namespaced_remote_id("  ") == ""
    assert namespaced_remote_id(None) == ""


def test_fetch_tags_server_source_and_skips_bad_entries(clock) -> None:
    source = FakeRemoteSource(
        [
            {"id": 1, "text": "One", "author": "User 1", "category": "User 1", "source": "local"},
            "garbage",
            {"id": 2, "text": "   "},
            {"text": "No id"},
        ]
    )

    quotes = RemoteQuoteAdapter(source, clock=clock).fetch()

    assert [quote.text for quote in quotes] == ["One", "No id"]
    assert quotes[0].id == "srv-1"
    assert quotes[1].id.startswith("srv-")
    assert all(quote.source is QuoteSource.SERVER for quote in quotes)


def test_non_list_payload_is_a_fetch_error() -> None:
    with pytest.raises(RemotePayloadError):
        RemoteQuoteAdapter(FakeRemoteSource({"posts": []})).fetch()


def test_source_errors_propagate() -> None:
    source = FakeRemoteSource(error=RemoteUnavailableError("offline"))

    with pytest.raises(RemoteUnavailableError):
        RemoteQuoteAdapter(source).fetch()

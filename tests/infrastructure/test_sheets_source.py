from __future__ import annotations

from typing import Any

import gspread
import pytest
from google.auth.exceptions import DefaultCredentialsError

from quotesync.domain.models import RemoteConfig
from quotesync.domain.remote_errors import (
    RemoteConfigError,
    RemoteCredentialsError,
    RemoteNotFoundError,
    RemotePermissionError,
    RemoteRateLimitError,
)
from quotesync.infrastructure.sheets_errors import classify_api_error, map_gspread_exception
from quotesync.infrastructure.sheets_source import SheetsQuotesSource, rows_to_records


class FakeWorksheet:
    def __init__(self, values: list[list[Any]]) -> None:
        self._values = values

    def get_all_values(self) -> list[list[Any]]:
        return self._values


class FakeSpreadsheet:
    def __init__(self, worksheets: dict[str, FakeWorksheet]) -> None:
        self._worksheets = worksheets

    def worksheet(self, name: str) -> FakeWorksheet:
        if name not in self._worksheets:
            raise FileNotFoundError(name)
        return self._worksheets[name]


class FakeClient:
    def __init__(self, spreadsheet: FakeSpreadsheet) -> None:
        self._spreadsheet = spreadsheet
        self.opened: list[str] = []

    def open_by_key(self, key: str) -> FakeSpreadsheet:
        self.opened.append(key)
        return self._spreadsheet


def _config(**kwargs) -> RemoteConfig:
    defaults = {"remote_kind": "sheets", "spreadsheet_id": "sheet-1", "credentials_path": "/tmp/creds.json"}
    defaults.update(kwargs)
    return RemoteConfig(**defaults)


def test_rows_to_records_uses_header_and_skips_blank_rows() -> None:
    values = [
        ["ID", "Text", "Author", "Category", "updatedAt"],
        ["1", " Hello ", "Ann", "Life", "2025-01-01T00:00:00Z"],
        ["", "", "", "", ""],
        ["2", "Short row"],
    ]

    records = rows_to_records(values)

    assert records == [
        {"id": "1", "text": "Hello", "author": "Ann", "category": "Life", "updated_at": "2025-01-01T00:00:00Z"},
        {"id": "2", "text": "Short row", "author": "", "category": "", "updated_at": ""},
    ]
    assert rows_to_records([]) == []


def test_fetch_records_reads_configured_worksheet() -> None:
    client = FakeClient(FakeSpreadsheet({"quotes": FakeWorksheet([["id", "text"], ["7", "Seven"]])}))
    calls: list[str] = []

    def factory(filename: str) -> FakeClient:
        calls.append(filename)
        return client

    records = SheetsQuotesSource(_config(), client_factory=factory).fetch_records()

    assert records == [{"id": "7", "text": "Seven"}]
    assert calls == ["/tmp/creds.json"]
    assert client.opened == ["sheet-1"]


def test_incomplete_config_fails_on_fetch() -> None:
    source = SheetsQuotesSource(_config(spreadsheet_id=""), client_factory=lambda filename: None)

    with pytest.raises(RemoteConfigError):
        source.fetch_records()


def test_client_errors_are_mapped() -> None:
    def missing_credentials(filename: str) -> FakeClient:
        raise FileNotFoundError(2, "No such file", filename)

    with pytest.raises(RemoteCredentialsError, match="/tmp/creds.json"):
        SheetsQuotesSource(_config(), client_factory=missing_credentials).fetch_records()


def test_classify_api_error() -> None:
    assert isinstance(classify_api_error("[429] quota exceeded", None), RemoteRateLimitError)
    assert isinstance(classify_api_error("requested entity was not found", None), RemoteNotFoundError)
    assert isinstance(classify_api_error("permission_denied", 403), RemotePermissionError)
    assert isinstance(classify_api_error("something else", 400), RemoteConfigError)


def test_map_gspread_exception_handles_known_types() -> None:
    assert isinstance(map_gspread_exception(gspread.exceptions.SpreadsheetNotFound()), RemoteNotFoundError)
    assert isinstance(map_gspread_exception(DefaultCredentialsError("bad")), RemoteCredentialsError)
    already_mapped = RemoteRateLimitError("slow down")
    assert map_gspread_exception(already_mapped) is already_mapped
    assert isinstance(map_gspread_exception(RuntimeError("odd")), RemoteConfigError)

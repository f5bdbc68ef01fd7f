from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable

import gspread

from quotesync.core.observability import get_correlation_id
from quotesync.domain.models import RemoteConfig
from quotesync.domain.ports import RemoteSourcePort
from quotesync.domain.remote_errors import RemoteConfigError
from quotesync.infrastructure.sheets_errors import map_gspread_exception

logger = logging.getLogger(__name__)

HEADER_ALIASES = {"updatedat": "updated_at", "updated at": "updated_at"}


def normalize_cell(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_headers(headers: list[Any]) -> list[str]:
    normalized: list[str] = []
    for idx, header in enumerate(headers):
        clean = normalize_cell(header).lower()
        clean = HEADER_ALIASES.get(clean, clean)
        normalized.append(clean if clean else f"col_{idx + 1}")
    return normalized


def rows_to_records(values: list[list[Any]]) -> list[dict[str, str]]:
    """First row is the header; rows with no content are skipped."""
    if not values:
        return []
    headers = normalize_headers(values[0])
    records: list[dict[str, str]] = []
    for row in values[1:]:
        if not any(normalize_cell(cell) for cell in row):
            continue
        records.append({header: normalize_cell(row[idx] if idx < len(row) else "") for idx, header in enumerate(headers)})
    return records


class SheetsQuotesSource(RemoteSourcePort):
    def __init__(
        self,
        config: RemoteConfig,
        *,
        client_factory: Callable[..., Any] = gspread.service_account,
    ) -> None:
        self._config = config
        self._client_factory = client_factory

    def fetch_records(self) -> list[dict[str, str]]:
        if not self._config.spreadsheet_id or not self._config.credentials_path:
            raise RemoteConfigError("Google Sheets needs a spreadsheet id and a credentials path.")
        logger.info(
            "Reading quotes worksheet",
            extra={"extra": {"worksheet": self._config.worksheet, "correlation_id": get_correlation_id()}},
        )
        try:
            client = self._client_factory(filename=str(Path(self._config.credentials_path)))
            spreadsheet = client.open_by_key(self._config.spreadsheet_id)
            worksheet = spreadsheet.worksheet(self._config.worksheet)
            values = worksheet.get_all_values()
        except Exception as exc:  # noqa: BLE001
            raise map_gspread_exception(exc) from exc
        records = rows_to_records(values)
        logger.info("Worksheet rows read", extra={"extra": {"rows": len(records)}})
        return records

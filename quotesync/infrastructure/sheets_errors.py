from __future__ import annotations

import json

import gspread
from google.auth.exceptions import DefaultCredentialsError, TransportError

from quotesync.core.errors import FetchError
from quotesync.domain.remote_errors import (
    RemoteConfigError,
    RemoteCredentialsError,
    RemoteNotFoundError,
    RemotePermissionError,
    RemoteRateLimitError,
    RemoteUnavailableError,
)


def extract_response_status_code(ex: Exception) -> int | None:
    response = getattr(ex, "response", None)
    return getattr(response, "status_code", None)


def _extract_api_error_text(ex: Exception) -> str:
    response = getattr(ex, "response", None)
    if response is not None:
        text = getattr(response, "text", "")
        if text:
            return text
    return str(ex)


def _is_rate_limited(text_lower: str, status_code: int | None) -> bool:
    if status_code == 429:
        return True
    return any(
        token in text_lower
        for token in ("[429]", "resource_exhausted", "rate_limit_exceeded", "quota exceeded")
    )


def classify_api_error(text_lower: str, status_code: int | None) -> FetchError:
    if _is_rate_limited(text_lower, status_code):
        return RemoteRateLimitError("Google Sheets rate limit reached. Wait a minute and retry.")
    if status_code in {500, 502, 503}:
        return RemoteUnavailableError(f"Google Sheets is unavailable ({status_code}).")
    if "google sheets api has not been used" in text_lower or "it is disabled" in text_lower:
        return RemoteConfigError("The Google Sheets API is not enabled for this project.")
    if status_code == 404 or "[404]" in text_lower or "requested entity was not found" in text_lower:
        return RemoteNotFoundError("The spreadsheet id is invalid or the sheet does not exist.")
    if status_code == 403 or "[403]" in text_lower or "permission_denied" in text_lower:
        return RemotePermissionError("The spreadsheet is not shared with the service account.")
    return RemoteConfigError(text_lower or "Google Sheets rejected the request.")


def map_gspread_exception(ex: Exception) -> FetchError:
    if isinstance(ex, FetchError):
        return ex
    if isinstance(ex, gspread.exceptions.WorksheetNotFound):
        return RemoteNotFoundError(f"Worksheet not found: {ex}")
    if isinstance(ex, gspread.exceptions.SpreadsheetNotFound):
        return RemoteNotFoundError("The spreadsheet id is invalid or the sheet does not exist.")
    if isinstance(ex, gspread.exceptions.APIError):
        text_lower = _extract_api_error_text(ex).strip().lower()
        return classify_api_error(text_lower, extract_response_status_code(ex))
    if isinstance(ex, FileNotFoundError):
        path = getattr(ex, "filename", None)
        suffix = f" at {path}" if path else ""
        return RemoteCredentialsError(f"credentials.json not found{suffix}.")
    if isinstance(ex, json.JSONDecodeError | DefaultCredentialsError | ValueError):
        return RemoteCredentialsError("credentials.json is not valid. Check the file contents.")
    if isinstance(ex, TransportError | ConnectionError | TimeoutError):
        return RemoteUnavailableError(f"Google Sheets unreachable: {ex}")
    return RemoteConfigError(str(ex) or type(ex).__name__)

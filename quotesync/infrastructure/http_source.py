from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import requests

from quotesync.domain.models import RemoteConfig
from quotesync.domain.ports import RemoteSourcePort
from quotesync.domain.remote_errors import (
    RemoteConfigError,
    RemoteNotFoundError,
    RemotePayloadError,
    RemotePermissionError,
    RemoteRateLimitError,
    RemoteUnavailableError,
)

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = RemoteConfig().endpoint
DEFAULT_TIMEOUT_SECONDS = 10.0


def post_to_record(post: Any) -> Any:
    """Maps a placeholder-API post onto the quote record shape; non-objects pass through."""
    if not isinstance(post, Mapping):
        return post
    post_id = post.get("id")
    user_id = post.get("userId")
    title = str(post.get("title") or "").strip()
    return {
        "id": "" if post_id is None else str(post_id),
        "text": title or f"Post #{post_id}",
        "author": f"User {user_id}" if user_id is not None else "User Server",
        "category": f"User {user_id}" if user_id else "Server",
    }


def map_http_status(status_code: int, endpoint: str) -> Exception:
    if status_code == 429:
        return RemoteRateLimitError("Remote rate limit reached. Wait a minute and retry.")
    if status_code in {401, 403}:
        return RemotePermissionError(f"Remote endpoint refused access ({status_code}).")
    if status_code == 404:
        return RemoteNotFoundError(f"Remote endpoint not found: {endpoint}")
    if status_code >= 500:
        return RemoteUnavailableError(f"Remote endpoint unavailable ({status_code}).")
    return RemoteConfigError(f"Remote endpoint rejected the request ({status_code}).")


class HttpQuotesSource(RemoteSourcePort):
    """Single GET per fetch; no retries."""

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        if not endpoint:
            raise RemoteConfigError("Remote endpoint is not configured.")
        self._endpoint = endpoint
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def fetch_records(self) -> list[Any]:
        try:
            response = self._session.get(self._endpoint, timeout=self._timeout)
        except requests.Timeout as exc:
            raise RemoteUnavailableError(f"Remote endpoint timed out after {self._timeout:g}s.") from exc
        except requests.RequestException as exc:
            raise RemoteUnavailableError(f"Remote endpoint unreachable: {exc}") from exc
        if not 200 <= response.status_code < 300:
            raise map_http_status(response.status_code, self._endpoint)
        try:
            payload = response.json()
        except ValueError as exc:
            raise RemotePayloadError("Remote response is not valid JSON.") from exc
        if not isinstance(payload, list):
            raise RemotePayloadError("Remote response must be a JSON array.")
        logger.info("Remote posts received", extra={"extra": {"count": len(payload), "endpoint": self._endpoint}})
        return [post_to_record(post) for post in payload]

    def close(self) -> None:
        self._session.close()

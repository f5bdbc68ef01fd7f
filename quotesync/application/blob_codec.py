from __future__ import annotations

import json
from typing import Any

from quotesync.core.errors import PersistenceReadError


def encode_blob(payload: Any) -> bytes:
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def decode_list_blob(data: bytes | None, key: str) -> list[Any] | None:
    """Returns ``None`` for a missing blob and raises for anything that is not a JSON array."""
    if data is None:
        return None
    try:
        payload = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise PersistenceReadError(f"Stored '{key}' is not valid JSON.") from exc
    if not isinstance(payload, list):
        raise PersistenceReadError(f"Stored '{key}' is not a JSON array.")
    return payload

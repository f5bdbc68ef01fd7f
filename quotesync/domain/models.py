from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

DEFAULT_AUTHOR = "Unknown"
DEFAULT_CATEGORY = "General"
ALL_CATEGORIES = "all"

LOCAL_ID_PREFIX = "local"
REMOTE_ID_PREFIX = "srv"


class QuoteSource(str, Enum):
    LOCAL = "local"
    SERVER = "server"

    @property
    def id_prefix(self) -> str:
        return LOCAL_ID_PREFIX if self is QuoteSource.LOCAL else REMOTE_ID_PREFIX

    @classmethod
    def parse(cls, value: Any) -> "QuoteSource | None":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class ResolutionChoice(str, Enum):
    LOCAL = "local"
    SERVER = "server"


@dataclass(frozen=True)
class Quote:
    id: str
    text: str
    author: str
    category: str
    updated_at: str
    source: QuoteSource

    def content_key(self) -> tuple[str, str, str]:
        return (self.text, self.author, self.category)

    def same_content(self, other: "Quote") -> bool:
        return self.content_key() == other.content_key()

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "text": self.text,
            "author": self.author,
            "category": self.category,
            "updatedAt": self.updated_at,
            "source": self.source.value,
        }


@dataclass(frozen=True)
class Conflict:
    id: str
    local: Quote
    server: Quote
    timestamp: str

    def snapshot_for(self, choice: ResolutionChoice) -> Quote:
        return self.local if choice is ResolutionChoice.LOCAL else self.server

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "local": self.local.to_dict(),
            "server": self.server.to_dict(),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class RemoteConfig:
    remote_kind: str = "http"
    endpoint: str = "https://jsonplaceholder.typicode.com/posts?_limit=10"
    spreadsheet_id: str = ""
    credentials_path: str = ""
    worksheet: str = "quotes"
    sync_interval_seconds: float = 30.0
    device_id: str = ""


DEFAULT_QUOTES: tuple[dict[str, str], ...] = (
    {
        "text": "Life is what happens when you're busy making other plans.",
        "author": "John Lennon",
        "category": "Life",
    },
    {"text": "Get busy living or get busy dying.", "author": "Stephen King", "category": "Motivation"},
    {"text": "The purpose of our lives is to be happy.", "author": "Dalai Lama", "category": "Life"},
)

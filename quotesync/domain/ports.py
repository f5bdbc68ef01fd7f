from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Any, Callable, Protocol

from quotesync.domain.models import Quote
from quotesync.domain.sync_models import SyncOutcome


class BlobStorePort(Protocol):
    def load(self, key: str) -> bytes | None:
        ...

    def save(self, key: str, data: bytes) -> None:
        ...

    def atomic(self) -> AbstractContextManager[None]:
        ...


class RemoteSourcePort(Protocol):
    def fetch_records(self) -> Any:
        ...


class RemoteQuotesPort(Protocol):
    def fetch(self) -> list[Quote]:
        ...


SyncListener = Callable[[SyncOutcome], None]
Clock = Callable[[], str]

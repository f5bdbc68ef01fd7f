from __future__ import annotations

import sqlite3
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Any, Callable

from quotesync.application.conflicts_service import ConflictLedger
from quotesync.application.preferences import CategoryPreference
from quotesync.application.remote_quotes import RemoteQuoteAdapter
from quotesync.application.replica_store import ReplicaStore
from quotesync.application.sync_orchestrator import SyncOrchestrator
from quotesync.application.sync_scheduler import SyncScheduler
from quotesync.core.metrics import MetricsRegistry, metrics_registry
from quotesync.domain.models import DEFAULT_QUOTES, RemoteConfig
from quotesync.domain.ports import RemoteSourcePort
from quotesync.infrastructure.blob_store_sqlite import SQLiteBlobStore
from quotesync.infrastructure.db import get_connection
from quotesync.infrastructure.http_source import DEFAULT_ENDPOINT, HttpQuotesSource
from quotesync.infrastructure.local_config import RemoteConfigStore
from quotesync.infrastructure.sheets_source import SheetsQuotesSource


@dataclass
class AppContainer:
    connection: sqlite3.Connection
    blob_store: SQLiteBlobStore
    remote_config: RemoteConfig
    replica: ReplicaStore
    ledger: ConflictLedger
    preferences: CategoryPreference
    remote: RemoteQuoteAdapter
    orchestrator: SyncOrchestrator
    scheduler: SyncScheduler

    def close(self) -> None:
        self.scheduler.stop()
        self.replica.dispose()
        self.connection.close()


ConnectionFactory = Callable[[], sqlite3.Connection]


def build_remote_source(config: RemoteConfig) -> RemoteSourcePort:
    if config.remote_kind == "sheets":
        return SheetsQuotesSource(config)
    return HttpQuotesSource(config.endpoint or DEFAULT_ENDPOINT)


def build_container(
    connection_factory: ConnectionFactory = get_connection,
    *,
    config_store: RemoteConfigStore | None = None,
    overrides: Mapping[str, Any] | None = None,
    remote_source: RemoteSourcePort | None = None,
    seed_quotes: Iterable[Mapping[str, Any]] = DEFAULT_QUOTES,
    metrics: MetricsRegistry = metrics_registry,
) -> AppContainer:
    connection = connection_factory()
    blob_store = SQLiteBlobStore(connection)

    remote_config = (config_store or RemoteConfigStore()).load()
    if overrides:
        remote_config = replace(remote_config, **{key: value for key, value in overrides.items() if value is not None})

    replica = ReplicaStore.create(blob_store, seed_quotes=seed_quotes)
    ledger = ConflictLedger.create(blob_store, replica)
    preferences = CategoryPreference(blob_store)

    remote = RemoteQuoteAdapter(remote_source or build_remote_source(remote_config))
    orchestrator = SyncOrchestrator(replica, ledger, remote, blob_store, metrics=metrics)
    scheduler = SyncScheduler(orchestrator, interval=remote_config.sync_interval_seconds)

    return AppContainer(
        connection=connection,
        blob_store=blob_store,
        remote_config=remote_config,
        replica=replica,
        ledger=ledger,
        preferences=preferences,
        remote=remote,
        orchestrator=orchestrator,
        scheduler=scheduler,
    )

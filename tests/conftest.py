from __future__ import annotations

import logging
import sqlite3
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from quotesync.application.conflicts_service import ConflictLedger
from quotesync.application.replica_store import ReplicaStore
from quotesync.core.metrics import MetricsRegistry
from quotesync.infrastructure.blob_store_sqlite import SQLiteBlobStore
from tests.fakes import FakeClock


@pytest.fixture
def connection() -> sqlite3.Connection:
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    conn.row_factory = sqlite3.Row
    yield conn
    conn.close()


@pytest.fixture
def blob_store(connection: sqlite3.Connection) -> SQLiteBlobStore:
    return SQLiteBlobStore(connection)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def replica(blob_store: SQLiteBlobStore, clock: FakeClock) -> ReplicaStore:
    return ReplicaStore.create(blob_store, clock=clock)


@pytest.fixture
def ledger(blob_store: SQLiteBlobStore, replica: ReplicaStore) -> ConflictLedger:
    return ConflictLedger.create(blob_store, replica)


@pytest.fixture
def metrics() -> MetricsRegistry:
    return MetricsRegistry()


@pytest.fixture(autouse=True)
def _restore_root_logging():
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    excepthook = sys.excepthook
    yield
    for handler in list(root_logger.handlers):
        if handler not in handlers:
            root_logger.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root_logger.handlers:
            root_logger.addHandler(handler)
    root_logger.setLevel(level)
    sys.excepthook = excepthook

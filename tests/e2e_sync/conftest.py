from __future__ import annotations

from functools import partial
from pathlib import Path

import pytest

from quotesync.bootstrap.container import AppContainer, build_container
from quotesync.core.metrics import MetricsRegistry
from quotesync.infrastructure.db import get_connection
from quotesync.infrastructure.http_source import HttpQuotesSource
from quotesync.infrastructure.local_config import RemoteConfigStore
from tests.fakes import FakeResponse, FakeSession


@pytest.fixture
def session() -> FakeSession:
    return FakeSession(FakeResponse(200, []))


@pytest.fixture
def make_container(tmp_path: Path, session: FakeSession):
    opened: list[AppContainer] = []

    def _factory() -> AppContainer:
        container = build_container(
            partial(get_connection, tmp_path / "quotesync.db"),
            config_store=RemoteConfigStore(base_dir=tmp_path),
            remote_source=HttpQuotesSource("https://example.test/posts", session=session),
            metrics=MetricsRegistry(),
        )
        opened.append(container)
        return container

    yield _factory
    for container in opened:
        if not container.replica.disposed:
            container.close()

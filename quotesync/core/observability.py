from __future__ import annotations

from contextlib import AbstractContextManager
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from time import perf_counter
import uuid
from typing import Any

_CORRELATION_ID: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def get_correlation_id() -> str | None:
    return _CORRELATION_ID.get()


def set_correlation_id(correlation_id: str | None) -> Token[str | None]:
    return _CORRELATION_ID.set(correlation_id)


class OperationContext(AbstractContextManager["OperationContext"]):
    """Binds a fresh correlation id to every log record emitted inside the block."""

    def __init__(self, operation_name: str) -> None:
        self.operation_name = operation_name
        self.correlation_id = generate_correlation_id()
        self._started = perf_counter()
        self._correlation_token: Token[str | None] | None = None

    def __enter__(self) -> "OperationContext":
        self._started = perf_counter()
        self._correlation_token = set_correlation_id(self.correlation_id)
        return self

    def __exit__(self, exc_type: object, exc: object, exc_tb: object) -> None:
        if self._correlation_token is not None:
            _CORRELATION_ID.reset(self._correlation_token)
        return None

    def elapsed_ms(self) -> int:
        return int((perf_counter() - self._started) * 1000)

    def log(self, logger: Any, event_name: str, **payload: Any) -> dict[str, Any]:
        return log_event(logger, event_name, {"operation": self.operation_name, **payload}, self.correlation_id)


def log_event(logger: Any, event_name: str, payload: dict[str, Any], correlation_id: str) -> dict[str, Any]:
    event = {
        "event": event_name,
        "correlation_id": correlation_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "payload": payload,
    }
    logger.info(
        event_name,
        extra={
            "correlation_id": correlation_id,
            "extra": event,
        },
    )
    return event

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from quotesync.domain.models import Conflict, Quote


class SyncState(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"


class SyncStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    BUSY = "busy"


class SyncTrigger(str, Enum):
    SCHEDULED = "scheduled"
    MANUAL = "manual"


@dataclass(frozen=True)
class SyncTick:
    trigger: SyncTrigger


@dataclass(frozen=True)
class MergeResult:
    quotes: tuple[Quote, ...]
    added_count: int = 0
    updated_count: int = 0
    conflicts: tuple[Conflict, ...] = ()

    @property
    def conflict_count(self) -> int:
        return len(self.conflicts)


@dataclass(frozen=True)
class ImportResult:
    imported: int
    rejected: int
    errors: tuple[str, ...] = ()
    quotes: tuple[Quote, ...] = ()


@dataclass(frozen=True)
class SyncOutcome:
    status: SyncStatus
    trigger: SyncTrigger
    started_at: str
    finished_at: str
    added_count: int = 0
    updated_count: int = 0
    conflict_count: int = 0
    conflicts: tuple[Conflict, ...] = field(default=(), repr=False)
    error: str = ""
    correlation_id: str = ""
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status is SyncStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["status"] = self.status.value
        payload["trigger"] = self.trigger.value
        payload["conflicts"] = [conflict.to_dict() for conflict in self.conflicts]
        return payload

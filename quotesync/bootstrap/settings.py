from __future__ import annotations

import os
import tempfile
from pathlib import Path

APP_DIR_NAME = "QuoteSync"
DB_FILENAME = "quotesync.db"
LOG_DIR_ENV = "QUOTESYNC_LOG_DIR"
DATA_DIR_ENV = "QUOTESYNC_DATA_DIR"


def project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _first_writable(candidates: list[Path]) -> Path | None:
    for candidate in candidates:
        try:
            candidate.mkdir(parents=True, exist_ok=True)
            test_file = candidate / "_write_test.tmp"
            test_file.write_text("ok", encoding="utf-8")
            test_file.unlink(missing_ok=True)
            return candidate
        except OSError:
            continue
    return None


def resolve_log_dir() -> Path:
    candidates: list[Path] = []
    env_dir = os.environ.get(LOG_DIR_ENV)
    if env_dir:
        candidates.append(Path(env_dir))
    candidates.append(project_root() / "logs")
    candidates.append(Path(tempfile.gettempdir()) / APP_DIR_NAME / "logs")
    return _first_writable(candidates) or Path.cwd()


def resolve_data_dir() -> Path:
    env_dir = os.environ.get(DATA_DIR_ENV)
    if env_dir:
        return Path(env_dir)
    appdata = os.environ.get("LOCALAPPDATA")
    base_dir = Path(appdata) if appdata else Path.home() / ".local" / "share"
    return base_dir / APP_DIR_NAME


def default_db_path() -> Path:
    return resolve_data_dir() / DB_FILENAME

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any

from quotesync.bootstrap.settings import resolve_data_dir
from quotesync.domain.models import RemoteConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"
REMOTE_KINDS = ("http", "sheets")


class RemoteConfigStore:
    def __init__(self, base_dir: Path | None = None) -> None:
        self._base_dir = base_dir or resolve_data_dir()
        self._config_path = self._base_dir / CONFIG_FILENAME

    @property
    def config_path(self) -> Path:
        return self._config_path

    def load(self) -> RemoteConfig:
        payload: dict[str, Any] = {}
        if self._config_path.exists():
            try:
                loaded = json.loads(self._config_path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                logger.exception("Could not read config.json: %s", exc)
                return RemoteConfig(device_id=self._generate_device_id())
            if isinstance(loaded, dict):
                payload = loaded
            else:
                logger.warning("config.json ignored: expected an object")
        config = self._from_payload(payload)
        if not config.device_id:
            config = RemoteConfig(**{**asdict(config), "device_id": self._generate_device_id()})
            self._write_payload(asdict(config))
        return config

    def save(self, config: RemoteConfig) -> RemoteConfig:
        stored = RemoteConfig(**{**asdict(config), "device_id": config.device_id or self._generate_device_id()})
        self._write_payload(asdict(stored))
        return stored

    def _from_payload(self, payload: dict[str, Any]) -> RemoteConfig:
        defaults = RemoteConfig()
        values: dict[str, Any] = {}
        for item in fields(RemoteConfig):
            raw = payload.get(item.name)
            if raw is None:
                continue
            if item.name == "sync_interval_seconds":
                try:
                    interval = float(raw)
                except (TypeError, ValueError):
                    logger.warning("Invalid sync interval in config.json: %r", raw)
                    continue
                if interval > 0:
                    values[item.name] = interval
                continue
            values[item.name] = str(raw).strip()
        if values.get("remote_kind") not in (None, *REMOTE_KINDS):
            logger.warning("Unknown remote kind %r; using %r", values["remote_kind"], defaults.remote_kind)
            values.pop("remote_kind")
        if not values.get("endpoint"):
            values.pop("endpoint", None)
        return RemoteConfig(**values)

    def _write_payload(self, payload: dict[str, Any]) -> None:
        try:
            self._config_path.parent.mkdir(parents=True, exist_ok=True)
            self._config_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not write config.json: %s", exc)

    @staticmethod
    def _generate_device_id() -> str:
        return str(uuid.uuid4())

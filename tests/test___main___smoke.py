from __future__ import annotations

import re

from quotesync import __main__ as entry


def test_run_turns_unexpected_errors_into_incident_id(monkeypatch, capsys, tmp_path) -> None:
    def exploding_main() -> int:
        raise RuntimeError("kaboom")

    monkeypatch.setattr(entry, "main", exploding_main)
    monkeypatch.setenv("QUOTESYNC_LOG_DIR", str(tmp_path))

    assert entry.run() == 2
    assert re.search(r"Incident id: INC-[0-9A-F]{12}", capsys.readouterr().err)


def test_run_returns_main_exit_code(monkeypatch) -> None:
    monkeypatch.setattr(entry, "main", lambda: 0)

    assert entry.run() == 0

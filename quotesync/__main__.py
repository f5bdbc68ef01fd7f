from __future__ import annotations

import sys

from quotesync.bootstrap.exception_handler import handle_uncaught_exception
from quotesync.entrypoints.main import main


def run() -> int:
    try:
        return main()
    except Exception:  # noqa: BLE001
        exc_type, exc_value, exc_traceback = sys.exc_info()
        if exc_type is None or exc_value is None:
            return 2
        incident_id = handle_uncaught_exception(exc_type, exc_value, exc_traceback)
        sys.stderr.write(f"Unexpected error. Incident id: {incident_id}\n")
        return 2


if __name__ == "__main__":
    raise SystemExit(run())

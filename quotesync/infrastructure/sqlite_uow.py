from __future__ import annotations

import contextlib
import sqlite3
import uuid
from collections.abc import Iterator


@contextlib.contextmanager
def transaction(connection: sqlite3.Connection) -> Iterator[None]:
    """Outermost call owns BEGIN/COMMIT; nested calls become SAVEPOINTs."""
    if connection.in_transaction:
        savepoint = f"sp_{uuid.uuid4().hex}"
        connection.execute(f"SAVEPOINT {savepoint}")
        try:
            yield
        except Exception:
            connection.execute(f"ROLLBACK TO SAVEPOINT {savepoint}")
            connection.execute(f"RELEASE SAVEPOINT {savepoint}")
            raise
        connection.execute(f"RELEASE SAVEPOINT {savepoint}")
        return

    connection.execute("BEGIN")
    try:
        yield
    except Exception:
        connection.rollback()
        raise
    connection.commit()

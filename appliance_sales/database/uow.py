"""
All-or-nothing boundary across the repositories.

Repositories never commit; the caller wraps a business operation in
`unit_of_work(conn)`. The outermost unit opens `BEGIN IMMEDIATE`, which
takes SQLite's write lock up front, so two sales touching the same stock
rows are serialized. Inner units become SAVEPOINTs and roll back only
their own part.
"""
from __future__ import annotations

import itertools
import logging
import sqlite3
from contextlib import contextmanager
from typing import Iterator

from ..errors import PersistenceError

_log = logging.getLogger(__name__)
_savepoints = itertools.count(1)


@contextmanager
def unit_of_work(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Commit on success, rollback on error.
    sqlite3.IntegrityError is re-raised as PersistenceError (the store refused the write).
    """
    if conn.in_transaction:
        name = f"uow_{next(_savepoints)}"
        conn.execute(f"SAVEPOINT {name}")
        try:
            yield conn
        except sqlite3.IntegrityError as e:
            conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
            conn.execute(f"RELEASE SAVEPOINT {name}")
            raise PersistenceError(str(e)) from e
        except Exception:
            conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
            conn.execute(f"RELEASE SAVEPOINT {name}")
            raise
        else:
            conn.execute(f"RELEASE SAVEPOINT {name}")
        return

    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except sqlite3.IntegrityError as e:
        conn.rollback()
        _log.warning("unit of work rolled back: %s", e)
        raise PersistenceError(str(e)) from e
    except Exception:
        conn.rollback()
        raise
    else:
        conn.commit()

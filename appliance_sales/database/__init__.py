# appliance_sales/database/__init__.py
from __future__ import annotations

from pathlib import Path
import sqlite3

from ..config import DB_PATH
from ..utils.loggers import get_logger
from . import schema as schema_module
from .uow import unit_of_work
from .versioning import ensure_version_table, get_current_version

MEMORY = ":memory:"


def get_connection(db_path: Path | str | None = None) -> sqlite3.Connection:
    """
    Returns a sqlite3.Connection with:
      - WAL mode (file databases only)
      - foreign_keys ON
      - row_factory = sqlite3.Row (so rows behave like dicts and tuples)
    Ensures the schema is applied idempotently. Pass ":memory:" for a
    throwaway database (tests).

    The first call also sets up the "appliance_sales" package logger
    (handler + APPLIANCE_SALES_LOG_LEVEL) that every module logger
    propagates to.
    """
    get_logger()
    target = DB_PATH if db_path is None else db_path

    if str(target) == MEMORY:
        conn = sqlite3.connect(MEMORY)
        schema_module.apply_schema(conn)
    else:
        target = Path(target)
        schema_module.init_schema(target)
        conn = sqlite3.connect(target)
        conn.execute("PRAGMA journal_mode = WAL;")

    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")

    ensure_version_table(conn)
    conn.commit()
    return conn


__all__ = [
    "get_connection",
    "get_current_version",
    "unit_of_work",
]

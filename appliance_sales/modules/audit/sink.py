from __future__ import annotations

import logging
import sqlite3

from ...database.repositories.audit_repo import AuditRepo

_log = logging.getLogger(__name__)


class AuditSink:
    """
    Fire-and-forget audit trail. A failed append is logged and swallowed:
    auditing must never abort the business operation that triggered it.
    Each append commits on its own, after the business unit of work.
    """

    def __init__(self, conn: sqlite3.Connection, repo: AuditRepo | None = None):
        self.conn = conn
        self.repo = repo or AuditRepo(conn)

    def append(self, actor_id: int | None, action: str, subject: str, description: str | None = None) -> bool:
        try:
            if self.conn.in_transaction:
                # part of the caller's unit of work; it commits or rolls back
                self.repo.append(actor_id, action, subject, description)
            else:
                with self.conn:
                    self.repo.append(actor_id, action, subject, description)
        except Exception:
            _log.exception("audit append failed: actor=%s action=%s subject=%s", actor_id, action, subject)
            return False
        return True

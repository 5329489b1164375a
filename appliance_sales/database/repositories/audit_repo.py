from __future__ import annotations
from dataclasses import dataclass
import sqlite3
from typing import Optional


@dataclass
class AuditEntry:
    audit_id: int | None
    actor_id: int | None
    action: str
    subject: str
    description: str | None
    created_at: str | None = None


class AuditRepo:
    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    def append(self, actor_id: int | None, action: str, subject: str, description: str | None) -> int:
        cur = self.conn.execute(
            "INSERT INTO audit_log(actor_id, action, subject, description) VALUES (?,?,?,?)",
            (actor_id, action, subject, description),
        )
        return int(cur.lastrowid)

    def list_entries(
        self,
        *,
        actor_id: Optional[int] = None,
        action: Optional[str] = None,
        subject: Optional[str] = None,
    ) -> list[AuditEntry]:
        where: list[str] = []
        params: list = []
        if actor_id is not None:
            where.append("actor_id = ?")
            params.append(actor_id)
        if action:
            where.append("action = ?")
            params.append(action)
        if subject:
            where.append("subject = ?")
            params.append(subject)

        sql = "SELECT audit_id, actor_id, action, subject, description, created_at FROM audit_log"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY audit_id"
        return [AuditEntry(**dict(r)) for r in self.conn.execute(sql, params).fetchall()]

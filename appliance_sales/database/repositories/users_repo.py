from __future__ import annotations
from dataclasses import dataclass
import sqlite3

from ...errors import ValidationError


@dataclass
class User:
    user_id: int | None
    username: str
    full_name: str
    role: str = "SELLER"
    is_active: bool = True


class UsersRepo:
    """Sellers and other actors. Authentication lives outside this package."""

    ROLES: set[str] = {"ADMIN", "SELLER", "MANAGER"}

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    def get(self, user_id: int) -> User | None:
        r = self.conn.execute(
            "SELECT user_id, username, full_name, role, is_active FROM users WHERE user_id=?",
            (user_id,),
        ).fetchone()
        if not r:
            return None
        return User(
            user_id=int(r["user_id"]),
            username=r["username"],
            full_name=r["full_name"],
            role=r["role"],
            is_active=bool(r["is_active"]),
        )

    def create(self, username: str, full_name: str, role: str = "SELLER") -> int:
        if role not in self.ROLES:
            raise ValidationError(f"Unknown role: {role}")
        cur = self.conn.execute(
            "INSERT INTO users(username, full_name, role) VALUES (?,?,?)",
            (username.strip(), full_name.strip(), role),
        )
        return int(cur.lastrowid)

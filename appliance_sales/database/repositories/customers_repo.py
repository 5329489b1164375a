from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
import sqlite3

from ...errors import ValidationError
from ...utils.validators import non_empty
from ...modules.pricing.calculations import round2


@dataclass
class Customer:
    customer_id: int | None
    name: str
    document: str | None
    contact_info: str | None
    pending_balance: Decimal = Decimal("0.00")
    is_active: bool = True


class CustomersRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # ---- Internal helpers -------------------------------------------------

    @staticmethod
    def _normalize_text(s: str | None) -> str | None:
        if s is None:
            return None
        return s.strip()

    @staticmethod
    def _ensure_non_empty(value: str | None, field_label: str) -> None:
        if not non_empty(value):
            raise ValidationError(f"{field_label} cannot be empty.")

    @staticmethod
    def _from_row(r: sqlite3.Row) -> Customer:
        return Customer(
            customer_id=int(r["customer_id"]),
            name=r["name"],
            document=r["document"],
            contact_info=r["contact_info"],
            pending_balance=round2(r["pending_balance"]),
            is_active=bool(r["is_active"]),
        )

    # ---- Queries ----------------------------------------------------------

    def get(self, customer_id: int) -> Customer | None:
        r = self.conn.execute(
            "SELECT customer_id, name, document, contact_info, pending_balance, is_active "
            "FROM customers WHERE customer_id=?",
            (customer_id,),
        ).fetchone()
        return self._from_row(r) if r else None

    # ---- Mutations --------------------------------------------------------

    def create(self, name: str, document: str | None = None, contact_info: str | None = None) -> int:
        self._ensure_non_empty(name, "Name")
        cur = self.conn.execute(
            "INSERT INTO customers(name, document, contact_info) VALUES (?,?,?)",
            (
                self._normalize_text(name),
                self._normalize_text(document),
                self._normalize_text(contact_info),
            ),
        )
        return int(cur.lastrowid)

    def adjust_pending_balance(self, customer_id: int, delta) -> Decimal | None:
        """
        pending_balance += delta, clamped at zero. Returns the new balance,
        or None if the customer does not exist.
        """
        c = self.get(customer_id)
        if c is None:
            return None
        new_balance = round2(c.pending_balance + Decimal(str(delta)))
        if new_balance < 0:
            new_balance = Decimal("0.00")
        self.conn.execute(
            "UPDATE customers SET pending_balance=? WHERE customer_id=?",
            (float(new_balance), customer_id),
        )
        return new_balance

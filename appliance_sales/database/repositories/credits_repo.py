from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
import sqlite3
from typing import Optional

from ...constants import CREDIT_ACTIVE
from ...modules.pricing.calculations import round2
from ...utils.helpers import parse_date


@dataclass
class Credit:
    credit_id: int | None
    sale_id: int
    customer_id: int
    financed_amount: Decimal
    annual_rate: Decimal
    term_months: int
    down_payment: Decimal
    installment_amount: Decimal
    balance: Decimal
    status: str = CREDIT_ACTIVE
    created_at: str | None = None


@dataclass
class Installment:
    installment_id: int | None
    credit_id: int | None
    number: int
    amount: Decimal
    due_date: date
    paid_date: str | None = None
    is_paid: bool = False

    def is_overdue(self, today: date) -> bool:
        """Unpaid and due strictly before `today`."""
        return not self.is_paid and self.due_date < today

    def days_overdue(self, today: date) -> int:
        if not self.is_overdue(today):
            return 0
        return (today - self.due_date).days


class CreditsRepo:
    """One credit per CREDIT-mode sale (UNIQUE sale_id in schema)."""

    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    @staticmethod
    def _from_row(r: sqlite3.Row) -> Credit:
        return Credit(
            credit_id=int(r["credit_id"]),
            sale_id=int(r["sale_id"]),
            customer_id=int(r["customer_id"]),
            financed_amount=round2(r["financed_amount"]),
            annual_rate=Decimal(str(r["annual_rate"])),
            term_months=int(r["term_months"]),
            down_payment=round2(r["down_payment"]),
            installment_amount=round2(r["installment_amount"]),
            balance=round2(r["balance"]),
            status=r["status"],
            created_at=r["created_at"],
        )

    def get(self, credit_id: int) -> Credit | None:
        r = self.conn.execute("SELECT * FROM credits WHERE credit_id=?", (credit_id,)).fetchone()
        return self._from_row(r) if r else None

    def get_by_sale(self, sale_id: int) -> Credit | None:
        r = self.conn.execute("SELECT * FROM credits WHERE sale_id=?", (sale_id,)).fetchone()
        return self._from_row(r) if r else None

    def list_by_customer(self, customer_id: int, status: Optional[str] = None) -> list[Credit]:
        sql = "SELECT * FROM credits WHERE customer_id=?"
        params: list = [customer_id]
        if status:
            sql += " AND status=?"
            params.append(status)
        sql += " ORDER BY credit_id"
        return [self._from_row(r) for r in self.conn.execute(sql, params).fetchall()]

    def list_by_status(self, status: str) -> list[Credit]:
        rows = self.conn.execute(
            "SELECT * FROM credits WHERE status=? ORDER BY credit_id", (status,)
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def add(self, c: Credit) -> int:
        cur = self.conn.execute(
            """
            INSERT INTO credits (
                sale_id, customer_id, financed_amount, annual_rate, term_months,
                down_payment, installment_amount, balance, status
            ) VALUES (?,?,?,?,?,?,?,?,?)
            """,
            (
                c.sale_id,
                c.customer_id,
                float(c.financed_amount),
                float(c.annual_rate),
                int(c.term_months),
                float(c.down_payment),
                float(c.installment_amount),
                float(c.balance),
                c.status,
            ),
        )
        c.credit_id = int(cur.lastrowid)
        return c.credit_id

    def update(self, c: Credit) -> bool:
        """
        Persist balance + status (the only mutable parts of a credit).
        Only an ACTIVE row is written; returns False for a settled or
        canceled credit.
        """
        cur = self.conn.execute(
            "UPDATE credits SET balance=?, status=? WHERE credit_id=? AND status=?",
            (float(round2(c.balance)), c.status, c.credit_id, CREDIT_ACTIVE),
        )
        return cur.rowcount == 1


class InstallmentsRepo:
    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    @staticmethod
    def _from_row(r: sqlite3.Row) -> Installment:
        return Installment(
            installment_id=int(r["installment_id"]),
            credit_id=int(r["credit_id"]),
            number=int(r["number"]),
            amount=round2(r["amount"]),
            due_date=parse_date(r["due_date"]),
            paid_date=r["paid_date"],
            is_paid=bool(r["is_paid"]),
        )

    def get(self, installment_id: int) -> Installment | None:
        r = self.conn.execute(
            "SELECT * FROM installments WHERE installment_id=?", (installment_id,)
        ).fetchone()
        return self._from_row(r) if r else None

    def get_by_number(self, credit_id: int, number: int) -> Installment | None:
        r = self.conn.execute(
            "SELECT * FROM installments WHERE credit_id=? AND number=?", (credit_id, number)
        ).fetchone()
        return self._from_row(r) if r else None

    def list_by_credit(self, credit_id: int) -> list[Installment]:
        rows = self.conn.execute(
            "SELECT * FROM installments WHERE credit_id=? ORDER BY number", (credit_id,)
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def list_pending_by_credit(self, credit_id: int) -> list[Installment]:
        rows = self.conn.execute(
            "SELECT * FROM installments WHERE credit_id=? AND is_paid=0 ORDER BY number",
            (credit_id,),
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def add(self, inst: Installment) -> int:
        cur = self.conn.execute(
            """
            INSERT INTO installments (credit_id, number, amount, due_date, paid_date, is_paid)
            VALUES (?,?,?,?,?,?)
            """,
            (
                inst.credit_id,
                int(inst.number),
                float(inst.amount),
                inst.due_date.isoformat(),
                inst.paid_date,
                1 if inst.is_paid else 0,
            ),
        )
        inst.installment_id = int(cur.lastrowid)
        return inst.installment_id

    def mark_paid(self, installment_id: int, paid_at: str) -> bool:
        """Flip an unpaid installment to paid. False if missing or already paid."""
        cur = self.conn.execute(
            "UPDATE installments SET is_paid=1, paid_date=? WHERE installment_id=? AND is_paid=0",
            (paid_at, installment_id),
        )
        return cur.rowcount == 1

    def set_due_date(self, installment_id: int, due: date) -> bool:
        cur = self.conn.execute(
            "UPDATE installments SET due_date=? WHERE installment_id=?",
            (due.isoformat(), installment_id),
        )
        return cur.rowcount == 1

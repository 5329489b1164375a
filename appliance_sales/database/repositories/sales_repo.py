from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
import sqlite3
from typing import Optional

from ...constants import MODE_CREDIT, SALE_CODE_PREFIX, SALE_REGISTERED
from ...modules.pricing.calculations import round2


@dataclass
class SaleHeader:
    sale_id: int | None
    code: str
    customer_id: int
    seller_id: int
    date: str
    mode: str
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    down_payment: Decimal = Decimal("0.00")
    term_months: int = 0
    status: str = SALE_REGISTERED

    @property
    def is_credit(self) -> bool:
        return self.mode == MODE_CREDIT


@dataclass
class SaleLine:
    line_id: int | None
    sale_id: int | None
    product_id: int
    quantity: int
    unit_price: Decimal
    subtotal: Decimal = field(default_factory=lambda: Decimal("0.00"))
    tax: Decimal = field(default_factory=lambda: Decimal("0.00"))
    total: Decimal = field(default_factory=lambda: Decimal("0.00"))


class SalesRepo:
    """
    Sale headers + sale lines.

    Key behavior:
      - `add` returns the assigned sale_id; nothing here commits, the caller's
        unit of work does.
      - Status changes go through `update_status`, which only moves a sale
        that is still in the expected status (0 rows otherwise); the schema
        trigger rejects any transition out of PAID/CANCELED.
    """

    def __init__(self, conn: sqlite3.Connection):
        # ensure rows behave like dicts/tuples
        conn.row_factory = sqlite3.Row
        self.conn = conn

    @staticmethod
    def _header(r: sqlite3.Row) -> SaleHeader:
        return SaleHeader(
            sale_id=int(r["sale_id"]),
            code=r["code"],
            customer_id=int(r["customer_id"]),
            seller_id=int(r["seller_id"]),
            date=r["date"],
            mode=r["mode"],
            subtotal=round2(r["subtotal"]),
            tax=round2(r["tax"]),
            total=round2(r["total"]),
            down_payment=round2(r["down_payment"]),
            term_months=int(r["term_months"]),
            status=r["status"],
        )

    @staticmethod
    def _line(r: sqlite3.Row) -> SaleLine:
        return SaleLine(
            line_id=int(r["line_id"]),
            sale_id=int(r["sale_id"]),
            product_id=int(r["product_id"]),
            quantity=int(r["quantity"]),
            unit_price=round2(r["unit_price"]),
            subtotal=round2(r["subtotal"]),
            tax=round2(r["tax"]),
            total=round2(r["total"]),
        )

    # ---------------------------------------------------------------------
    # READ
    # ---------------------------------------------------------------------
    def get(self, sale_id: int) -> SaleHeader | None:
        r = self.conn.execute("SELECT * FROM sales WHERE sale_id=?", (sale_id,)).fetchone()
        return self._header(r) if r else None

    def list_by_customer(self, customer_id: int, status: Optional[str] = None) -> list[SaleHeader]:
        sql = "SELECT * FROM sales WHERE customer_id=?"
        params: list = [customer_id]
        if status:
            sql += " AND status=?"
            params.append(status)
        sql += " ORDER BY date DESC, sale_id DESC"
        return [self._header(r) for r in self.conn.execute(sql, params).fetchall()]

    def list_lines(self, sale_id: int) -> list[SaleLine]:
        rows = self.conn.execute(
            "SELECT * FROM sale_lines WHERE sale_id=? ORDER BY line_id", (sale_id,)
        ).fetchall()
        return [self._line(r) for r in rows]

    def next_code(self, date_str: str) -> str:
        """V<yyyymmdd>-<nnnn>, sequential per day."""
        prefix = f"{SALE_CODE_PREFIX}{date_str[:10].replace('-', '')}-"
        row = self.conn.execute(
            "SELECT MAX(code) AS m FROM sales WHERE code LIKE ?", (prefix + "%",)
        ).fetchone()
        last = 0
        if row and row["m"]:
            try:
                last = int(str(row["m"]).split("-")[-1])
            except ValueError:
                last = 0
        return f"{prefix}{last + 1:04d}"

    # ---------------------------------------------------------------------
    # WRITE
    # ---------------------------------------------------------------------
    def add(self, h: SaleHeader) -> int:
        cur = self.conn.execute(
            """
            INSERT INTO sales (
                code, customer_id, seller_id, date, mode,
                subtotal, tax, total, down_payment, term_months, status
            )
            VALUES (?,?,?,?,?,?,?,?,?,?,?)
            """,
            (
                h.code,
                h.customer_id,
                h.seller_id,
                h.date,
                h.mode,
                float(h.subtotal),
                float(h.tax),
                float(h.total),
                float(h.down_payment),
                int(h.term_months),
                h.status,
            ),
        )
        h.sale_id = int(cur.lastrowid)
        return h.sale_id

    def add_line(self, ln: SaleLine) -> int:
        cur = self.conn.execute(
            """
            INSERT INTO sale_lines (
                sale_id, product_id, quantity, unit_price, subtotal, tax, total
            ) VALUES (?,?,?,?,?,?,?)
            """,
            (
                ln.sale_id,
                ln.product_id,
                int(ln.quantity),
                float(ln.unit_price),
                float(ln.subtotal),
                float(ln.tax),
                float(ln.total),
            ),
        )
        ln.line_id = int(cur.lastrowid)
        return ln.line_id

    def update_status(self, sale_id: int, status: str, expected: str = SALE_REGISTERED) -> bool:
        cur = self.conn.execute(
            "UPDATE sales SET status=? WHERE sale_id=? AND status=?",
            (status, sale_id, expected),
        )
        return cur.rowcount == 1

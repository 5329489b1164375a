"""
Stock ledger store: exactly one row per product in `stock_ledger`.

Quantity changes go through `apply_delta`, a single conditional UPDATE,
so the read-modify-write is atomic and can never drive quantity below zero
(the schema CHECK is a second line of defense).
"""
from __future__ import annotations

from dataclasses import dataclass
import sqlite3
from typing import List

from ...constants import DEFAULT_MAX_STOCK, DEFAULT_MIN_STOCK


@dataclass
class StockEntry:
    product_id: int
    quantity: int
    min_stock: int = DEFAULT_MIN_STOCK
    max_stock: int = DEFAULT_MAX_STOCK
    updated_at: str | None = None

    @classmethod
    def from_row(cls, r: sqlite3.Row) -> "StockEntry":
        return cls(
            product_id=int(r["product_id"]),
            quantity=int(r["quantity"]),
            min_stock=int(r["min_stock"]),
            max_stock=int(r["max_stock"]),
            updated_at=r["updated_at"],
        )


class StockRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_by_product(self, product_id: int) -> StockEntry | None:
        r = self.conn.execute(
            "SELECT product_id, quantity, min_stock, max_stock, updated_at "
            "FROM stock_ledger WHERE product_id=?",
            (product_id,),
        ).fetchone()
        return StockEntry.from_row(r) if r else None

    def list_low(self) -> List[dict]:
        """Rows at or below their minimum, joined with product data on read."""
        rows = self.conn.execute(
            "SELECT * FROM v_stock_status WHERE needs_replenishment = 1 ORDER BY product_id"
        ).fetchall()
        return [dict(r) for r in rows]

    def list_over(self) -> List[dict]:
        rows = self.conn.execute(
            "SELECT * FROM v_stock_status WHERE is_overstocked = 1 ORDER BY product_id"
        ).fetchall()
        return [dict(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def add(self, entry: StockEntry) -> None:
        self.conn.execute(
            "INSERT INTO stock_ledger(product_id, quantity, min_stock, max_stock) "
            "VALUES (?, ?, ?, ?)",
            (entry.product_id, int(entry.quantity), int(entry.min_stock), int(entry.max_stock)),
        )

    def update_thresholds(self, product_id: int, min_stock: int, max_stock: int) -> bool:
        cur = self.conn.execute(
            "UPDATE stock_ledger SET min_stock=?, max_stock=?, updated_at=CURRENT_TIMESTAMP "
            "WHERE product_id=?",
            (int(min_stock), int(max_stock), product_id),
        )
        return cur.rowcount == 1

    def apply_delta(self, product_id: int, delta: int) -> bool:
        """
        quantity += delta, only if the result stays >= 0.
        Returns False (and changes nothing) when the row is missing or too short.
        """
        cur = self.conn.execute(
            "UPDATE stock_ledger "
            "   SET quantity = quantity + ?, updated_at = CURRENT_TIMESTAMP "
            " WHERE product_id = ? AND quantity + ? >= 0",
            (int(delta), product_id, int(delta)),
        )
        return cur.rowcount == 1

    def remove_by_product(self, product_id: int) -> bool:
        cur = self.conn.execute("DELETE FROM stock_ledger WHERE product_id=?", (product_id,))
        return cur.rowcount == 1

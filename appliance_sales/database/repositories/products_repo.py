# appliance_sales/database/repositories/products_repo.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
import sqlite3

from ...modules.pricing.calculations import round2

_COLS = "product_id, code, name, sell_price, buy_price, is_active"


@dataclass
class Product:
    product_id: int | None
    code: str
    name: str
    sell_price: Decimal
    buy_price: Decimal
    is_active: bool = True

    @classmethod
    def from_row(cls, r: sqlite3.Row) -> "Product":
        return cls(
            product_id=int(r["product_id"]),
            code=r["code"],
            name=r["name"],
            sell_price=round2(r["sell_price"]),
            buy_price=round2(r["buy_price"]),
            is_active=bool(r["is_active"]),
        )


class ProductsRepo:
    """
    Product catalog. Products are referenced, not owned, by sales; stock is
    NOT kept here (see StockRepo).
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    def get(self, product_id: int) -> Product | None:
        r = self.conn.execute(
            f"SELECT {_COLS} FROM products WHERE product_id=?", (product_id,)
        ).fetchone()
        return Product.from_row(r) if r else None

    def get_by_code(self, code: str) -> Product | None:
        r = self.conn.execute(
            f"SELECT {_COLS} FROM products WHERE code=?", (code.strip(),)
        ).fetchone()
        return Product.from_row(r) if r else None

    def list_products(self, active_only: bool = True) -> list[Product]:
        sql = f"SELECT {_COLS} FROM products"
        if active_only:
            sql += " WHERE is_active = 1"
        sql += " ORDER BY product_id"
        return [Product.from_row(r) for r in self.conn.execute(sql).fetchall()]

    def create(self, code: str, name: str, sell_price, buy_price=0) -> int:
        cur = self.conn.execute(
            "INSERT INTO products(code, name, sell_price, buy_price) VALUES (?, ?, ?, ?)",
            (code.strip(), name.strip(), float(round2(sell_price)), float(round2(buy_price))),
        )
        return int(cur.lastrowid)

    def update(self, p: Product) -> bool:
        cur = self.conn.execute(
            "UPDATE products SET code=?, name=?, sell_price=?, buy_price=?, is_active=? "
            "WHERE product_id=?",
            (
                p.code,
                p.name,
                float(round2(p.sell_price)),
                float(round2(p.buy_price)),
                1 if p.is_active else 0,
                p.product_id,
            ),
        )
        return cur.rowcount == 1

    def set_active(self, product_id: int, active: bool) -> bool:
        cur = self.conn.execute(
            "UPDATE products SET is_active=? WHERE product_id=?",
            (1 if active else 0, product_id),
        )
        return cur.rowcount == 1

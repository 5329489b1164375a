"""
inventory/ledger.py

Per-product stock with min/max thresholds. The only place where stock
quantities change. Quantity never goes negative: exits are one conditional
UPDATE (see StockRepo.apply_delta), so the check and the write cannot be
split by another caller on the same connection/database.
"""
from __future__ import annotations

import logging
import sqlite3
from collections import OrderedDict
from typing import Iterable, List, Tuple

from ...constants import DEFAULT_MAX_STOCK, DEFAULT_MIN_STOCK
from ...database.repositories.products_repo import ProductsRepo
from ...database.repositories.stock_repo import StockEntry, StockRepo
from ...database.uow import unit_of_work
from ...errors import InsufficientStockError, ValidationError

_log = logging.getLogger(__name__)


class StockLedger:
    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        stock: StockRepo | None = None,
        products: ProductsRepo | None = None,
    ):
        self.conn = conn
        self.stock = stock or StockRepo(conn)
        self.products = products or ProductsRepo(conn)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------
    def open_entry(
        self,
        product_id: int,
        quantity: int = 0,
        min_stock: int = DEFAULT_MIN_STOCK,
        max_stock: int = DEFAULT_MAX_STOCK,
    ) -> StockEntry:
        """Create the ledger row for a catalog product."""
        if self.products.get(product_id) is None:
            raise ValidationError(f"Unknown product: {product_id}")
        if quantity < 0 or min_stock < 0 or max_stock < 0:
            raise ValidationError("Stock quantity and thresholds must be >= 0.")
        if self.stock.get_by_product(product_id) is not None:
            raise ValidationError(f"Product {product_id} already has a stock entry.")
        entry = StockEntry(product_id, int(quantity), int(min_stock), int(max_stock))
        with unit_of_work(self.conn):
            self.stock.add(entry)
        return self.stock.get_by_product(product_id)  # type: ignore[return-value]

    def set_thresholds(self, product_id: int, min_stock: int, max_stock: int) -> bool:
        if min_stock < 0 or max_stock < 0:
            raise ValidationError("Thresholds must be >= 0.")
        with unit_of_work(self.conn):
            return self.stock.update_thresholds(product_id, min_stock, max_stock)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def available(self, product_id: int) -> int | None:
        e = self.stock.get_by_product(product_id)
        return e.quantity if e else None

    def _entry(self, product_id: int) -> StockEntry:
        e = self.stock.get_by_product(product_id)
        if e is None:
            raise ValidationError(f"No stock entry for product {product_id}.")
        return e

    def needs_replenishment(self, product_id: int) -> bool:
        e = self._entry(product_id)
        return e.quantity <= e.min_stock

    def is_overstocked(self, product_id: int) -> bool:
        e = self._entry(product_id)
        return e.quantity > e.max_stock

    def low_stock(self) -> List[dict]:
        return self.stock.list_low()

    def overstocked(self) -> List[dict]:
        return self.stock.list_over()

    def check_availability(self, requests: Iterable[Tuple[int, int]]) -> None:
        """
        Dry run over (product_id, quantity) pairs; nothing is mutated.
        Quantities for the same product are added up before comparing.
        Raises InsufficientStockError for the first product that is missing
        (from the catalog or the ledger) or short.
        """
        wanted: "OrderedDict[int, int]" = OrderedDict()
        for product_id, qty in requests:
            wanted[product_id] = wanted.get(product_id, 0) + int(qty)

        for product_id, qty in wanted.items():
            if self.products.get(product_id) is None:
                raise InsufficientStockError(product_id, qty, None)
            have = self.available(product_id)
            if have is None or have < qty:
                raise InsufficientStockError(product_id, qty, have)

    # ------------------------------------------------------------------
    # Movements
    # ------------------------------------------------------------------
    def register_entry(self, product_id: int, qty: int) -> bool:
        """Add stock. qty <= 0 is a no-op reported as False."""
        if qty <= 0:
            _log.debug("register_entry ignored: product=%s qty=%s", product_id, qty)
            return False
        with unit_of_work(self.conn):
            ok = self.stock.apply_delta(product_id, int(qty))
        if not ok:
            return False
        e = self.stock.get_by_product(product_id)
        if e and e.quantity > e.max_stock:
            _log.warning(
                "overstock: product %s at %s (max %s)", product_id, e.quantity, e.max_stock
            )
        return True

    def register_exit(self, product_id: int, qty: int) -> None:
        """
        Remove stock. Succeeds only for 0 < qty <= current; otherwise nothing
        changes and InsufficientStockError is raised.
        """
        if qty <= 0:
            raise InsufficientStockError(product_id, qty, self.available(product_id))
        with unit_of_work(self.conn):
            ok = self.stock.apply_delta(product_id, -int(qty))
        if not ok:
            raise InsufficientStockError(product_id, qty, self.available(product_id))
        e = self.stock.get_by_product(product_id)
        if e and e.quantity <= e.min_stock:
            _log.warning(
                "low stock: product %s at %s (min %s)", product_id, e.quantity, e.min_stock
            )

# appliance_sales/tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - Every test gets a fresh in-memory DB with the full schema
# - Seed it with tests/seed_common.sql
# - conn.row_factory = sqlite3.Row, PRAGMA foreign_keys=ON (get_connection)
# - Services share one connection, one audit sink and one fixed clock
# - Provide handy ids for the seeded rows
# - Race tests get two connections on one seeded database file
# ---------------------------------------------------------------------

from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path

import pytest

from appliance_sales.database import get_connection
from appliance_sales.modules.audit import AuditSink
from appliance_sales.modules.credit import CreditLifecycle
from appliance_sales.modules.inventory import StockLedger
from appliance_sales.modules.sales import SaleOrchestrator

SEED_SQL = Path(__file__).resolve().parent / "seed_common.sql"

# fixed "now" for sale codes, due dates and delinquency checks
NOW = datetime(2024, 1, 15, 10, 30, 0)


@pytest.fixture()
def conn():
    con = get_connection(":memory:")
    con.executescript(SEED_SQL.read_text(encoding="utf-8"))
    try:
        yield con
    finally:
        con.close()


def seeded_ids(conn: sqlite3.Connection) -> dict:
    """Ids of the seeded rows."""
    def one(sql: str, *p):
        r = conn.execute(sql, p).fetchone()
        return None if r is None else int(r[0])

    return {
        "seller": one("SELECT user_id FROM users WHERE username='ops'"),
        "manager": one("SELECT user_id FROM users WHERE username='boss'"),
        "inactive_seller": one("SELECT user_id FROM users WHERE username='gone'"),
        "customer": one("SELECT customer_id FROM customers WHERE document='DOC-A'"),
        "customer_b": one("SELECT customer_id FROM customers WHERE document='DOC-B'"),
        "fridge": one("SELECT product_id FROM products WHERE code='REF-01'"),
        "tv": one("SELECT product_id FROM products WHERE code='TV-55'"),
        "washer": one("SELECT product_id FROM products WHERE code='WM-01'"),
        "fan": one("SELECT product_id FROM products WHERE code='OLD-01'"),
    }


@pytest.fixture()
def ids(conn: sqlite3.Connection) -> dict:
    return seeded_ids(conn)


@pytest.fixture()
def clock():
    return lambda: NOW


@pytest.fixture()
def audit(conn):
    return AuditSink(conn)


@pytest.fixture()
def ledger(conn):
    return StockLedger(conn)


@pytest.fixture()
def lifecycle(conn, audit, clock):
    return CreditLifecycle(conn, audit=audit, clock=clock, allowed_terms=(12, 18, 24))


@pytest.fixture()
def orchestrator(conn, ledger, lifecycle, audit, clock):
    return SaleOrchestrator(
        conn,
        ledger=ledger,
        credits=lifecycle,
        audit=audit,
        clock=clock,
        tax_rate="0.19",
    )


@pytest.fixture()
def count(conn: sqlite3.Connection):
    """count("sales") -> number of rows in that table."""
    def _count(table: str) -> int:
        return int(conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0])
    return _count


@pytest.fixture()
def two_shops(tmp_path, clock):
    """
    Two SaleOrchestrators, each on its own connection to the same seeded
    database file, as two cashier processes would be.
    """
    path = tmp_path / "shop.db"
    seed = get_connection(path)
    seed.executescript(SEED_SQL.read_text(encoding="utf-8"))
    seed.close()

    shops = []
    for _ in range(2):
        con = get_connection(path)
        audit = AuditSink(con)
        lifecycle = CreditLifecycle(con, audit=audit, clock=clock, allowed_terms=(12, 18, 24))
        shops.append(SaleOrchestrator(con, credits=lifecycle, audit=audit, clock=clock, tax_rate="0.19"))
    try:
        yield shops
    finally:
        for shop in shops:
            shop.conn.close()


@pytest.fixture()
def shop_ids(two_shops) -> dict:
    return seeded_ids(two_shops[0].conn)

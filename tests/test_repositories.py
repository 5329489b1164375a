# tests/test_repositories.py
from datetime import date
from decimal import Decimal

import pytest

from appliance_sales.database.repositories import (
    CustomersRepo,
    ProductsRepo,
    SalesRepo,
    StockRepo,
    UsersRepo,
)
from appliance_sales.errors import ValidationError


def test_products_catalog(conn, ids):
    repo = ProductsRepo(conn)
    p = repo.get_by_code(" REF-01 ")
    assert p.product_id == ids["fridge"]
    assert p.sell_price == Decimal("1000.00")
    assert p.buy_price == Decimal("700.00")

    codes = [x.code for x in repo.list_products()]
    assert "OLD-01" not in codes
    assert "OLD-01" in [x.code for x in repo.list_products(active_only=False)]

    p.sell_price = Decimal("1099.9")
    assert repo.update(p) is True
    assert repo.get(p.product_id).sell_price == Decimal("1099.90")

    assert repo.set_active(p.product_id, False) is True
    assert repo.get(p.product_id).is_active is False
    assert repo.get(9999) is None


def test_customers(conn):
    repo = CustomersRepo(conn)
    cid = repo.create("  Cliente C ", document=" DOC-C ")
    c = repo.get(cid)
    assert (c.name, c.document, c.contact_info) == ("Cliente C", "DOC-C", None)
    assert c.pending_balance == Decimal("0.00")

    with pytest.raises(ValidationError):
        repo.create("   ")


def test_pending_balance_is_clamped_at_zero(conn, ids):
    repo = CustomersRepo(conn)
    assert repo.adjust_pending_balance(ids["customer"], Decimal("100.10")) == Decimal("100.10")
    assert repo.adjust_pending_balance(ids["customer"], Decimal("-200")) == Decimal("0.00")
    assert repo.get(ids["customer"]).pending_balance == Decimal("0.00")
    assert repo.adjust_pending_balance(9999, 1) is None


def test_users(conn, ids):
    repo = UsersRepo(conn)
    assert repo.get(ids["seller"]).username == "ops"
    assert repo.get(ids["inactive_seller"]).is_active is False
    with pytest.raises(ValidationError):
        repo.create("x", "Someone", role="JANITOR")


def test_apply_delta_is_conditional(conn, ids):
    repo = StockRepo(conn)
    assert repo.apply_delta(ids["tv"], -3) is True
    assert repo.apply_delta(ids["tv"], -1) is False
    assert repo.get_by_product(ids["tv"]).quantity == 0
    assert repo.apply_delta(ids["washer"], 1) is False
    assert repo.remove_by_product(ids["tv"]) is True
    assert repo.get_by_product(ids["tv"]) is None


def test_next_code_per_day(conn):
    repo = SalesRepo(conn)
    assert repo.next_code("2024-03-01 09:00:00") == "V20240301-0001"
    assert repo.next_code(date(2024, 3, 1).isoformat()) == "V20240301-0001"


def test_update_status_only_moves_the_expected_status(conn, ids):
    repo = SalesRepo(conn)
    sale_id = conn.execute(
        "INSERT INTO sales(code, customer_id, seller_id, mode, subtotal, tax, total) "
        "VALUES ('X-1', ?, ?, 'CASH', 100, 19, 119)",
        (ids["customer"], ids["seller"]),
    ).lastrowid
    assert repo.update_status(sale_id, "CANCELED") is True
    # no longer REGISTERED: nothing to update
    assert repo.update_status(sale_id, "CANCELED") is False
    assert repo.update_status(sale_id, "PAID") is False
    assert repo.get(sale_id).status == "CANCELED"

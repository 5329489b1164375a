# tests/test_credit_lifecycle.py
from contextlib import contextmanager
from datetime import date
from decimal import Decimal

import pytest

from appliance_sales.constants import (
    AUDIT_CANCEL_CREDIT,
    AUDIT_PAY_INSTALLMENT,
    CREDIT_CANCELED,
    CREDIT_PAID,
    SALE_PAID,
)
from appliance_sales.database.repositories import AuditRepo, CustomersRepo
from appliance_sales.errors import IllegalStateTransition, ValidationError
from appliance_sales.modules.credit import lifecycle as lifecycle_module
from appliance_sales.modules.credit import validate_credit_terms
from appliance_sales.modules.sales import SaleLineRequest


def D(s):
    return Decimal(s)


@pytest.fixture()
def credit_sale(orchestrator, ids):
    """Reference credit: 1190.00 total, 357.00 down, 12 months at 5%."""
    res = orchestrator.realize_sale(
        ids["customer"],
        ids["seller"],
        [SaleLineRequest(ids["fridge"], 1)],
        is_credit=True,
        down_payment=D("357.00"),
        term_months=12,
        annual_rate=5,
    )
    assert res.success, res.reason
    return res.payload


# ---------------------------------------------------------------------
# schedule
# ---------------------------------------------------------------------
def test_schedule_is_anchored_not_chained(lifecycle):
    items = lifecycle.generate_schedule(D("300"), 0, 3, date(2024, 1, 31))
    assert [i.due_date for i in items] == [date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]
    assert [i.amount for i in items] == [D("100.00")] * 3
    assert not any(i.is_paid for i in items)
    assert all(i.installment_id is None for i in items)


def test_schedule_months_apart(lifecycle):
    items = lifecycle.generate_schedule(833, 5, 18, "2024-03-10")
    assert len(items) == 18
    assert items[0].due_date == date(2024, 4, 10)
    for prev, nxt in zip(items, items[1:]):
        months = (nxt.due_date.year - prev.due_date.year) * 12 + nxt.due_date.month - prev.due_date.month
        assert months == 1


def test_zero_rate_credit_splits_evenly(orchestrator, ids):
    res = orchestrator.realize_sale(
        ids["customer"], ids["seller"], [SaleLineRequest(ids["fridge"], 1)],
        is_credit=True, down_payment=D("357.00"), term_months=12, annual_rate=0,
    )
    assert res.success, res.reason
    assert {i.amount for i in res.payload["installments"]} == {D("69.42")}
    assert res.payload["credit"].balance == D("833.04")


def test_open_credit_rejects_cash_and_duplicate(lifecycle, orchestrator, ids, credit_sale):
    cash = orchestrator.realize_sale(ids["customer"], ids["seller"], [SaleLineRequest(ids["tv"], 1)])
    with pytest.raises(ValidationError):
        lifecycle.open_credit(cash.payload["sale"], 0, 12, 5)
    with pytest.raises(ValidationError):
        lifecycle.open_credit(credit_sale["sale"], 0, 12, 5)


# ---------------------------------------------------------------------
# credit terms
# ---------------------------------------------------------------------
def test_validate_credit_terms_accepts_policy_terms():
    for term in (12, 18, 24):
        validate_credit_terms(D("1190.00"), D("0"), term, 5, (12, 18, 24))
    validate_credit_terms(D("1190.00"), D("1189.99"), 12, 0, (12, 18, 24))


@pytest.mark.parametrize(
    "down, term, rate",
    [
        ("-0.01", 12, 5),
        ("1190.01", 12, 5),
        ("1190.00", 12, 5),
        ("1189.999", 12, 5),
        ("abc", 12, 5),
        ("0", 6, 5),
        ("0", True, 5),
        ("0", "12", 5),
        ("0", 12, "-0.5"),
        ("0", 12, None),
    ],
)
def test_validate_credit_terms_rejects(down, term, rate):
    with pytest.raises(ValidationError):
        validate_credit_terms(D("1190.00"), down, term, rate, (12, 18, 24))


# ---------------------------------------------------------------------
# payments
# ---------------------------------------------------------------------
def test_paying_every_installment_settles_credit_and_sale(lifecycle, orchestrator, conn, ids, credit_sale):
    credit = credit_sale["credit"]
    for inst in credit_sale["installments"]:
        res = lifecycle.pay_installment(inst.installment_id, ids["seller"])
        assert res.success, res.reason

    stored = lifecycle.credits.get(credit.credit_id)
    assert stored.balance == D("0.00")
    assert stored.status == CREDIT_PAID
    assert orchestrator.get_sale(credit.sale_id).status == SALE_PAID
    assert lifecycle.is_delinquent(credit.credit_id) is False
    assert lifecycle.payment_progress(credit.sale_id) == 100.0
    assert lifecycle.has_active_credit(ids["customer"]) is False
    assert CustomersRepo(conn).get(ids["customer"]).pending_balance == D("0.00")
    assert len(AuditRepo(conn).list_entries(action=AUDIT_PAY_INSTALLMENT)) == 12


def test_each_payment_lowers_balance_by_its_amount(lifecycle, ids, credit_sale):
    first = credit_sale["installments"][0]
    res = lifecycle.pay_installment(first.installment_id, ids["seller"])
    assert res.payload["credit"].balance == D("855.72") - first.amount
    assert res.payload["installment"].is_paid is True
    paid = lifecycle.installments.get(first.installment_id)
    assert paid.is_paid and paid.paid_date.startswith("2024-01-15")


def test_installment_cannot_be_paid_twice(lifecycle, ids, credit_sale):
    inst = credit_sale["installments"][0]
    assert lifecycle.pay_installment(inst.installment_id, ids["seller"]).success
    again = lifecycle.pay_installment(inst.installment_id, ids["seller"])
    assert not again.success
    assert isinstance(again.error, IllegalStateTransition)
    credit = lifecycle.credits.get(inst.credit_id)
    assert credit.balance == D("855.72") - inst.amount


def test_pay_unknown_installment(lifecycle, ids):
    res = lifecycle.pay_installment(31337, ids["seller"])
    assert isinstance(res.error, ValidationError)


def test_no_payments_on_a_canceled_credit(lifecycle, orchestrator, ids, credit_sale):
    assert orchestrator.cancel_sale(credit_sale["sale"].sale_id, ids["seller"]).success
    inst = credit_sale["installments"][0]
    res = lifecycle.pay_installment(inst.installment_id, ids["seller"])
    assert isinstance(res.error, IllegalStateTransition)
    assert lifecycle.installments.get(inst.installment_id).is_paid is False


def test_pay_by_number(lifecycle, orchestrator, ids, credit_sale):
    sale_id = credit_sale["sale"].sale_id

    short = lifecycle.pay_installment_by_number(sale_id, 1, D("71.30"), ids["seller"])
    assert isinstance(short.error, ValidationError)

    missing = lifecycle.pay_installment_by_number(sale_id, 13, D("100"), ids["seller"])
    assert isinstance(missing.error, ValidationError)

    ok = lifecycle.pay_installment_by_number(sale_id, 1, D("71.31"), ids["seller"])
    assert ok.success, ok.reason
    assert ok.payload["installment"].number == 1

    cash = orchestrator.realize_sale(ids["customer"], ids["seller"], [SaleLineRequest(ids["tv"], 1)])
    res = lifecycle.pay_installment_by_number(cash.id, 1, D("100"), ids["seller"])
    assert isinstance(res.error, ValidationError)


@pytest.mark.parametrize("amount", ["abc", None, "NaN", True])
def test_pay_by_number_rejects_non_numeric_amount(lifecycle, ids, credit_sale, amount):
    sale_id = credit_sale["sale"].sale_id
    res = lifecycle.pay_installment_by_number(sale_id, 1, amount, ids["seller"])
    assert isinstance(res.error, ValidationError)
    assert lifecycle.payment_progress(sale_id) == 0.0


def test_concurrent_payments_both_lower_the_balance(two_shops, shop_ids, monkeypatch):
    shop_a, shop_b = two_shops
    sale = shop_a.realize_sale(
        shop_ids["customer"], shop_ids["seller"], [SaleLineRequest(shop_ids["fridge"], 1)],
        is_credit=True, down_payment=D("357.00"), term_months=12, annual_rate=5,
    )
    assert sale.success, sale.reason
    first, second = sale.payload["installments"][:2]
    cashier_a, cashier_b = shop_a.credit_lifecycle, shop_b.credit_lifecycle

    # the other cashier's payment commits just before this one takes the write lock
    real_uow = lifecycle_module.unit_of_work
    other = []

    @contextmanager
    def racing_uow(conn):
        if conn is shop_a.conn and not other:
            other.append(cashier_b.pay_installment(second.installment_id, shop_ids["seller"]))
        with real_uow(conn) as c:
            yield c

    monkeypatch.setattr(lifecycle_module, "unit_of_work", racing_uow)
    res = cashier_a.pay_installment(first.installment_id, shop_ids["seller"])

    assert other[0].success, other[0].reason
    assert res.success, res.reason
    assert res.payload["credit"].balance == D("713.10")
    assert cashier_b.credits.get(res.payload["credit"].credit_id).balance == D("713.10")
    assert CustomersRepo(shop_a.conn).get(shop_ids["customer"]).pending_balance == D("713.10")


def test_progress_and_pending(lifecycle, ids, credit_sale):
    sale_id = credit_sale["sale"].sale_id
    assert lifecycle.payment_progress(sale_id) == 0.0
    assert len(lifecycle.pending_installments(ids["customer"])) == 12

    for inst in credit_sale["installments"][:3]:
        lifecycle.pay_installment(inst.installment_id, ids["seller"])

    assert lifecycle.payment_progress(sale_id) == 25.0
    assert [i.number for i in lifecycle.pending_installments(ids["customer"])] == list(range(4, 13))
    assert lifecycle.has_active_credit(ids["customer"]) is True
    assert lifecycle.has_active_credit(ids["customer_b"]) is False
    assert lifecycle.payment_progress(999) == 0.0


# ---------------------------------------------------------------------
# delinquency
# ---------------------------------------------------------------------
def test_no_delinquency_while_nothing_is_due(lifecycle, ids, credit_sale):
    credit_id = credit_sale["credit"].credit_id
    assert lifecycle.is_delinquent(credit_id) is False
    assert lifecycle.delinquent_credits() == []
    assert lifecycle.overdue_installments(ids["customer"]) == []


def test_past_due_installment_makes_credit_delinquent_until_paid(lifecycle, ids, credit_sale):
    credit_id = credit_sale["credit"].credit_id
    third = credit_sale["installments"][2]
    lifecycle.installments.set_due_date(third.installment_id, date(2024, 1, 1))

    assert lifecycle.is_delinquent(credit_id) is True
    assert [c.credit_id for c in lifecycle.delinquent_credits()] == [credit_id]
    overdue = lifecycle.overdue_installments(ids["customer"])
    assert [i.number for i in overdue] == [3]
    assert overdue[0].days_overdue(date(2024, 1, 15)) == 14

    assert lifecycle.pay_installment(third.installment_id, ids["seller"]).success
    assert lifecycle.is_delinquent(credit_id) is False


def test_due_today_is_not_overdue(lifecycle, credit_sale):
    first = credit_sale["installments"][0]
    lifecycle.installments.set_due_date(first.installment_id, date(2024, 1, 15))
    assert lifecycle.is_delinquent(credit_sale["credit"].credit_id) is False


def test_canceling_clears_delinquency(lifecycle, orchestrator, conn, ids, credit_sale):
    credit_id = credit_sale["credit"].credit_id
    first = credit_sale["installments"][0]
    lifecycle.installments.set_due_date(first.installment_id, date(2023, 12, 1))
    assert lifecycle.is_delinquent(credit_id) is True

    assert orchestrator.cancel_sale(credit_sale["sale"].sale_id, ids["manager"]).success
    assert lifecycle.is_delinquent(credit_id) is False
    assert lifecycle.credits.get(credit_id).status == CREDIT_CANCELED
    assert len(AuditRepo(conn).list_entries(action=AUDIT_CANCEL_CREDIT)) == 1


def test_delinquency_summary(lifecycle, ids, credit_sale):
    items = credit_sale["installments"]
    lifecycle.installments.set_due_date(items[0].installment_id, date(2024, 1, 5))
    lifecycle.installments.set_due_date(items[1].installment_id, date(2024, 1, 10))
    lifecycle.pay_installment(items[2].installment_id, ids["seller"])

    s = lifecycle.client_delinquency_summary(ids["customer"])
    assert s.credit_count == 1
    assert s.total_financed == D("833.00")
    assert s.total_pending == D("855.72") - items[2].amount
    assert s.pending_installments == 11
    assert s.overdue_installments == 2
    assert s.days_overdue == 10 + 5
    assert s.is_moroso is True

    clean = lifecycle.client_delinquency_summary(ids["customer_b"])
    assert clean.credit_count == 0
    assert clean.is_moroso is False

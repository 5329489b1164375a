"""
sales/orchestrator.py

Entry point for selling: validates a sale request, prices it, persists the
sale with its lines, moves stock out, and for credit sales opens the credit
with its installment schedule.

Everything from the stock check to the last installment row runs in one
unit of work, so a failure anywhere leaves no sale, line, stock movement or
credit behind. Business-rule failures come back as ActionResult(success=False);
only unexpected errors propagate.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, List, Optional, Sequence

from ... import config
from ...constants import (
    AUDIT_CANCEL_SALE,
    AUDIT_CREATE_CREDIT,
    AUDIT_CREATE_SALE,
    AUDIT_PAY_SALE,
    CREDIT_ACTIVE,
    DEFAULT_ANNUAL_RATE,
    MODE_CASH,
    MODE_CREDIT,
    SALE_CANCELED,
    SALE_PAID,
    SALE_REGISTERED,
)
from ...database.repositories.credits_repo import CreditsRepo
from ...database.repositories.customers_repo import CustomersRepo
from ...database.repositories.products_repo import ProductsRepo
from ...database.repositories.sales_repo import SaleHeader, SaleLine, SalesRepo
from ...database.repositories.users_repo import UsersRepo
from ...database.uow import unit_of_work
from ...errors import DomainError, PersistenceError, ValidationError
from ...utils.helpers import fmt_money, timestamp
from ...utils.validators import is_non_negative_number, is_positive_int
from ..audit.sink import AuditSink
from ..credit.lifecycle import CreditLifecycle, validate_credit_terms
from ..inventory.ledger import StockLedger
from ..pricing.calculations import ZERO, line_amounts, round2
from ..results import ActionResult
from ..status import ensure_sale_transition

_log = logging.getLogger(__name__)


@dataclass
class SaleLineRequest:
    product_id: int
    quantity: int
    unit_price: Optional[Decimal] = None   # None -> product's sell price


class SaleOrchestrator:
    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        ledger: StockLedger | None = None,
        credits: CreditLifecycle | None = None,
        audit: AuditSink | None = None,
        clock: Callable[[], datetime] | None = None,
        tax_rate=None,
        allowed_terms: Iterable[int] | None = None,
    ):
        self.conn = conn
        self.clock = clock or datetime.now
        self.audit = audit or AuditSink(conn)
        self.ledger = ledger or StockLedger(conn)
        self.credit_lifecycle = credits or CreditLifecycle(
            conn, audit=self.audit, clock=self.clock, allowed_terms=allowed_terms
        )
        self.tax_rate = Decimal(str(tax_rate)) if tax_rate is not None else config.TAX_RATE
        self.allowed_terms = self.credit_lifecycle.allowed_terms

        self.sales = SalesRepo(conn)
        self.products = ProductsRepo(conn)
        self.customers = CustomersRepo(conn)
        self.users = UsersRepo(conn)
        self.credits = CreditsRepo(conn)

    # ------------------------------------------------------------------
    # Validation & pricing
    # ------------------------------------------------------------------
    def _validate_request(
        self,
        customer_id: Optional[int],
        seller_id: Optional[int],
        lines: Optional[Sequence[SaleLineRequest]],
    ) -> List[SaleLineRequest]:
        if customer_id is None:
            raise ValidationError("Customer is required.")
        if seller_id is None:
            raise ValidationError("Seller is required.")
        if not lines:
            raise ValidationError("A sale needs at least one line.")

        for ln in lines:
            if not is_positive_int(ln.quantity):
                raise ValidationError(f"Quantity for product {ln.product_id} must be a positive integer.")
            if ln.unit_price is not None and not is_non_negative_number(ln.unit_price):
                raise ValidationError(f"Unit price for product {ln.product_id} must be >= 0.")

        customer = self.customers.get(customer_id)
        if customer is None or not customer.is_active:
            raise ValidationError(f"Unknown or inactive customer: {customer_id}")
        seller = self.users.get(seller_id)
        if seller is None or not seller.is_active:
            raise ValidationError(f"Unknown or inactive seller: {seller_id}")
        return list(lines)

    def _price_lines(self, lines: List[SaleLineRequest]) -> List[SaleLine]:
        priced: List[SaleLine] = []
        for req in lines:
            product = self.products.get(req.product_id)
            if product is None:
                raise ValidationError(f"Unknown product: {req.product_id}")
            if not product.is_active:
                raise ValidationError(f"Product {product.code} is not for sale.")
            unit = round2(req.unit_price) if req.unit_price is not None else product.sell_price
            sub, tx, tot = line_amounts(unit, req.quantity, self.tax_rate)
            priced.append(
                SaleLine(
                    line_id=None,
                    sale_id=None,
                    product_id=req.product_id,
                    quantity=req.quantity,
                    unit_price=unit,
                    subtotal=sub,
                    tax=tx,
                    total=tot,
                )
            )
        return priced

    # ------------------------------------------------------------------
    # Realize
    # ------------------------------------------------------------------
    def realize_sale(
        self,
        customer_id: Optional[int],
        seller_id: Optional[int],
        lines: Optional[Sequence[SaleLineRequest]],
        is_credit: bool = False,
        down_payment=0,
        term_months: int = 0,
        annual_rate=DEFAULT_ANNUAL_RATE,
    ) -> ActionResult:
        """
        Create a CASH or CREDIT sale. The sale is REGISTERED on success; a
        CREDIT sale also gets its credit and installments.
        """
        credit = None
        schedule: list = []
        try:
            requests = self._validate_request(customer_id, seller_id, lines)

            with unit_of_work(self.conn):
                # dry run first: nothing is written if any product is short
                self.ledger.check_availability((r.product_id, r.quantity) for r in requests)

                priced = self._price_lines(requests)
                subtotal = round2(sum((p.subtotal for p in priced), ZERO))
                tax = round2(sum((p.tax for p in priced), ZERO))
                total = round2(sum((p.total for p in priced), ZERO))

                if is_credit:
                    validate_credit_terms(total, down_payment, term_months, annual_rate, self.allowed_terms)

                now = self.clock()
                date_str = timestamp(now)
                header = SaleHeader(
                    sale_id=None,
                    code=self.sales.next_code(date_str),
                    customer_id=customer_id,  # type: ignore[arg-type]
                    seller_id=seller_id,  # type: ignore[arg-type]
                    date=date_str,
                    mode=MODE_CREDIT if is_credit else MODE_CASH,
                    subtotal=subtotal,
                    tax=tax,
                    total=total,
                    down_payment=round2(down_payment) if is_credit else ZERO,
                    term_months=term_months if is_credit else 0,
                    status=SALE_REGISTERED,
                )
                if not self.sales.add(header):
                    raise PersistenceError("Sale header was not stored.")

                for ln in priced:
                    ln.sale_id = header.sale_id
                    self.sales.add_line(ln)
                    self.ledger.register_exit(ln.product_id, ln.quantity)

                if is_credit:
                    credit, schedule = self.credit_lifecycle.open_credit(
                        header, down_payment, term_months, annual_rate, anchor_date=now.date()
                    )
        except DomainError as e:
            _log.info("realize_sale rejected: %s", e)
            return ActionResult.fail(e)

        _log.info("sale %s registered: %s %s", header.code, header.mode, header.total)
        self.audit.append(
            seller_id,
            AUDIT_CREATE_SALE,
            "Sale",
            f"Sale {header.code} ({header.mode}) registered, total {fmt_money(header.total)}",
        )
        if credit is not None:
            self.audit.append(
                seller_id,
                AUDIT_CREATE_CREDIT,
                "Credit",
                f"Credit {credit.credit_id} for sale {header.code}: "
                f"{credit.term_months} x {fmt_money(credit.installment_amount)}",
            )
        return ActionResult(
            success=True,
            id=header.sale_id,
            message=f"Sale {header.code} registered.",
            payload={"sale": header, "lines": priced, "credit": credit, "installments": schedule},
        )

    # ------------------------------------------------------------------
    # Cancel / settle
    # ------------------------------------------------------------------
    def cancel_sale(self, sale_id: int, actor_id: Optional[int]) -> ActionResult:
        """
        REGISTERED -> CANCELED: put every line's quantity back and cancel the
        credit if there is one. Canceling a PAID or CANCELED sale fails.

        The status is read under the write lock.
        """
        try:
            with unit_of_work(self.conn):
                sale = self.sales.get(sale_id)
                if sale is None:
                    raise ValidationError(f"Sale {sale_id} not found.")
                ensure_sale_transition(sale.status, SALE_CANCELED)

                for ln in self.sales.list_lines(sale_id):
                    if not self.ledger.register_entry(ln.product_id, ln.quantity):
                        raise PersistenceError(f"Stock for product {ln.product_id} could not be restored.")

                credit = self.credits.get_by_sale(sale_id)
                if credit is not None and credit.status == CREDIT_ACTIVE:
                    res = self.credit_lifecycle.cancel_credit(sale_id, actor_id)
                    if not res.success:
                        raise res.error  # type: ignore[misc]

                if not self.sales.update_status(sale_id, SALE_CANCELED, expected=sale.status):
                    raise PersistenceError(f"Sale {sale_id} could not be updated.")
                sale.status = SALE_CANCELED
        except DomainError as e:
            _log.info("cancel_sale %s rejected: %s", sale_id, e)
            return ActionResult.fail(e, id=sale_id)

        self.audit.append(actor_id, AUDIT_CANCEL_SALE, "Sale", f"Sale {sale.code} canceled")
        return ActionResult(success=True, id=sale_id, message=f"Sale {sale.code} canceled.", payload={"sale": sale})

    def mark_paid(self, sale_id: int, actor_id: Optional[int]) -> ActionResult:
        """
        Settle a CASH sale (REGISTERED -> PAID). Credit sales are settled by
        paying their installments instead.
        """
        try:
            with unit_of_work(self.conn):
                sale = self.sales.get(sale_id)
                if sale is None:
                    raise ValidationError(f"Sale {sale_id} not found.")
                if sale.is_credit:
                    raise ValidationError("Credit sales are paid through their installments.")
                ensure_sale_transition(sale.status, SALE_PAID)
                if not self.sales.update_status(sale_id, SALE_PAID, expected=sale.status):
                    raise PersistenceError(f"Sale {sale_id} could not be updated.")
            sale.status = SALE_PAID
        except DomainError as e:
            return ActionResult.fail(e, id=sale_id)

        self.audit.append(actor_id, AUDIT_PAY_SALE, "Sale", f"Sale {sale.code} paid in cash")
        return ActionResult(success=True, id=sale_id, message=f"Sale {sale.code} paid.", payload={"sale": sale})

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_sale(self, sale_id: int) -> SaleHeader | None:
        return self.sales.get(sale_id)

    def sale_lines(self, sale_id: int) -> List[SaleLine]:
        return self.sales.list_lines(sale_id)

    def sales_by_customer(self, customer_id: int, status: Optional[str] = None) -> List[SaleHeader]:
        return self.sales.list_by_customer(customer_id, status)

"""
credit/lifecycle.py

Installment credits: schedule generation, payments, cancellation and
delinquency.

Balance contract: a credit starts with balance = sum of its installment
amounts, and every paid installment lowers the balance by exactly its own
amount. Paying the last installment therefore lands on 0.00, which moves
the credit to PAID and the owning sale REGISTERED -> PAID.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Iterable, List

from ... import config
from ...constants import (
    AUDIT_CANCEL_CREDIT,
    AUDIT_PAY_INSTALLMENT,
    CREDIT_ACTIVE,
    CREDIT_CANCELED,
    CREDIT_PAID,
    SALE_PAID,
    SALE_REGISTERED,
)
from ...database.repositories.credits_repo import (
    Credit,
    CreditsRepo,
    Installment,
    InstallmentsRepo,
)
from ...database.repositories.customers_repo import CustomersRepo
from ...database.repositories.sales_repo import SaleHeader, SalesRepo
from ...database.uow import unit_of_work
from ...errors import (
    DomainError,
    IllegalStateTransition,
    PersistenceError,
    ValidationError,
)
from ...utils.helpers import add_months, fmt_money, parse_date, timestamp
from ...utils.validators import try_parse_decimal
from ..audit.sink import AuditSink
from ..pricing.calculations import ZERO, financed_amount, installment, round2
from ..results import ActionResult
from ..status import ensure_credit_transition, ensure_sale_transition

_log = logging.getLogger(__name__)


def validate_credit_terms(
    total,
    down_payment,
    term_months,
    annual_rate,
    allowed_terms: Iterable[int] | None = None,
) -> None:
    """
    Single credit-term policy for every entry point:
      - 0 <= down_payment < total (something must be financed)
      - term_months is one of the allowed terms
      - annual_rate >= 0
    Raises ValidationError.
    """
    allowed = tuple(allowed_terms) if allowed_terms is not None else config.CREDIT_TERMS
    ok_down, down = try_parse_decimal(down_payment)
    ok_rate, rate = try_parse_decimal(annual_rate)
    if not (ok_down and ok_rate):
        raise ValidationError("Down payment and annual rate must be numbers.")

    if down < 0 or down > Decimal(str(total)):
        raise ValidationError(
            f"Down payment must be between 0 and the sale total ({fmt_money(total)})."
        )
    if round2(down) >= round2(total):
        raise ValidationError("Nothing to finance: the down payment covers the sale total.")
    if isinstance(term_months, bool) or not isinstance(term_months, int) or term_months <= 0:
        raise ValidationError("Term must be a positive number of months.")
    if term_months not in allowed:
        raise ValidationError(
            f"Term of {term_months} months is not offered (allowed: {', '.join(map(str, allowed))})."
        )
    if rate < 0:
        raise ValidationError("Annual rate cannot be negative.")


@dataclass
class DelinquencySummary:
    customer_id: int
    credit_count: int = 0
    total_financed: Decimal = field(default_factory=lambda: ZERO)
    total_pending: Decimal = field(default_factory=lambda: ZERO)
    pending_installments: int = 0
    overdue_installments: int = 0
    days_overdue: int = 0

    @property
    def is_moroso(self) -> bool:
        return self.overdue_installments > 0


class CreditLifecycle:
    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        audit: AuditSink | None = None,
        clock: Callable[[], datetime] | None = None,
        allowed_terms: Iterable[int] | None = None,
    ):
        self.conn = conn
        self.credits = CreditsRepo(conn)
        self.installments = InstallmentsRepo(conn)
        self.sales = SalesRepo(conn)
        self.customers = CustomersRepo(conn)
        self.audit = audit or AuditSink(conn)
        self.clock = clock or datetime.now
        self.allowed_terms = tuple(allowed_terms) if allowed_terms is not None else config.CREDIT_TERMS

    def _today(self) -> date:
        return self.clock().date()

    def _now_str(self) -> str:
        return timestamp(self.clock())

    # ------------------------------------------------------------------
    # Schedule
    # ------------------------------------------------------------------
    def generate_schedule(
        self,
        financed,
        annual_rate,
        term_months: int,
        anchor_date: date | str,
    ) -> List[Installment]:
        """
        `term_months` unpaid installments numbered 1..n, level amount,
        due dates anchor + 1 month, anchor + 2 months, ...
        """
        anchor = parse_date(anchor_date)
        amount = installment(financed, annual_rate, term_months)
        return [
            Installment(
                installment_id=None,
                credit_id=None,
                number=k,
                amount=amount,
                due_date=add_months(anchor, k),
            )
            for k in range(1, term_months + 1)
        ]

    def open_credit(
        self,
        sale: SaleHeader,
        down_payment,
        term_months: int,
        annual_rate,
        *,
        anchor_date: date | str | None = None,
    ) -> tuple[Credit, List[Installment]]:
        """
        Persist the credit and its schedule for a CREDIT-mode sale and raise
        the customer's pending balance. Raises DomainError; runs inside the
        caller's unit of work when there is one.
        """
        if sale.sale_id is None or not sale.is_credit:
            raise ValidationError("A credit can only be opened for a persisted CREDIT sale.")
        if self.credits.get_by_sale(sale.sale_id) is not None:
            raise ValidationError(f"Sale {sale.code} already has a credit.")
        validate_credit_terms(sale.total, down_payment, term_months, annual_rate, self.allowed_terms)

        financed = financed_amount(sale.total, down_payment)
        anchor = parse_date(anchor_date) if anchor_date is not None else parse_date(sale.date)
        schedule = self.generate_schedule(financed, annual_rate, term_months, anchor)
        repayable = round2(sum((i.amount for i in schedule), ZERO))

        credit = Credit(
            credit_id=None,
            sale_id=sale.sale_id,
            customer_id=sale.customer_id,
            financed_amount=financed,
            annual_rate=Decimal(str(annual_rate)),
            term_months=term_months,
            down_payment=round2(down_payment),
            installment_amount=schedule[0].amount if schedule else ZERO,
            balance=repayable,
            status=CREDIT_ACTIVE,
        )

        with unit_of_work(self.conn):
            self.credits.add(credit)
            for inst in schedule:
                inst.credit_id = credit.credit_id
                self.installments.add(inst)
            if self.customers.adjust_pending_balance(sale.customer_id, repayable) is None:
                raise PersistenceError(f"Customer {sale.customer_id} not found.")

        _log.info(
            "credit %s opened for sale %s: financed %s, %s x %s",
            credit.credit_id, sale.code, financed, term_months, credit.installment_amount,
        )
        return credit, schedule

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------
    def _apply_payment(self, installment_id: int) -> tuple[Installment, Credit]:
        # installment and credit are read under the write lock
        with unit_of_work(self.conn):
            inst = self.installments.get(installment_id)
            if inst is None:
                raise ValidationError(f"Installment {installment_id} not found.")
            if inst.is_paid:
                raise IllegalStateTransition("Installment", "PAID", "PAID")
            credit = self.credits.get(inst.credit_id)  # type: ignore[arg-type]
            if credit is None:
                raise PersistenceError(f"Credit {inst.credit_id} not found.")
            if credit.status != CREDIT_ACTIVE:
                raise IllegalStateTransition("Credit", credit.status, "payment")

            if not self.installments.mark_paid(installment_id, self._now_str()):
                raise PersistenceError(f"Installment {installment_id} could not be marked paid.")
            inst.is_paid = True

            credit.balance = round2(credit.balance - inst.amount)
            if credit.balance < 0:
                credit.balance = ZERO
            self.customers.adjust_pending_balance(credit.customer_id, -inst.amount)

            if credit.balance == 0 or not self.installments.list_pending_by_credit(credit.credit_id):  # type: ignore[arg-type]
                credit.status = ensure_credit_transition(credit.status, CREDIT_PAID)
                credit.balance = ZERO
                sale = self.sales.get(credit.sale_id)
                if sale is not None and sale.status == SALE_REGISTERED:
                    ensure_sale_transition(sale.status, SALE_PAID)
                    if not self.sales.update_status(sale.sale_id, SALE_PAID):  # type: ignore[arg-type]
                        raise PersistenceError(f"Sale {sale.sale_id} could not be updated.")

            if not self.credits.update(credit):
                raise PersistenceError(f"Credit {credit.credit_id} could not be updated.")

        if credit.status == CREDIT_PAID:
            _log.info("credit %s paid off (sale %s)", credit.credit_id, credit.sale_id)
        return inst, credit

    def pay_installment(self, installment_id: int, actor_id: int | None) -> ActionResult:
        """Pay one installment by id. Failures come back as ActionResult(success=False)."""
        try:
            inst, credit = self._apply_payment(installment_id)
        except DomainError as e:
            _log.info("pay_installment %s rejected: %s", installment_id, e)
            return ActionResult.fail(e, id=installment_id)

        self.audit.append(
            actor_id,
            AUDIT_PAY_INSTALLMENT,
            "Installment",
            f"Installment #{inst.number} of credit {credit.credit_id} paid ({fmt_money(inst.amount)})",
        )
        return ActionResult(
            success=True,
            id=installment_id,
            message="Installment paid.",
            payload={"installment": inst, "credit": credit},
        )

    def pay_installment_by_number(
        self,
        sale_id: int,
        number: int,
        amount,
        actor_id: int | None,
    ) -> ActionResult:
        """
        Cashier flow: locate installment `number` of the sale's credit and pay it.
        The tendered amount must cover the installment.
        """
        try:
            sale = self.sales.get(sale_id)
            if sale is None or not sale.is_credit:
                raise ValidationError(f"Sale {sale_id} is not a credit sale.")
            credit = self.credits.get_by_sale(sale_id)
            if credit is None:
                raise ValidationError(f"Sale {sale_id} has no credit.")
            inst = self.installments.get_by_number(credit.credit_id, number)  # type: ignore[arg-type]
            if inst is None:
                raise ValidationError(f"Credit {credit.credit_id} has no installment #{number}.")
            ok, tendered = try_parse_decimal(amount)
            if not ok:
                raise ValidationError(f"Amount must be a number, got {amount!r}.")
            if round2(tendered) < inst.amount:
                raise ValidationError(
                    f"Amount {fmt_money(tendered)} does not cover installment #{number} ({fmt_money(inst.amount)})."
                )
        except DomainError as e:
            return ActionResult.fail(e)
        return self.pay_installment(inst.installment_id, actor_id)  # type: ignore[arg-type]

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------
    def cancel_credit(self, sale_id: int, actor_id: int | None) -> ActionResult:
        """
        ACTIVE -> CANCELED. Paid installments stay paid and the balance is
        left as-is; the customer's pending balance drops by that balance.
        Meant to be called from SaleOrchestrator.cancel_sale.
        """
        try:
            with unit_of_work(self.conn):
                credit = self.credits.get_by_sale(sale_id)
                if credit is None:
                    raise ValidationError(f"Sale {sale_id} has no credit.")
                credit.status = ensure_credit_transition(credit.status, CREDIT_CANCELED)
                if not self.credits.update(credit):
                    raise PersistenceError(f"Credit {credit.credit_id} could not be updated.")
                self.customers.adjust_pending_balance(credit.customer_id, -credit.balance)
        except DomainError as e:
            return ActionResult.fail(e)

        self.audit.append(
            actor_id,
            AUDIT_CANCEL_CREDIT,
            "Credit",
            f"Credit {credit.credit_id} canceled (sale {sale_id}, balance {fmt_money(credit.balance)})",
        )
        return ActionResult(success=True, id=credit.credit_id, message="Credit canceled.", payload={"credit": credit})

    # ------------------------------------------------------------------
    # Delinquency & queries
    # ------------------------------------------------------------------
    def is_delinquent(self, credit_id: int) -> bool:
        credit = self.credits.get(credit_id)
        if credit is None or credit.status != CREDIT_ACTIVE or credit.balance <= 0:
            return False
        today = self._today()
        return any(i.is_overdue(today) for i in self.installments.list_pending_by_credit(credit_id))

    def delinquent_credits(self) -> List[Credit]:
        found = [c for c in self.credits.list_by_status(CREDIT_ACTIVE) if self.is_delinquent(c.credit_id)]  # type: ignore[arg-type]
        if found:
            _log.warning("%d delinquent credit(s)", len(found))
        return found

    def schedule(self, credit_id: int) -> List[Installment]:
        return self.installments.list_by_credit(credit_id)

    def pending_installments(self, customer_id: int) -> List[Installment]:
        """Unpaid installments across the customer's ACTIVE credits."""
        out: List[Installment] = []
        for c in self.credits.list_by_customer(customer_id, CREDIT_ACTIVE):
            out.extend(self.installments.list_pending_by_credit(c.credit_id))  # type: ignore[arg-type]
        return out

    def overdue_installments(self, customer_id: int) -> List[Installment]:
        today = self._today()
        return [i for i in self.pending_installments(customer_id) if i.is_overdue(today)]

    def has_active_credit(self, customer_id: int) -> bool:
        return bool(self.pending_installments(customer_id))

    def payment_progress(self, sale_id: int) -> float:
        """Percent of installments paid, 0.0 when the sale has no credit."""
        credit = self.credits.get_by_sale(sale_id)
        if credit is None:
            return 0.0
        items = self.installments.list_by_credit(credit.credit_id)  # type: ignore[arg-type]
        if not items:
            return 0.0
        paid = sum(1 for i in items if i.is_paid)
        return paid * 100.0 / len(items)

    def client_delinquency_summary(self, customer_id: int) -> DelinquencySummary:
        today = self._today()
        summary = DelinquencySummary(customer_id=customer_id)
        for c in self.credits.list_by_customer(customer_id, CREDIT_ACTIVE):
            summary.credit_count += 1
            summary.total_financed += c.financed_amount
            summary.total_pending += c.balance
            for i in self.installments.list_pending_by_credit(c.credit_id):  # type: ignore[arg-type]
                summary.pending_installments += 1
                if i.is_overdue(today):
                    summary.overdue_installments += 1
                    summary.days_overdue += i.days_overdue(today)
        if summary.is_moroso:
            _log.warning(
                "customer %s has %d overdue installment(s)", customer_id, summary.overdue_installments
            )
        return summary

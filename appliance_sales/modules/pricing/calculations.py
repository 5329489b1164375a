"""
pricing/calculations.py

Pure money math for sales and credits (the pricing engine).

Do not import repos or open DB connections here.
Only compute numbers; formatting belongs to callers.

Rounding policy: every monetary result is rounded ONCE, half-up (ties away
from zero) to 2 decimals. Inputs may be int/float/str/Decimal; floats are
converted through str() so 0.1 stays 0.1.
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Tuple

__all__ = [
    "round2",
    "subtotal",
    "tax",
    "total",
    "line_amounts",
    "installment",
    "total_interest",
    "financed_amount",
    "payment_plan",
]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def _d(x) -> Decimal:
    if isinstance(x, Decimal):
        return x
    if x is None:
        return Decimal(0)
    return Decimal(str(x))


# -----------------------------
# Core utilities
# -----------------------------

def round2(x) -> Decimal:
    """Round half-up to cents: 2.345 -> 2.35, -2.345 -> -2.35."""
    return _d(x).quantize(CENT, rounding=ROUND_HALF_UP)


def clamp_non_negative(x: Decimal) -> Decimal:
    """Return x if x > 0, else 0.00."""
    return x if x > 0 else ZERO


# -----------------------------
# Sale helpers
# -----------------------------

def subtotal(prices: Optional[Iterable]) -> Decimal:
    """Sum of already-priced amounts. Empty/None -> 0.00."""
    if not prices:
        return ZERO
    return round2(sum((_d(p) for p in prices), Decimal(0)))


def tax(amount, rate) -> Decimal:
    """round2(amount * rate); rate is a fraction (0.19 = 19%)."""
    return round2(_d(amount) * _d(rate))


def total(amount, rate) -> Decimal:
    """round2(amount + tax(amount, rate))."""
    return round2(_d(amount) + tax(amount, rate))


def line_amounts(unit_price, quantity: int, rate) -> Tuple[Decimal, Decimal, Decimal]:
    """
    (subtotal, tax, total) for one sale line.
    Header totals are the sums of these, so line and header always agree to the cent.
    """
    sub = round2(_d(unit_price) * quantity)
    return sub, tax(sub, rate), total(sub, rate)


# -----------------------------
# Credit helpers
# -----------------------------

def financed_amount(sale_total, down_payment) -> Decimal:
    """sale_total - down_payment, clamped at >= 0."""
    return clamp_non_negative(round2(_d(sale_total) - _d(down_payment)))


def installment(financed, annual_rate_percent, term_months: int) -> Decimal:
    """
    Level monthly payment (annuity):
        i = (annual_rate_percent / 100) / 12
        C = P * i * (1+i)^n / ((1+i)^n - 1)
    With i == 0 the principal is split evenly. term_months <= 0 -> 0.00.
    """
    if term_months <= 0:
        return ZERO
    principal = _d(financed)
    i = _d(annual_rate_percent) / Decimal(100) / Decimal(12)
    if i == 0:
        return round2(principal / term_months)
    factor = (1 + i) ** term_months
    return round2(principal * (i * factor) / (factor - 1))


def total_interest(financed, annual_rate_percent, term_months: int) -> Decimal:
    """installment * term - financed, never negative."""
    c = installment(financed, annual_rate_percent, term_months)
    return clamp_non_negative(round2(c * term_months - _d(financed)))


def payment_plan(financed, annual_rate_percent, term_months: int) -> list[Decimal]:
    """Preview of the level payments, without dates or persistence."""
    c = installment(financed, annual_rate_percent, term_months)
    return [c] * max(term_months, 0)

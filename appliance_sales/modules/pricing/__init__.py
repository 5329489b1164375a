from .calculations import (
    round2,
    subtotal,
    tax,
    total,
    line_amounts,
    installment,
    total_interest,
    financed_amount,
    payment_plan,
)

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

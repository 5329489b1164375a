from __future__ import annotations
from typing import Optional

from ..constants import (
    CREDIT_ACTIVE,
    CREDIT_CANCELED,
    CREDIT_PAID,
    SALE_CANCELED,
    SALE_PAID,
    SALE_REGISTERED,
)
from ..errors import IllegalStateTransition

# ---------- Canonical sets ----------
SALE_STATES: tuple[str, ...] = (SALE_REGISTERED, SALE_PAID, SALE_CANCELED)
CREDIT_STATES: tuple[str, ...] = (CREDIT_ACTIVE, CREDIT_PAID, CREDIT_CANCELED)

# ---------- Legal transitions (one-way; terminal states map to nothing) ----------
SALE_TRANSITIONS: dict[str, frozenset[str]] = {
    SALE_REGISTERED: frozenset({SALE_PAID, SALE_CANCELED}),
    SALE_PAID: frozenset(),
    SALE_CANCELED: frozenset(),
}

CREDIT_TRANSITIONS: dict[str, frozenset[str]] = {
    CREDIT_ACTIVE: frozenset({CREDIT_PAID, CREDIT_CANCELED}),
    CREDIT_PAID: frozenset(),
    CREDIT_CANCELED: frozenset(),
}

# ---------- Human labels ----------
LABELS = {
    SALE_REGISTERED: "Registered",
    SALE_PAID: "Paid",
    SALE_CANCELED: "Canceled",
    CREDIT_ACTIVE: "Active",
}


def normalize(state: Optional[str]) -> Optional[str]:
    """Uppercase & strip; return None if empty."""
    if state is None:
        return None
    s = str(state).strip().upper()
    return s or None


def can_transition(table: dict[str, frozenset[str]], current: str, target: str) -> bool:
    return normalize(target) in table.get(normalize(current) or "", frozenset())


def ensure_sale_transition(current: str, target: str) -> str:
    """Return the normalized target, or raise IllegalStateTransition."""
    if not can_transition(SALE_TRANSITIONS, current, target):
        raise IllegalStateTransition("Sale", current, target)
    return normalize(target)  # type: ignore[return-value]


def ensure_credit_transition(current: str, target: str) -> str:
    if not can_transition(CREDIT_TRANSITIONS, current, target):
        raise IllegalStateTransition("Credit", current, target)
    return normalize(target)  # type: ignore[return-value]


def label(state: str) -> str:
    """Human label ('Paid'). If unknown, returns the original string title-cased."""
    s = normalize(state)
    if s in LABELS:
        return LABELS[s]  # type: ignore[index]
    return (state or "").strip().title()

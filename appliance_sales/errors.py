"""
Domain errors raised by the transaction core.

Services raise these; the public entry points (SaleOrchestrator,
CreditLifecycle) catch `DomainError` and turn it into a failed result,
so callers see business-rule failures as ordinary return values.
"""
from __future__ import annotations


class DomainError(Exception):
    """Domain-level error the caller can surface directly (toast/snackbar)."""


class ValidationError(DomainError):
    """Malformed or missing input. Always raised before any mutation."""


class InsufficientStockError(DomainError):
    def __init__(self, product_id: int, requested: int, available: int | None):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        if available is None:
            msg = f"Product {product_id} has no stock entry (requested {requested})."
        else:
            msg = (
                f"Insufficient stock for product {product_id}: "
                f"requested {requested}, available {available}."
            )
        super().__init__(msg)


class PersistenceError(DomainError):
    """A store call did not happen (no row, constraint violation)."""


class IllegalStateTransition(DomainError):
    def __init__(self, entity: str, current: str, target: str):
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(f"{entity} cannot move from {current} to {target}.")

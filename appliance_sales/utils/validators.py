# utils/validators.py
from decimal import Decimal, InvalidOperation

def non_empty(text) -> bool:
    """
    True if `text` is not None/empty after stripping whitespace.
    """
    return bool(text is not None and str(text).strip())

# ---- Numeric parsing & validators ----

def try_parse_decimal(x):
    """
    Best-effort parse to Decimal.

    Returns:
        (ok: bool, value: Decimal|None)
    """
    if x is None or isinstance(x, bool):
        return False, None
    try:
        d = Decimal(str(x))
    except (InvalidOperation, ValueError):
        return False, None
    if not d.is_finite():
        return False, None
    return True, d

def parse_decimal(x) -> Decimal:
    """
    Strict parse to Decimal; raises ValueError with a clear message on failure.
    """
    ok, val = try_parse_decimal(x)
    if not ok:
        raise ValueError(f"Could not parse '{x}' as a number.")
    return val  # type: ignore[return-value]

def is_non_negative_number(x) -> bool:
    """
    True iff x parses to a number and value >= 0.
    """
    ok, val = try_parse_decimal(x)
    return bool(ok and val is not None and val >= 0)

def is_positive_int(x) -> bool:
    """True iff x is an int (not bool) greater than zero."""
    return isinstance(x, int) and not isinstance(x, bool) and x > 0

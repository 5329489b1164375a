# appliance_sales/utils/helpers.py
from datetime import date, datetime
import logging
from typing import Union, Optional

from dateutil.relativedelta import relativedelta

NumberLike = Union[float, int, str]

_log = logging.getLogger(__name__)


def timestamp(dt: datetime) -> str:
    """'YYYY-MM-DD HH:MM:SS', the form stored in TIMESTAMP columns."""
    return dt.isoformat(sep=" ", timespec="seconds")


def add_months(anchor: date, months: int) -> date:
    """
    Calendar-month arithmetic: Jan 31 + 1 month -> Feb 28/29.
    Always offset from the anchor so a schedule never drifts after a short month.
    """
    return anchor + relativedelta(months=months)


def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """Accept ISO strings, dates or datetimes (as stored by sqlite) and return a date."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def fmt_money(
    v: NumberLike,
    places: int = 2,
    *,
    strict: bool = False,
    sentinel: Optional[str] = None,
) -> str:
    """
    Format a number as money with thousands separators and a fixed number of decimals.

    Behavior on parse failure:
      - By default returns str(v).
      - If `sentinel` is provided (e.g., "N/A"), returns that sentinel instead.
      - If `strict=True`, raises ValueError.
    """
    try:
        x = float(v)
    except Exception as e:
        _log.debug("fmt_money: failed to parse %r as float: %s", v, e)
        if strict:
            raise ValueError(f"Could not parse {v!r} as a number.") from e
        return str(sentinel) if sentinel is not None else str(v)
    return f"{x:,.{places}f}"

import os
from pathlib import Path

from .constants import (
    ALLOWED_TERMS,
    DATA_DIR,
    DB_FILE_NAME,
    DEFAULT_TAX_RATE,
)
from .utils.validators import parse_decimal

BASE_DIR = Path(__file__).resolve().parent
DATA_PATH = BASE_DIR / DATA_DIR
DB_PATH = Path(os.environ.get("APPLIANCE_SALES_DB", DATA_PATH / DB_FILE_NAME))

TAX_RATE = parse_decimal(os.environ.get("APPLIANCE_SALES_TAX_RATE", str(DEFAULT_TAX_RATE)))
LOG_LEVEL = os.environ.get("APPLIANCE_SALES_LOG_LEVEL", "INFO").upper()


def _parse_terms(raw: str | None) -> tuple[int, ...]:
    if not raw:
        return ALLOWED_TERMS
    return tuple(sorted({int(p) for p in raw.split(",") if p.strip()}))


# comma-separated month counts, e.g. "12,18,24"
CREDIT_TERMS = _parse_terms(os.environ.get("APPLIANCE_SALES_CREDIT_TERMS"))

# appliance_sales/constants.py
from decimal import Decimal

# ---------- Storage ----------
DATA_DIR = "data"
DB_FILE_NAME = "appliance_sales.db"
TABLE_SCHEMA_VERSION = "schema_version"
SCHEMA_VERSION = "1.0.0"

# ---------- Sale ----------
SALE_REGISTERED = "REGISTERED"
SALE_PAID = "PAID"
SALE_CANCELED = "CANCELED"

MODE_CASH = "CASH"
MODE_CREDIT = "CREDIT"

# ---------- Credit ----------
CREDIT_ACTIVE = "ACTIVE"
CREDIT_PAID = "PAID"
CREDIT_CANCELED = "CANCELED"

# ---------- Business defaults ----------
DEFAULT_TAX_RATE = Decimal("0.19")           # 19% VAT
DEFAULT_ANNUAL_RATE = Decimal("5")           # percent per year
ALLOWED_TERMS: tuple[int, ...] = (12, 18, 24)
DEFAULT_MIN_STOCK = 5
DEFAULT_MAX_STOCK = 100

# ---------- Audit actions ----------
AUDIT_CREATE_SALE = "CREATE_SALE"
AUDIT_CANCEL_SALE = "CANCEL_SALE"
AUDIT_CREATE_CREDIT = "CREATE_CREDIT"
AUDIT_PAY_INSTALLMENT = "PAY_INSTALLMENT"
AUDIT_CANCEL_CREDIT = "CANCEL_CREDIT"
AUDIT_PAY_SALE = "PAY_SALE"

SALE_CODE_PREFIX = "V"

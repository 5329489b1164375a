from pathlib import Path
import sqlite3
import sys

from ..utils.loggers import get_logger

SQL = r"""
PRAGMA foreign_keys = ON;

/* ======================== CORE TABLES ======================== */

/* -------- users (sellers / actors) -------- */
CREATE TABLE IF NOT EXISTS users (
    user_id    INTEGER PRIMARY KEY AUTOINCREMENT,
    username   TEXT UNIQUE NOT NULL,
    full_name  TEXT NOT NULL,
    role       TEXT NOT NULL DEFAULT 'SELLER' CHECK (role IN ('ADMIN','SELLER','MANAGER')),
    is_active  INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1))
);

/* -------- customers -------- */
CREATE TABLE IF NOT EXISTS customers (
    customer_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    name            TEXT NOT NULL,
    document        TEXT UNIQUE,
    contact_info    TEXT,
    pending_balance NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(pending_balance AS REAL) >= 0),
    is_active       INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1))
);

/* -------- products (catalog only; stock lives in stock_ledger) -------- */
CREATE TABLE IF NOT EXISTS products (
    product_id  INTEGER PRIMARY KEY AUTOINCREMENT,
    code        TEXT UNIQUE NOT NULL,
    name        TEXT NOT NULL,
    sell_price  NUMERIC NOT NULL CHECK (CAST(sell_price AS REAL) >= 0),
    buy_price   NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(buy_price AS REAL) >= 0),
    is_active   INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1))
);

/* -------- stock ledger: one row per product -------- */
CREATE TABLE IF NOT EXISTS stock_ledger (
    product_id   INTEGER PRIMARY KEY,
    quantity     INTEGER NOT NULL DEFAULT 0 CHECK (quantity >= 0),
    min_stock    INTEGER NOT NULL DEFAULT 5 CHECK (min_stock >= 0),
    max_stock    INTEGER NOT NULL DEFAULT 100 CHECK (max_stock >= 0),
    updated_at   TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (product_id) REFERENCES products(product_id) ON DELETE CASCADE
);

/* -------- sales -------- */
CREATE TABLE IF NOT EXISTS sales (
    sale_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    code          TEXT UNIQUE NOT NULL,
    customer_id   INTEGER NOT NULL,
    seller_id     INTEGER NOT NULL,
    date          TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    mode          TEXT NOT NULL CHECK (mode IN ('CASH','CREDIT')),
    subtotal      NUMERIC NOT NULL CHECK (CAST(subtotal AS REAL) >= 0),
    tax           NUMERIC NOT NULL CHECK (CAST(tax AS REAL) >= 0),
    total         NUMERIC NOT NULL CHECK (CAST(total AS REAL) >= 0),
    down_payment  NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(down_payment AS REAL) >= 0),
    term_months   INTEGER NOT NULL DEFAULT 0 CHECK (term_months >= 0),
    status        TEXT NOT NULL DEFAULT 'REGISTERED'
                  CHECK (status IN ('REGISTERED','PAID','CANCELED')),
    FOREIGN KEY (customer_id) REFERENCES customers(customer_id),
    FOREIGN KEY (seller_id)   REFERENCES users(user_id)
);
CREATE INDEX IF NOT EXISTS idx_sales_customer ON sales(customer_id);

CREATE TABLE IF NOT EXISTS sale_lines (
    line_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    sale_id     INTEGER NOT NULL,
    product_id  INTEGER NOT NULL,
    quantity    INTEGER NOT NULL CHECK (quantity > 0),
    unit_price  NUMERIC NOT NULL CHECK (CAST(unit_price AS REAL) >= 0),
    subtotal    NUMERIC NOT NULL,
    tax         NUMERIC NOT NULL,
    total       NUMERIC NOT NULL,
    FOREIGN KEY (sale_id)    REFERENCES sales(sale_id) ON DELETE CASCADE,
    FOREIGN KEY (product_id) REFERENCES products(product_id)
);
CREATE INDEX IF NOT EXISTS idx_sale_lines_sale ON sale_lines(sale_id);

/* -------- credits & installments -------- */
CREATE TABLE IF NOT EXISTS credits (
    credit_id           INTEGER PRIMARY KEY AUTOINCREMENT,
    sale_id             INTEGER UNIQUE NOT NULL,
    customer_id         INTEGER NOT NULL,
    financed_amount     NUMERIC NOT NULL CHECK (CAST(financed_amount AS REAL) >= 0),
    annual_rate         NUMERIC NOT NULL CHECK (CAST(annual_rate AS REAL) >= 0),
    term_months         INTEGER NOT NULL CHECK (term_months > 0),
    down_payment        NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(down_payment AS REAL) >= 0),
    installment_amount  NUMERIC NOT NULL,
    balance             NUMERIC NOT NULL CHECK (CAST(balance AS REAL) >= 0),
    status              TEXT NOT NULL DEFAULT 'ACTIVE'
                        CHECK (status IN ('ACTIVE','PAID','CANCELED')),
    created_at          TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (sale_id)     REFERENCES sales(sale_id),
    FOREIGN KEY (customer_id) REFERENCES customers(customer_id)
);
CREATE INDEX IF NOT EXISTS idx_credits_customer ON credits(customer_id);

CREATE TABLE IF NOT EXISTS installments (
    installment_id  INTEGER PRIMARY KEY AUTOINCREMENT,
    credit_id       INTEGER NOT NULL,
    number          INTEGER NOT NULL CHECK (number > 0),
    amount          NUMERIC NOT NULL CHECK (CAST(amount AS REAL) >= 0),
    due_date        DATE NOT NULL,
    paid_date       TIMESTAMP,
    is_paid         INTEGER NOT NULL DEFAULT 0 CHECK (is_paid IN (0,1)),
    UNIQUE (credit_id, number),
    FOREIGN KEY (credit_id) REFERENCES credits(credit_id) ON DELETE CASCADE
);

/* -------- audit trail -------- */
CREATE TABLE IF NOT EXISTS audit_log (
    audit_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    actor_id     INTEGER,
    action       TEXT NOT NULL,
    subject      TEXT NOT NULL,
    description  TEXT,
    created_at   TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
);

/* ======================== GUARDS ======================== */

/* sales: REGISTERED -> PAID | CANCELED only; PAID/CANCELED are terminal */
DROP TRIGGER IF EXISTS trg_sales_status_transition;
CREATE TRIGGER trg_sales_status_transition
BEFORE UPDATE OF status ON sales
FOR EACH ROW
WHEN NEW.status <> OLD.status AND OLD.status <> 'REGISTERED'
BEGIN
  SELECT RAISE(ABORT, 'Illegal sale status transition');
END;

/* credits: ACTIVE -> PAID | CANCELED only */
DROP TRIGGER IF EXISTS trg_credits_status_transition;
CREATE TRIGGER trg_credits_status_transition
BEFORE UPDATE OF status ON credits
FOR EACH ROW
WHEN NEW.status <> OLD.status AND OLD.status <> 'ACTIVE'
BEGIN
  SELECT RAISE(ABORT, 'Illegal credit status transition');
END;

/* installments are never un-paid */
DROP TRIGGER IF EXISTS trg_installments_no_unpay;
CREATE TRIGGER trg_installments_no_unpay
BEFORE UPDATE OF is_paid ON installments
FOR EACH ROW
WHEN OLD.is_paid = 1 AND NEW.is_paid = 0
BEGIN
  SELECT RAISE(ABORT, 'Paid installments cannot be reverted');
END;

/* credit only for CREDIT-mode sales */
DROP TRIGGER IF EXISTS trg_credits_require_credit_sale;
CREATE TRIGGER trg_credits_require_credit_sale
BEFORE INSERT ON credits
FOR EACH ROW
WHEN (SELECT mode FROM sales WHERE sale_id = NEW.sale_id) IS NOT 'CREDIT'
BEGIN
  SELECT RAISE(ABORT, 'Credit requires a CREDIT-mode sale');
END;

/* ======================== VIEWS ======================== */

DROP VIEW IF EXISTS v_stock_status;
CREATE VIEW v_stock_status AS
SELECT
    s.product_id,
    p.code,
    p.name,
    s.quantity,
    s.min_stock,
    s.max_stock,
    CASE WHEN s.quantity <= s.min_stock THEN 1 ELSE 0 END AS needs_replenishment,
    CASE WHEN s.quantity >  s.max_stock THEN 1 ELSE 0 END AS is_overstocked
FROM stock_ledger s
JOIN products p ON p.product_id = s.product_id;
"""


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply the (idempotent) schema on an open connection, e.g. an in-memory test DB."""
    conn.executescript(SQL)


def init_schema(db_path: Path | str = "appliance_sales.db") -> None:
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("PRAGMA journal_mode=WAL;")
        apply_schema(conn)
        conn.commit()
    finally:
        conn.close()


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else Path(__file__).resolve().parents[1] / "data" / "appliance_sales.db"
    init_schema(target)
    get_logger(__name__).info("schema applied to %s", target)

# appliance_sales/database/repositories/__init__.py
"""
Repository layer public API (the collaborator stores of the transaction core).

Usage:
    from appliance_sales.database.repositories import (
        ProductsRepo, Product,
        StockRepo, StockEntry,
        CustomersRepo, Customer,
        UsersRepo, User,
        SalesRepo, SaleHeader, SaleLine,
        CreditsRepo, Credit, InstallmentsRepo, Installment,
        AuditRepo, AuditEntry,
    )

None of these commit; wrap writes in `appliance_sales.database.unit_of_work`.
"""

# ---------------- Audit --------------------
from .audit_repo import AuditRepo, AuditEntry

# -------------- Credits --------------------
from .credits_repo import CreditsRepo, Credit, InstallmentsRepo, Installment

# ---------------- Customers ----------------
from .customers_repo import CustomersRepo, Customer

# ---------------- Products -----------------
from .products_repo import ProductsRepo, Product

# ------------------ Sales ------------------
from .sales_repo import SalesRepo, SaleHeader, SaleLine

# ---------------- Stock --------------------
from .stock_repo import StockRepo, StockEntry

# ---------------- Users --------------------
from .users_repo import UsersRepo, User

__all__ = [
    "AuditRepo",
    "AuditEntry",
    "CreditsRepo",
    "Credit",
    "InstallmentsRepo",
    "Installment",
    "CustomersRepo",
    "Customer",
    "ProductsRepo",
    "Product",
    "SalesRepo",
    "SaleHeader",
    "SaleLine",
    "StockRepo",
    "StockEntry",
    "UsersRepo",
    "User",
]

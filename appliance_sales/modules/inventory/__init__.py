from .ledger import StockLedger

__all__ = ["StockLedger"]

from .orchestrator import SaleLineRequest, SaleOrchestrator

__all__ = ["SaleLineRequest", "SaleOrchestrator"]

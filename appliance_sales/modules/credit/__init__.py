from .lifecycle import CreditLifecycle, DelinquencySummary, validate_credit_terms

__all__ = ["CreditLifecycle", "DelinquencySummary", "validate_credit_terms"]

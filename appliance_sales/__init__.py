"""Transaction core for appliance retail: cash and installment-credit sales."""

__version__ = "1.0.0"

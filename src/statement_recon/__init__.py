"""Bank statement reconciliation against payable installments."""

__version__ = "0.1.0"

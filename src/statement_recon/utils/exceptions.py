"""Custom exceptions for the reconciliation application."""

from typing import Optional


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""

    pass


class StatementParseError(ReconciliationError):
    """Error reading a bank statement file."""

    pass


class CandidateLookupError(ReconciliationError):
    """The installment pool or settlement history could not be loaded."""

    pass


class ConflictError(ReconciliationError):
    """Commit attempted while installments are claimed by several items."""

    def __init__(self, conflicts: dict[str, list[int]], message: Optional[str] = None):
        self.conflicts = conflicts
        if message is None:
            ids = ", ".join(sorted(conflicts))
            message = f"Installments claimed by more than one item: {ids}"
        super().__init__(message)


class SelectionError(ReconciliationError):
    """Invalid selection change on a reconciliation item."""

    pass


class SettlementError(ReconciliationError):
    """Error writing a settlement to the installment store."""

    pass


class ConfigurationError(ReconciliationError):
    """Error in configuration."""

    pass


class ReportGenerationError(ReconciliationError):
    """Error generating Excel report."""

    pass

"""Utility modules."""

from .exceptions import (
    ReconciliationError,
    StatementParseError,
    CandidateLookupError,
    ConflictError,
    SelectionError,
    SettlementError,
    ConfigurationError,
    ReportGenerationError,
)
from .logging_config import setup_logging

__all__ = [
    "ReconciliationError",
    "StatementParseError",
    "CandidateLookupError",
    "ConflictError",
    "SelectionError",
    "SettlementError",
    "ConfigurationError",
    "ReportGenerationError",
    "setup_logging",
]

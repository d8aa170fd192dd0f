"""Data models for reconciliation."""

from .transaction import (
    UNIDENTIFIED_COUNTERPARTY,
    Direction,
    Transaction,
    Installment,
    Settlement,
    PaymentMethod,
    MatchCandidate,
    ReconciliationItem,
    BatchProgress,
    BatchResult,
    CommitOutcome,
    ItemCommitResult,
    CommitResult,
    ReconciliationSummary,
)

__all__ = [
    "UNIDENTIFIED_COUNTERPARTY",
    "Direction",
    "Transaction",
    "Installment",
    "Settlement",
    "PaymentMethod",
    "MatchCandidate",
    "ReconciliationItem",
    "BatchProgress",
    "BatchResult",
    "CommitOutcome",
    "ItemCommitResult",
    "CommitResult",
    "ReconciliationSummary",
]

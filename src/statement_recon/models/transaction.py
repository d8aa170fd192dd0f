"""Data models for statement reconciliation."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

UNIDENTIFIED_COUNTERPARTY = "unidentified"


class Direction(Enum):
    """Direction of a statement line from the account holder's perspective."""

    INBOUND = "inbound"  # Money in
    OUTBOUND = "outbound"  # Money out (payments)


@dataclass(frozen=True)
class Transaction:
    """
    One normalized bank-statement line.

    The date is kept as text: recognized formats are rewritten to ISO
    ``YYYY-MM-DD`` while anything else is passed through untouched, so the
    scorer can reject it later without losing the original value.
    """

    date: str
    description: str
    amount_minor: int
    direction: Direction = Direction.OUTBOUND
    payment_method_tag: Optional[str] = None
    external_id: Optional[str] = None

    # Source position and raw values for the audit trail
    row_number: Optional[int] = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def calendar_date(self) -> Optional[date]:
        """Return the posting date, or None if it is not a valid ISO date."""
        try:
            return datetime.strptime(self.date, "%Y-%m-%d").date()
        except (TypeError, ValueError):
            return None


@dataclass
class Installment:
    """A payable installment, the target of a match."""

    id: str
    account_id: str
    amount_minor: int
    due_date: date
    description: str = ""
    counterparty_id: Optional[str] = None
    counterparty_name: str = UNIDENTIFIED_COUNTERPARTY
    installment_index: int = 1
    installment_count: int = 1

    # Settlement state, written only through the store
    settled: bool = False
    settled_at: Optional[date] = None
    settled_amount_minor: Optional[int] = None
    payment_method: Optional[str] = None
    bank_account: Optional[str] = None
    settlement_note: Optional[str] = None

    @property
    def has_counterparty(self) -> bool:
        """True when a display name was resolved for the counterparty."""
        return bool(self.counterparty_name) and self.counterparty_name != UNIDENTIFIED_COUNTERPARTY


@dataclass(frozen=True)
class Settlement:
    """Settlement fields written to an installment."""

    settled_at: date
    amount_minor: int
    payment_method: Optional[str]
    bank_account: Optional[str]
    note: str


@dataclass(frozen=True)
class PaymentMethod:
    """A payment method known to the store."""

    id: str
    name: str


@dataclass(frozen=True)
class MatchCandidate:
    """A scored installment proposal for one transaction."""

    installment_id: str
    score: float
    amount_diff_minor: int
    date_diff_days: int
    was_already_settled: bool

    # Display copies taken at scoring time
    counterparty_name: str = UNIDENTIFIED_COUNTERPARTY
    amount_minor: int = 0
    due_date: Optional[date] = None


@dataclass
class ReconciliationItem:
    """Working record for one transaction during a batch."""

    transaction: Transaction
    candidates: list[MatchCandidate] = field(default_factory=list)
    selected_installment_id: Optional[str] = None
    confirmed: bool = False
    override_settlement: bool = False
    duplicate_identifier: bool = False
    conflicted: bool = False

    def candidate(self, installment_id: str) -> Optional[MatchCandidate]:
        """Return the candidate for an installment id, if proposed."""
        return next(
            (c for c in self.candidates if c.installment_id == installment_id), None
        )

    @property
    def selected_candidate(self) -> Optional[MatchCandidate]:
        if self.selected_installment_id is None:
            return None
        return self.candidate(self.selected_installment_id)

    @property
    def is_commit_eligible(self) -> bool:
        """Confirmed, selected and not a re-imported statement line."""
        return (
            self.confirmed
            and self.selected_installment_id is not None
            and not self.duplicate_identifier
        )


@dataclass(frozen=True)
class BatchProgress:
    """Progress event emitted between chunks."""

    processed: int
    total: int

    @property
    def fraction(self) -> float:
        if self.total == 0:
            return 1.0
        return self.processed / self.total


@dataclass
class BatchResult:
    """Outcome of an orchestration run."""

    items: list[ReconciliationItem]
    total: int
    cancelled: bool = False

    @property
    def processed(self) -> int:
        return len(self.items)


class CommitOutcome(Enum):
    """Per-item commit classification."""

    INSERTED = "inserted"
    OVERRIDDEN = "overridden"
    ERROR = "error"


@dataclass(frozen=True)
class ItemCommitResult:
    """Commit outcome for one reconciliation item."""

    installment_id: str
    outcome: CommitOutcome
    message: Optional[str] = None
    row_number: Optional[int] = None


@dataclass
class CommitResult:
    """Aggregated commit outcomes for a batch."""

    outcomes: list[ItemCommitResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def inserted(self) -> int:
        return sum(1 for o in self.outcomes if o.outcome == CommitOutcome.INSERTED)

    @property
    def overridden(self) -> int:
        return sum(1 for o in self.outcomes if o.outcome == CommitOutcome.OVERRIDDEN)

    @property
    def errored(self) -> int:
        return sum(1 for o in self.outcomes if o.outcome == CommitOutcome.ERROR)


@dataclass
class ReconciliationSummary:
    """Summary of a reconciliation batch."""

    statement_filename: str
    reconciliation_date: datetime

    total_transactions: int
    processed_count: int
    with_candidates_count: int
    auto_selected_count: int
    confirmed_count: int
    duplicate_count: int
    unmatched_count: int
    conflict_count: int

    total_outbound_minor: int
    confirmed_amount_minor: int

    cancelled: bool = False
    processing_time_seconds: float = 0.0
    config_file_used: Optional[str] = None

    @property
    def match_rate(self) -> float:
        """Percentage of processed transactions with at least one candidate."""
        if self.processed_count == 0:
            return 0.0
        return (self.with_candidates_count / self.processed_count) * 100

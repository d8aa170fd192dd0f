"""
Match scoring for statement transactions.
Hard tolerance filter plus a weighted value/date/name composite score.
"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable
import logging
import re
import unicodedata

from ..models.transaction import Installment, MatchCandidate, Transaction

logger = logging.getLogger(__name__)

# Composite weights when a counterparty name can be compared
VALUE_WEIGHT = 0.4
DATE_WEIGHT = 0.2
NAME_WEIGHT = 0.4

# Composite weights without name information
VALUE_ONLY_WEIGHT = 0.85
DATE_ONLY_WEIGHT = 0.15

SCORE_PRECISION = 6


def value_tolerance_minor(a: int, b: int, tolerance_percent: float) -> int:
    """Allowed absolute difference, relative to the larger of the two amounts."""
    tolerance = Decimal(max(a, b)) * Decimal(str(tolerance_percent)) / Decimal(100)
    return int(tolerance.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def passes_value_filter(a: int, b: int, tolerance_percent: float) -> bool:
    return abs(a - b) <= value_tolerance_minor(a, b, tolerance_percent)


def days_between(first: date, second: date) -> int:
    return abs((first - second).days)


def value_score(a: int, b: int, tolerance_percent: float) -> float:
    """1.0 for equal amounts, falling linearly to 0 at the tolerance."""
    larger = max(a, b)
    if larger <= 0:
        return 0.0
    diff_percent = abs(a - b) / larger * 100
    return max(0.0, 1 - diff_percent / max(tolerance_percent, 1))


def date_score(date_diff_days: int, tolerance_days: int) -> float:
    return max(0.0, 1 - date_diff_days / max(tolerance_days, 1))


def normalize_text(text: str) -> str:
    """Lowercase, strip diacritics and collapse everything else to single spaces."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return " ".join(re.sub(r"[^a-z0-9]+", " ", stripped).split())


def name_score(description: str, counterparty_name: str) -> float:
    """
    Similarity between a statement description and a counterparty name.

    Containment in either direction scores 1.0; otherwise the better of the
    two token-overlap fractions is used.
    """
    desc = normalize_text(description)
    name = normalize_text(counterparty_name)
    if not desc or not name:
        return 0.0

    compact_name = name.replace(" ", "")
    if name in desc or compact_name in desc or desc in name:
        return 1.0

    desc_tokens = desc.split()
    name_tokens = name.split()

    significant_name = [t for t in name_tokens if len(t) > 2]
    name_overlap = 0.0
    if significant_name:
        desc_set = set(desc_tokens)
        name_overlap = sum(1 for t in significant_name if t in desc_set) / len(
            significant_name
        )

    significant_desc = [t for t in desc_tokens if len(t) > 3]
    desc_overlap = 0.0
    if significant_desc:
        name_set = set(name_tokens)
        desc_overlap = sum(1 for t in significant_desc if t in name_set) / len(
            significant_desc
        )

    return max(name_overlap, desc_overlap)


def composite_score(
    value: float, date_component: float, name: float, name_available: bool
) -> float:
    """Weighted score in [0, 1]."""
    if name_available:
        score = value * VALUE_WEIGHT + date_component * DATE_WEIGHT + name * NAME_WEIGHT
    else:
        score = value * VALUE_ONLY_WEIGHT + date_component * DATE_ONLY_WEIGHT
    return round(min(1.0, max(0.0, score)), SCORE_PRECISION)


class MatchScorer:
    """
    Scores installments against one transaction.

    Candidates outside the value or date tolerance are dropped; the rest are
    ranked by score, then date proximity, then amount proximity.
    """

    def __init__(self, tolerance_days: int = 10, tolerance_percent: float = 1.0):
        """
        Initialize with tolerances.

        Args:
            tolerance_days: Maximum days between posting date and due date
            tolerance_percent: Maximum amount difference, percent of the larger amount
        """
        if tolerance_days < 0:
            raise ValueError("tolerance_days must be >= 0")
        if tolerance_percent < 0:
            raise ValueError("tolerance_percent must be >= 0")
        self.tolerance_days = tolerance_days
        self.tolerance_percent = tolerance_percent

    def score(
        self, transaction: Transaction, installments: Iterable[Installment]
    ) -> list[MatchCandidate]:
        """Return filtered candidates, best first."""
        posted_on = transaction.calendar_date()
        if posted_on is None:
            logger.warning(
                f"Row {transaction.row_number}: invalid statement date "
                f"{transaction.date!r}, no candidates"
            )
            return []

        description_available = bool(normalize_text(transaction.description))
        candidates: list[MatchCandidate] = []

        for installment in installments:
            if not passes_value_filter(
                installment.amount_minor, transaction.amount_minor, self.tolerance_percent
            ):
                continue

            date_diff = days_between(posted_on, installment.due_date)
            if date_diff > self.tolerance_days:
                continue

            name_available = (
                description_available
                and installment.has_counterparty
                and bool(normalize_text(installment.counterparty_name))
            )
            name = (
                name_score(transaction.description, installment.counterparty_name)
                if name_available
                else 0.0
            )
            score = composite_score(
                value_score(
                    installment.amount_minor,
                    transaction.amount_minor,
                    self.tolerance_percent,
                ),
                date_score(date_diff, self.tolerance_days),
                name,
                name_available,
            )

            candidates.append(
                MatchCandidate(
                    installment_id=installment.id,
                    score=score,
                    amount_diff_minor=abs(installment.amount_minor - transaction.amount_minor),
                    date_diff_days=date_diff,
                    was_already_settled=installment.settled,
                    counterparty_name=installment.counterparty_name,
                    amount_minor=installment.amount_minor,
                    due_date=installment.due_date,
                )
            )

        # sorted() is stable, so equal keys keep index order
        return sorted(
            candidates,
            key=lambda c: (-c.score, c.date_diff_days, c.amount_diff_minor),
        )

"""Matching engine, scoring and selection arbitration."""

from .arbiter import SelectionArbiter, detect_conflicts, refresh_conflicts
from .candidates import CandidateIndex, build_candidate_index
from .dedup import DedupGuard, statement_marker
from .engine import CancellationToken, ReconciliationEngine
from .scoring import (
    MatchScorer,
    composite_score,
    date_score,
    days_between,
    name_score,
    normalize_text,
    passes_value_filter,
    value_score,
    value_tolerance_minor,
)

__all__ = [
    "SelectionArbiter",
    "detect_conflicts",
    "refresh_conflicts",
    "CandidateIndex",
    "build_candidate_index",
    "DedupGuard",
    "statement_marker",
    "CancellationToken",
    "ReconciliationEngine",
    "MatchScorer",
    "composite_score",
    "date_score",
    "days_between",
    "name_score",
    "normalize_text",
    "passes_value_filter",
    "value_score",
    "value_tolerance_minor",
]

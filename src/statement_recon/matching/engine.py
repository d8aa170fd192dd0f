"""
Batch orchestration for statement reconciliation.
Scores transactions in chunks, reporting progress and honoring cancellation
between chunks.
"""

from datetime import datetime
from typing import Callable, Optional, Sequence
import asyncio
import logging
import threading

from ..config import ReconConfig
from ..models.transaction import (
    BatchProgress,
    BatchResult,
    ReconciliationItem,
    ReconciliationSummary,
    Transaction,
)
from ..store.base import InstallmentStore
from .arbiter import detect_conflicts, refresh_conflicts
from .candidates import CandidateIndex, build_candidate_index
from .dedup import DedupGuard
from .scoring import MatchScorer

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[BatchProgress], None]


class CancellationToken:
    """Cooperative cancellation flag, safe to set from another thread."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class ReconciliationEngine:
    """
    Orchestrates dedup checks and scoring across a statement batch.

    Transactions are processed in fixed-size chunks. Members of a chunk run
    concurrently and only read the candidate index; chunks run one after the
    other, and progress and cancellation are handled only at chunk boundaries.
    Nothing is committed here.
    """

    def __init__(self, config: ReconConfig):
        """
        Initialize the reconciliation engine.

        Args:
            config: Application configuration
        """
        self.config = config
        matching = config.matching
        self.scorer = MatchScorer(
            tolerance_days=matching.tolerance_days,
            tolerance_percent=matching.tolerance_percent,
        )
        self.chunk_size = matching.chunk_size

    def prepare(self, store: InstallmentStore) -> CandidateIndex:
        """Build the candidate index; lookup failures abort before any scoring."""
        return build_candidate_index(store)

    async def run(
        self,
        transactions: Sequence[Transaction],
        index: CandidateIndex,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> BatchResult:
        """
        Score every transaction against the candidate index.

        Args:
            transactions: Normalized outbound transactions
            index: Candidate index built for this batch
            on_progress: Called after each chunk with the processed count
            cancel_token: Checked before each chunk starts

        Returns:
            Batch result with one item per processed transaction
        """
        total = len(transactions)
        guard = DedupGuard.from_index(index)
        items: list[ReconciliationItem] = []

        logger.info(
            f"Starting reconciliation: {total} transactions, {len(index)} installments, "
            f"chunk size {self.chunk_size}"
        )

        for start in range(0, total, self.chunk_size):
            if cancel_token is not None and cancel_token.cancelled:
                logger.info(f"Reconciliation cancelled after {len(items)} of {total}")
                refresh_conflicts(items)
                return BatchResult(items=items, total=total, cancelled=True)

            chunk = transactions[start : start + self.chunk_size]
            results = await asyncio.gather(
                *(self._process(txn, index, guard) for txn in chunk)
            )
            items.extend(results)

            logger.debug(f"Processed {len(items)}/{total} transactions")
            if on_progress is not None:
                on_progress(BatchProgress(processed=len(items), total=total))

            # Let the caller observe progress before the next chunk
            await asyncio.sleep(0)

        refresh_conflicts(items)
        return BatchResult(items=items, total=total)

    def reconcile(
        self,
        transactions: Sequence[Transaction],
        index: CandidateIndex,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> BatchResult:
        """Synchronous entry point around :meth:`run`."""
        return asyncio.run(self.run(transactions, index, on_progress, cancel_token))

    async def _process(
        self, transaction: Transaction, index: CandidateIndex, guard: DedupGuard
    ) -> ReconciliationItem:
        if guard.is_duplicate(transaction):
            return ReconciliationItem(transaction=transaction, duplicate_identifier=True)

        item = ReconciliationItem(
            transaction=transaction,
            candidates=self.scorer.score(transaction, index),
        )
        self.apply_auto_selection(item)
        return item

    def apply_auto_selection(self, item: ReconciliationItem) -> None:
        """
        Pre-select a lone open candidate above the selection threshold.

        The item is pre-confirmed only above the confirmation threshold; in
        every other case it is left for a human decision.
        """
        if item.duplicate_identifier:
            return

        matching = self.config.matching
        open_candidates = [c for c in item.candidates if not c.was_already_settled]
        if len(open_candidates) != 1:
            return

        candidate = open_candidates[0]
        if candidate.score >= matching.auto_select_threshold:
            item.selected_installment_id = candidate.installment_id
            item.confirmed = candidate.score >= matching.auto_confirm_threshold

    def generate_summary(
        self,
        result: BatchResult,
        statement_filename: str,
        processing_time: float,
    ) -> ReconciliationSummary:
        """
        Generate a summary of the batch.

        Args:
            result: Orchestration result
            statement_filename: Name of the statement file
            processing_time: Time taken in seconds

        Returns:
            Reconciliation summary object
        """
        items = result.items
        duplicates = [i for i in items if i.duplicate_identifier]
        confirmed = [i for i in items if i.is_commit_eligible]

        return ReconciliationSummary(
            statement_filename=statement_filename,
            reconciliation_date=datetime.now(),
            total_transactions=result.total,
            processed_count=result.processed,
            with_candidates_count=sum(1 for i in items if i.candidates),
            auto_selected_count=sum(
                1 for i in items if i.selected_installment_id is not None
            ),
            confirmed_count=len(confirmed),
            duplicate_count=len(duplicates),
            unmatched_count=sum(
                1 for i in items if not i.candidates and not i.duplicate_identifier
            ),
            conflict_count=len(detect_conflicts(items)),
            total_outbound_minor=sum(i.transaction.amount_minor for i in items),
            confirmed_amount_minor=sum(i.transaction.amount_minor for i in confirmed),
            cancelled=result.cancelled,
            processing_time_seconds=processing_time,
            config_file_used=self.config.config_file_path,
        )

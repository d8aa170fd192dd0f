"""
Settlement commit for confirmed reconciliation items.
Each item is written independently; failures are counted, never rolled back.
"""

from datetime import date
from typing import Callable, Optional, Sequence
import logging

from ..config import SettlementConfig
from ..matching.arbiter import detect_conflicts
from ..matching.dedup import statement_marker
from ..models.transaction import (
    CommitOutcome,
    CommitResult,
    ItemCommitResult,
    PaymentMethod,
    ReconciliationItem,
    Settlement,
    Transaction,
)
from ..store.base import InstallmentStore
from ..utils.exceptions import ConfigurationError, ConflictError, SettlementError

logger = logging.getLogger(__name__)


def resolve_payment_method(
    tag: Optional[str], payment_methods: Sequence[PaymentMethod]
) -> Optional[PaymentMethod]:
    """Match a free-text tag against known methods, by equality or containment."""
    if not tag or not tag.strip():
        return None
    wanted = tag.strip().lower()

    exact = next((m for m in payment_methods if m.name.strip().lower() == wanted), None)
    if exact is not None:
        return exact

    return next(
        (
            m
            for m in payment_methods
            if m.name.strip()
            and (wanted in m.name.strip().lower() or m.name.strip().lower() in wanted)
        ),
        None,
    )


def compose_settlement_note(transaction: Transaction, note_template: str) -> str:
    """Free-text note, prefixed with the statement marker when an id is present."""
    free_text = note_template.format(description=transaction.description).strip()
    external_id = (transaction.external_id or "").strip()
    if external_id:
        return f"{statement_marker(external_id)} {free_text}".strip()
    return free_text


class SettlementCommitter:
    """
    Writes confirmed matches to the installment store.

    Items are committed strictly one after another. An item that targets an
    already-settled installment with the override accepted has its previous
    settlement cleared first, as a separate write.
    """

    def __init__(
        self,
        store: InstallmentStore,
        settlement_config: SettlementConfig,
        today: Callable[[], date] = date.today,
    ):
        """
        Initialize the committer.

        Args:
            store: Installment store to write to
            settlement_config: Batch defaults and note template
            today: Clock used for the settlement date
        """
        self.store = store
        self.config = settlement_config
        self.today = today

    def commit(self, items: Sequence[ReconciliationItem]) -> CommitResult:
        """
        Commit every eligible item in the batch.

        Raises:
            ConflictError: If any installment is claimed by several confirmed items
            ConfigurationError: If batch defaults are missing
        """
        conflicts = detect_conflicts(items)
        if conflicts:
            logger.error(f"Commit blocked: {len(conflicts)} conflicting installment(s)")
            raise ConflictError(conflicts)

        if not self.config.default_payment_method or not self.config.default_bank_account:
            raise ConfigurationError(
                "A default payment method and bank account are required to commit"
            )

        eligible = [i for i in items if i.is_commit_eligible]
        logger.info(f"Committing {len(eligible)} of {len(items)} items")

        payment_methods = self.store.list_payment_methods()
        result = CommitResult()

        for item in eligible:
            outcome = self._commit_item(item, payment_methods)
            result.outcomes.append(outcome)
            if (
                outcome.outcome == CommitOutcome.ERROR
                and len(result.errors) < self.config.max_error_details
            ):
                result.errors.append(
                    f"Row {outcome.row_number or '?'} -> installment "
                    f"{outcome.installment_id}: {outcome.message}"
                )

        logger.info(
            f"Commit complete: {result.inserted} inserted, {result.overridden} overridden, "
            f"{result.errored} errors"
        )
        return result

    def effective_payment_method(
        self, transaction: Transaction, payment_methods: Sequence[PaymentMethod]
    ) -> str:
        """The transaction's own method when it resolves, else the batch default."""
        resolved = resolve_payment_method(transaction.payment_method_tag, payment_methods)
        if resolved is not None:
            return resolved.id
        return self.config.default_payment_method

    def _commit_item(
        self, item: ReconciliationItem, payment_methods: Sequence[PaymentMethod]
    ) -> ItemCommitResult:
        transaction = item.transaction
        installment_id = item.selected_installment_id
        row_number = transaction.row_number
        overridden = False

        try:
            current = self.store.get_installment(installment_id)

            # Another item of this batch may have consumed the same line already
            external_id = (transaction.external_id or "").strip()
            if external_id:
                consumed = self.store.find_settled_by_marker(statement_marker(external_id))
                if consumed:
                    raise SettlementError(
                        f"identifier {external_id!r} already settled installment "
                        f"{consumed[0].id}"
                    )

            if current.settled:
                if not item.override_settlement:
                    raise SettlementError("installment is already settled")
                try:
                    self.store.clear_settlement(installment_id)
                except Exception as e:
                    logger.warning(
                        f"Failed to clear settlement of installment {installment_id}: {e}"
                    )
                    return ItemCommitResult(
                        installment_id=installment_id,
                        outcome=CommitOutcome.ERROR,
                        message=f"failed to clear previous settlement: {e}",
                        row_number=row_number,
                    )
                overridden = True

            settlement = Settlement(
                settled_at=self.today(),
                amount_minor=transaction.amount_minor,
                payment_method=self.effective_payment_method(transaction, payment_methods),
                bank_account=self.config.default_bank_account,
                note=compose_settlement_note(transaction, self.config.note_template),
            )
            self.store.record_settlement(installment_id, settlement)
        except Exception as e:
            logger.warning(f"Failed to settle installment {installment_id}: {e}")
            return ItemCommitResult(
                installment_id=installment_id,
                outcome=CommitOutcome.ERROR,
                message=str(e),
                row_number=row_number,
            )

        outcome = CommitOutcome.OVERRIDDEN if overridden else CommitOutcome.INSERTED
        logger.debug(f"Installment {installment_id}: {outcome.value}")
        return ItemCommitResult(
            installment_id=installment_id,
            outcome=outcome,
            row_number=row_number,
        )

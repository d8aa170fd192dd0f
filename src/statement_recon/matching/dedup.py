"""Detection of statement lines already consumed by a prior settlement."""

from typing import Iterable, Optional
import logging

from ..models.transaction import Installment, Transaction

logger = logging.getLogger(__name__)

MARKER_TEMPLATE = "[STMT:{external_id}]"


def statement_marker(external_id: str) -> str:
    """Tag embedded in settlement notes to record the consumed statement line."""
    return MARKER_TEMPLATE.format(external_id=external_id)


class DedupGuard:
    """
    Checks external identifiers against settled installments.

    Only settled installments are consulted; an open installment whose note
    happens to carry a marker does not count as a prior settlement.
    """

    def __init__(self, settled_installments: Iterable[Installment]):
        self._notes = [
            i.settlement_note
            for i in settled_installments
            if i.settled and i.settlement_note
        ]

    @classmethod
    def from_index(cls, index: Iterable[Installment]) -> "DedupGuard":
        return cls(i for i in index if i.settled)

    def find_marker(self, external_id: Optional[str]) -> Optional[str]:
        """Return the note that already carries this identifier, if any."""
        if not external_id or not external_id.strip():
            return None
        marker = statement_marker(external_id.strip())
        return next((note for note in self._notes if marker in note), None)

    def is_duplicate(self, transaction: Transaction) -> bool:
        note = self.find_marker(transaction.external_id)
        if note is not None:
            logger.info(
                f"Row {transaction.row_number}: identifier {transaction.external_id!r} "
                f"already settled, skipping"
            )
            return True
        return False

"""Candidate index: the installment pool the scorer ranks against."""

from dataclasses import replace
from typing import Iterator, Optional
import logging

from ..models.transaction import Installment, UNIDENTIFIED_COUNTERPARTY
from ..store.base import InstallmentStore
from ..utils.exceptions import CandidateLookupError

logger = logging.getLogger(__name__)


class CandidateIndex:
    """Read-only, ordered view of the installment pool."""

    def __init__(self, installments: list[Installment]):
        self._installments = tuple(installments)
        self._by_id = {i.id: i for i in self._installments}

    def __len__(self) -> int:
        return len(self._installments)

    def __iter__(self) -> Iterator[Installment]:
        return iter(self._installments)

    @property
    def installments(self) -> tuple[Installment, ...]:
        return self._installments

    def get(self, installment_id: str) -> Optional[Installment]:
        return self._by_id.get(installment_id)

    def settled(self) -> list[Installment]:
        return [i for i in self._installments if i.settled]

    def open(self) -> list[Installment]:
        return [i for i in self._installments if not i.settled]


def build_candidate_index(store: InstallmentStore) -> CandidateIndex:
    """
    Load open and settled installments with resolved counterparty names.

    Raises:
        CandidateLookupError: If the store cannot be read
    """
    try:
        installments = store.load_installments()
        counterparty_ids = sorted(
            {i.counterparty_id for i in installments if i.counterparty_id}
        )
        names = store.load_counterparty_names(counterparty_ids)
    except CandidateLookupError:
        raise
    except Exception as e:
        logger.error(f"Failed to load installment pool: {e}")
        raise CandidateLookupError(f"Failed to load installment pool: {e}") from e

    resolved = [
        replace(
            i,
            counterparty_name=names.get(i.counterparty_id or "", UNIDENTIFIED_COUNTERPARTY),
        )
        for i in installments
    ]

    settled_count = sum(1 for i in resolved if i.settled)
    logger.info(
        f"Candidate index built: {len(resolved)} installments "
        f"({len(resolved) - settled_count} open, {settled_count} settled)"
    )
    return CandidateIndex(resolved)

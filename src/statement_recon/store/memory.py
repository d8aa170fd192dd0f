"""In-memory installment store."""

from dataclasses import replace
from typing import Iterable, Optional
import logging

from ..models.transaction import Installment, PaymentMethod, Settlement
from ..utils.exceptions import SettlementError
from .base import InstallmentStore

logger = logging.getLogger(__name__)


class InMemoryInstallmentStore(InstallmentStore):
    """
    Dictionary-backed store.

    Reads hand out copies so callers never hold a live reference to the
    stored installment; writes go through the settlement methods only.
    """

    def __init__(
        self,
        installments: Iterable[Installment] = (),
        counterparties: Optional[dict[str, str]] = None,
        payment_methods: Iterable[PaymentMethod] = (),
    ):
        self._installments: dict[str, Installment] = {}
        for installment in installments:
            if installment.id in self._installments:
                raise ValueError(f"Duplicate installment id: {installment.id}")
            self._installments[installment.id] = replace(installment)
        self._counterparties = dict(counterparties or {})
        self._payment_methods = list(payment_methods)

    def __len__(self) -> int:
        return len(self._installments)

    def load_installments(self) -> list[Installment]:
        return [replace(i) for i in self._installments.values()]

    def load_counterparty_names(self, counterparty_ids: Iterable[str]) -> dict[str, str]:
        return {
            cid: self._counterparties[cid]
            for cid in counterparty_ids
            if self._counterparties.get(cid)
        }

    def get_installment(self, installment_id: str) -> Installment:
        return replace(self._get(installment_id))

    def find_settled_by_marker(self, marker: str) -> list[Installment]:
        return [
            replace(i)
            for i in self._installments.values()
            if i.settled and i.settlement_note and marker in i.settlement_note
        ]

    def clear_settlement(self, installment_id: str) -> None:
        installment = self._get(installment_id)
        installment.settled = False
        installment.settled_at = None
        installment.settled_amount_minor = None
        installment.payment_method = None
        installment.bank_account = None
        installment.settlement_note = None
        logger.debug(f"Cleared settlement of installment {installment_id}")

    def record_settlement(self, installment_id: str, settlement: Settlement) -> None:
        installment = self._get(installment_id)
        installment.settled = True
        installment.settled_at = settlement.settled_at
        installment.settled_amount_minor = settlement.amount_minor
        installment.payment_method = settlement.payment_method
        installment.bank_account = settlement.bank_account
        installment.settlement_note = settlement.note
        logger.debug(f"Recorded settlement of installment {installment_id}")

    def list_payment_methods(self) -> list[PaymentMethod]:
        return list(self._payment_methods)

    def _get(self, installment_id: str) -> Installment:
        try:
            return self._installments[installment_id]
        except KeyError:
            raise SettlementError(f"Installment not found: {installment_id}") from None

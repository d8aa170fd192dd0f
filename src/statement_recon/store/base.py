"""
Installment store interface.
The engine reads the installment pool and writes settlements through it.
"""

from abc import ABC, abstractmethod
from typing import Iterable

from ..models.transaction import Installment, PaymentMethod, Settlement


class InstallmentStore(ABC):
    """Abstract base class for installment stores."""

    @abstractmethod
    def load_installments(self) -> list[Installment]:
        """
        Load every installment, open and settled.

        Returns:
            Snapshot copies; mutating them does not touch the store
        """
        pass

    @abstractmethod
    def load_counterparty_names(self, counterparty_ids: Iterable[str]) -> dict[str, str]:
        """
        Resolve counterparty display names.

        Args:
            counterparty_ids: Ids to resolve

        Returns:
            Mapping of id to display name; unresolvable ids are omitted
        """
        pass

    @abstractmethod
    def get_installment(self, installment_id: str) -> Installment:
        """Return a snapshot of one installment, raising SettlementError if absent."""
        pass

    @abstractmethod
    def find_settled_by_marker(self, marker: str) -> list[Installment]:
        """Return settled installments whose note contains the marker."""
        pass

    @abstractmethod
    def clear_settlement(self, installment_id: str) -> None:
        """Reset every settlement field of an installment."""
        pass

    @abstractmethod
    def record_settlement(self, installment_id: str, settlement: Settlement) -> None:
        """Mark an installment settled with the given fields."""
        pass

    @abstractmethod
    def list_payment_methods(self) -> list[PaymentMethod]:
        """Return the payment methods known to the store."""
        pass

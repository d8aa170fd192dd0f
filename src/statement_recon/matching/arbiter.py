"""
Conflict detection and selection changes for a reconciliation batch.

An installment may be claimed by at most one confirmed item. Conflicts are
flagged on every item involved and block commit until a human resolves them.
"""

from typing import Optional, Sequence
import logging

from ..models.transaction import ReconciliationItem
from ..utils.exceptions import SelectionError

logger = logging.getLogger(__name__)


def detect_conflicts(items: Sequence[ReconciliationItem]) -> dict[str, list[int]]:
    """
    Map each installment id claimed by several confirmed items to their positions.

    Returns:
        Only the conflicting installment ids; empty when the batch is consistent
    """
    claims: dict[str, list[int]] = {}
    for position, item in enumerate(items):
        if item.confirmed and item.selected_installment_id is not None:
            claims.setdefault(item.selected_installment_id, []).append(position)
    return {iid: positions for iid, positions in claims.items() if len(positions) > 1}


def refresh_conflicts(items: Sequence[ReconciliationItem]) -> dict[str, list[int]]:
    """Recompute the ``conflicted`` flag on every item."""
    conflicts = detect_conflicts(items)
    flagged = {p for positions in conflicts.values() for p in positions}
    for position, item in enumerate(items):
        item.conflicted = position in flagged
    if conflicts:
        logger.warning(
            f"{len(conflicts)} installment(s) claimed by more than one confirmed item"
        )
    return conflicts


class SelectionArbiter:
    """
    Applies selection changes to a batch the caller owns.

    Every change re-runs conflict detection so item flags and the commit gate
    always reflect the current selections.
    """

    def __init__(self, items: list[ReconciliationItem]):
        self.items = items
        self._conflicts = refresh_conflicts(items)

    def select(
        self,
        position: int,
        installment_id: Optional[str],
        accept_override: bool = False,
    ) -> ReconciliationItem:
        """
        Select a candidate for an item, or clear it with ``None``.

        A selection is confirmed right away unless it targets an installment
        that was already settled and the override was not accepted.

        Raises:
            SelectionError: For duplicate items or ids not among the candidates
        """
        item = self._item(position)

        if installment_id is None:
            return self.clear(position)

        if item.duplicate_identifier:
            raise SelectionError(
                f"Item {position} was already settled from this statement line"
            )

        candidate = item.candidate(installment_id)
        if candidate is None:
            raise SelectionError(
                f"Installment {installment_id} is not a candidate for item {position}"
            )

        item.selected_installment_id = installment_id
        item.override_settlement = candidate.was_already_settled and accept_override
        item.confirmed = not candidate.was_already_settled or accept_override
        self._refresh()
        return item

    def clear(self, position: int) -> ReconciliationItem:
        item = self._item(position)
        item.selected_installment_id = None
        item.confirmed = False
        item.override_settlement = False
        self._refresh()
        return item

    def confirm(self, position: int) -> ReconciliationItem:
        """
        Raises:
            SelectionError: Without a selection, for duplicates, or for an
                already-settled target whose override was not accepted
        """
        item = self._item(position)
        if item.duplicate_identifier:
            raise SelectionError(
                f"Item {position} was already settled from this statement line"
            )
        if item.selected_installment_id is None:
            raise SelectionError(f"Item {position} has no selected installment")

        candidate = item.selected_candidate
        already_settled = candidate is not None and candidate.was_already_settled
        if already_settled and not item.override_settlement:
            raise SelectionError(
                f"Installment {item.selected_installment_id} is already settled; "
                f"select it with accept_override=True to replace the settlement"
            )

        item.confirmed = True
        self._refresh()
        return item

    def unconfirm(self, position: int) -> ReconciliationItem:
        item = self._item(position)
        item.confirmed = False
        self._refresh()
        return item

    def toggle_confirm(self, position: int) -> ReconciliationItem:
        if self._item(position).confirmed:
            return self.unconfirm(position)
        return self.confirm(position)

    def conflicts(self) -> dict[str, list[int]]:
        return dict(self._conflicts)

    @property
    def has_conflicts(self) -> bool:
        return bool(self._conflicts)

    def eligible_items(self) -> list[ReconciliationItem]:
        return [i for i in self.items if i.is_commit_eligible]

    @property
    def can_commit(self) -> bool:
        """No conflicts and at least one item ready to commit."""
        return not self.has_conflicts and bool(self.eligible_items())

    def _item(self, position: int) -> ReconciliationItem:
        if not 0 <= position < len(self.items):
            raise SelectionError(f"No item at position {position}")
        return self.items[position]

    def _refresh(self) -> None:
        self._conflicts = refresh_conflicts(self.items)

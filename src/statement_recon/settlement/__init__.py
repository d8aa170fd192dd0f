"""Settlement commit."""

from .committer import (
    SettlementCommitter,
    compose_settlement_note,
    resolve_payment_method,
)

__all__ = [
    "SettlementCommitter",
    "compose_settlement_note",
    "resolve_payment_method",
]

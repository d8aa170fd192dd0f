"""
File-backed installment store.
Loads the installment pool from a CSV or Excel sheet and writes it back.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Iterable, Optional
import logging

import pandas as pd

from ..models.transaction import Installment, PaymentMethod
from ..utils.exceptions import CandidateLookupError
from .memory import InMemoryInstallmentStore

logger = logging.getLogger(__name__)

COLUMNS = [
    "id",
    "account_id",
    "counterparty_id",
    "counterparty_name",
    "description",
    "amount_minor",
    "due_date",
    "installment_index",
    "installment_count",
    "settled",
    "settled_at",
    "settled_amount_minor",
    "payment_method",
    "bank_account",
    "settlement_note",
]
REQUIRED_COLUMNS = ("id", "amount_minor", "due_date")

_TRUE_VALUES = {"true", "1", "yes", "y", "sim", "s"}


class TabularInstallmentStore(InMemoryInstallmentStore):
    """In-memory store loaded from, and saved to, a tabular file."""

    @classmethod
    def from_file(
        cls,
        file_path: Path,
        payment_methods: Iterable[str] = (),
    ) -> "TabularInstallmentStore":
        """
        Load installments from a CSV or Excel file.

        Counterparty names come from the ``counterparty_name`` column, keyed by
        ``counterparty_id`` when present and by the name itself otherwise.

        Raises:
            CandidateLookupError: If the file cannot be read or lacks required columns
        """
        logger.info(f"Loading installments from: {file_path}")
        try:
            df = _read_frame(file_path)
        except Exception as e:
            logger.error(f"Failed to read installment file: {e}")
            raise CandidateLookupError(f"Failed to read installment file: {e}") from e

        missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
        if missing:
            raise CandidateLookupError(
                f"Installment file is missing columns: {', '.join(missing)}"
            )

        installments: list[Installment] = []
        counterparties: dict[str, str] = {}

        for idx, row in enumerate(df.to_dict(orient="records"), start=2):
            try:
                installment, name = _row_to_installment(row)
            except (ValueError, InvalidOperation) as e:
                raise CandidateLookupError(f"Invalid installment on line {idx}: {e}") from e
            installments.append(installment)
            if installment.counterparty_id and name:
                counterparties[installment.counterparty_id] = name

        methods = [PaymentMethod(id=name, name=name) for name in payment_methods]
        logger.info(f"Loaded {len(installments)} installments")
        return cls(installments, counterparties=counterparties, payment_methods=methods)

    def save(self, file_path: Path) -> Path:
        """Write the installment pool back to a CSV or Excel file."""
        records = []
        for installment in self.load_installments():
            names = self.load_counterparty_names(
                [installment.counterparty_id] if installment.counterparty_id else []
            )
            records.append(
                {
                    "id": installment.id,
                    "account_id": installment.account_id,
                    "counterparty_id": installment.counterparty_id or "",
                    "counterparty_name": names.get(installment.counterparty_id or "", ""),
                    "description": installment.description,
                    "amount_minor": installment.amount_minor,
                    "due_date": installment.due_date.isoformat(),
                    "installment_index": installment.installment_index,
                    "installment_count": installment.installment_count,
                    "settled": installment.settled,
                    "settled_at": installment.settled_at.isoformat()
                    if installment.settled_at
                    else "",
                    "settled_amount_minor": installment.settled_amount_minor
                    if installment.settled_amount_minor is not None
                    else "",
                    "payment_method": installment.payment_method or "",
                    "bank_account": installment.bank_account or "",
                    "settlement_note": installment.settlement_note or "",
                }
            )

        df = pd.DataFrame(records, columns=COLUMNS)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        if file_path.suffix.lower() in (".xlsx", ".xls"):
            df.to_excel(file_path, index=False)
        else:
            df.to_csv(file_path, index=False)

        logger.info(f"Saved {len(records)} installments to: {file_path}")
        return file_path


def _read_frame(file_path: Path) -> pd.DataFrame:
    if file_path.suffix.lower() in (".xlsx", ".xls"):
        return pd.read_excel(file_path, dtype=str, keep_default_na=False)
    return pd.read_csv(file_path, dtype=str, keep_default_na=False)


def _row_to_installment(row: dict[str, Any]) -> tuple[Installment, Optional[str]]:
    name = _text(row.get("counterparty_name"))
    counterparty_id = _text(row.get("counterparty_id")) or name

    installment = Installment(
        id=str(row["id"]).strip(),
        account_id=_text(row.get("account_id")) or "",
        amount_minor=_integer(row["amount_minor"]),
        due_date=_date(row["due_date"]),
        description=_text(row.get("description")) or "",
        counterparty_id=counterparty_id,
        installment_index=_integer(row.get("installment_index") or 1),
        installment_count=_integer(row.get("installment_count") or 1),
        settled=str(row.get("settled", "")).strip().lower() in _TRUE_VALUES,
        settled_at=_date(row["settled_at"]) if _text(row.get("settled_at")) else None,
        settled_amount_minor=_integer(row["settled_amount_minor"])
        if _text(row.get("settled_amount_minor"))
        else None,
        payment_method=_text(row.get("payment_method")),
        bank_account=_text(row.get("bank_account")),
        settlement_note=_text(row.get("settlement_note")),
    )
    return installment, name


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _integer(value: Any) -> int:
    return int(Decimal(str(value).strip()))


def _date(value: Any) -> date:
    return pd.to_datetime(str(value).strip()).date()

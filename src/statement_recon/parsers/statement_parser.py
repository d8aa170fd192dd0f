"""
Bank statement normalizer.
Reads statement exports and converts outbound lines to Transaction records.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional
import logging
import re
import unicodedata

import pandas as pd

from ..config import ColumnMapping, ReconConfig
from ..models.transaction import Direction, Transaction
from ..utils.exceptions import StatementParseError

logger = logging.getLogger(__name__)

# DD/MM/YYYY, DD-MM-YYYY, YYYY-MM-DD, YYYY/MM/DD
_DAY_FIRST = re.compile(r"^(\d{2})[/-](\d{2})[/-](\d{4})$")
_YEAR_FIRST = re.compile(r"^(\d{4})[/-](\d{2})[/-](\d{2})$")
_NON_NUMERIC = re.compile(r"[^\d,.\-+]")

# Header keywords used to guess a column mapping
_HEADER_HINTS: dict[str, tuple[str, ...]] = {
    "date_column": ("data", "date"),
    "description_column": ("descri", "histor", "memo"),
    "amount_column": ("valor", "value", "amount"),
    "type_column": ("tipo", "type", "d/c"),
    "payment_method_column": ("forma", "pagamento", "metodo", "payment"),
    "identifier_column": ("identificador", "fitid", "reference", "id"),
}


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _fold(text: str) -> str:
    """Lowercase without diacritics, e.g. 'Débito' -> 'debito'."""
    decomposed = unicodedata.normalize("NFKD", text.strip().lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def parse_amount(value: Any) -> Decimal:
    """
    Parse a statement amount into a signed Decimal.

    Accepts numbers and locale-formatted strings such as ``R$ -1.234,56`` or
    ``1,234.56``. When both separators appear the later one is the decimal
    separator; a lone comma is a decimal separator. Anything non-numeric
    yields zero.
    """
    if _is_blank(value) or isinstance(value, bool):
        return Decimal("0")

    if isinstance(value, (int, float, Decimal)):
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            return Decimal("0")
        return amount if amount.is_finite() else Decimal("0")

    text = str(value).strip()
    negative = False
    if text.startswith("(") and text.endswith(")"):
        negative = True
    text = _NON_NUMERIC.sub("", text)
    # Trailing sign, e.g. "150,00-"
    if text.endswith("-"):
        negative = True
        text = text[:-1]

    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "")
            text = text.replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        head, _, tail = text.rpartition(",")
        text = head.replace(",", "") + "." + tail

    try:
        amount = Decimal(text)
    except InvalidOperation:
        return Decimal("0")
    if not amount.is_finite():
        return Decimal("0")

    return -abs(amount) if negative else amount


def to_minor_units(amount: Decimal) -> int:
    """Absolute amount in minor currency units, rounded half up."""
    return int((abs(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_date(value: Any) -> str:
    """
    Normalize a statement date to ``YYYY-MM-DD``.

    Unrecognized values are returned unchanged so they fail date validation
    downstream instead of being silently rewritten.
    """
    if _is_blank(value):
        return ""

    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    text = str(value).strip()

    match = _DAY_FIRST.match(text)
    if match:
        day, month, year = match.groups()
        return f"{year}-{month}-{day}"

    match = _YEAR_FIRST.match(text)
    if match:
        year, month, day = match.groups()
        return f"{year}-{month}-{day}"

    return text


def detect_column_mapping(
    columns: Iterable[str], negative_means_outbound: bool = True
) -> ColumnMapping:
    """
    Guess a column mapping from header names.

    The last header matching a field's keywords wins; identifier detection only
    considers headers not already claimed by another field.
    """
    columns = [str(c) for c in columns]
    found: dict[str, str] = {}

    for column in columns:
        lower = _fold(column)
        for field_name, hints in _HEADER_HINTS.items():
            if field_name == "identifier_column":
                continue
            if any(hint in lower for hint in hints):
                found[field_name] = column

    claimed = set(found.values())
    for column in columns:
        lower = _fold(column)
        if column in claimed:
            continue
        tokens = re.split(r"[^a-z0-9]+", lower)
        if any(
            hint in tokens if hint == "id" else hint in lower
            for hint in _HEADER_HINTS["identifier_column"]
        ):
            found["identifier_column"] = column

    defaults = ColumnMapping()
    return ColumnMapping(
        date_column=found.get("date_column", defaults.date_column),
        description_column=found.get("description_column", defaults.description_column),
        amount_column=found.get("amount_column", defaults.amount_column),
        type_column=found.get("type_column"),
        payment_method_column=found.get("payment_method_column"),
        identifier_column=found.get("identifier_column"),
        negative_means_outbound=negative_means_outbound,
    )


class StatementNormalizer:
    """
    Normalizer for bank statement rows.

    Turns rows of named raw values into Transaction records, keeping only
    outbound lines with a positive amount.
    """

    def __init__(self, config: ReconConfig, columns: Optional[ColumnMapping] = None):
        """
        Initialize the normalizer with configuration.

        Args:
            config: Application configuration object
            columns: Column mapping overriding the configured one
        """
        self.config = config
        self.columns = columns or config.statement.columns
        self.outbound_markers = [_fold(m) for m in config.statement.outbound_markers]

    def read_rows(self, file_path: Path) -> list[dict[str, Any]]:
        """
        Read a CSV or Excel statement into rows of raw string values.

        Raises:
            StatementParseError: If the file cannot be read
        """
        logger.info(f"Reading statement file: {file_path}")
        statement_config = self.config.statement

        try:
            if file_path.suffix.lower() in (".xlsx", ".xls"):
                df = pd.read_excel(
                    file_path,
                    sheet_name=statement_config.sheet_name or 0,
                    dtype=str,
                    keep_default_na=False,
                )
            else:
                df = pd.read_csv(
                    file_path,
                    encoding=statement_config.encoding,
                    delimiter=statement_config.delimiter,
                    dtype=str,
                    keep_default_na=False,
                )
        except Exception as e:
            logger.error(f"Failed to read statement file: {e}")
            raise StatementParseError(f"Failed to read statement file: {e}") from e

        return df.to_dict(orient="records")

    def parse_file(self, file_path: Path) -> list[Transaction]:
        """Read a statement file and return its outbound transactions."""
        rows = self.read_rows(file_path)
        transactions = self.normalize_rows(rows)
        logger.info(
            f"Extracted {len(transactions)} outbound transactions from {len(rows)} rows"
        )
        return transactions

    def normalize_rows(self, rows: Iterable[Mapping[str, Any]]) -> list[Transaction]:
        """Normalize rows, dropping inbound and zero-amount lines."""
        transactions: list[Transaction] = []

        for idx, row in enumerate(rows, start=1):
            txn = self.normalize_row(row, idx)
            if txn is not None:
                transactions.append(txn)

        return transactions

    def normalize_row(
        self, row: Mapping[str, Any], row_number: Optional[int] = None
    ) -> Optional[Transaction]:
        """
        Convert a raw row to a Transaction.

        Returns:
            The transaction, or None for inbound or zero-amount rows
        """
        columns = self.columns
        amount = parse_amount(row.get(columns.amount_column))
        amount_minor = to_minor_units(amount)
        direction = self.parse_direction(row, amount)

        if direction != Direction.OUTBOUND or amount_minor <= 0:
            logger.debug(
                f"Row {row_number}: dropped ({direction.value}, {amount_minor} minor units)"
            )
            return None

        return Transaction(
            date=parse_date(row.get(columns.date_column)),
            description=self._text(row.get(columns.description_column)) or "",
            amount_minor=amount_minor,
            direction=direction,
            payment_method_tag=self._optional(row, columns.payment_method_column),
            external_id=self._optional(row, columns.identifier_column),
            row_number=row_number,
            raw=dict(row),
        )

    def parse_direction(self, row: Mapping[str, Any], amount: Decimal) -> Direction:
        """Derive the direction from the type column or the amount sign."""
        type_column = self.columns.type_column
        if type_column and not _is_blank(row.get(type_column)):
            value = _fold(str(row.get(type_column)))
            if value == "d" or any(marker in value for marker in self.outbound_markers):
                return Direction.OUTBOUND
            return Direction.INBOUND

        if self.columns.negative_means_outbound:
            return Direction.OUTBOUND if amount < 0 else Direction.INBOUND

        return Direction.INBOUND

    @staticmethod
    def _text(value: Any) -> Optional[str]:
        if _is_blank(value):
            return None
        return str(value).strip()

    def _optional(self, row: Mapping[str, Any], column: Optional[str]) -> Optional[str]:
        if not column:
            return None
        return self._text(row.get(column))

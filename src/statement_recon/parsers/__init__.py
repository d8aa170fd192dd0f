"""Statement readers and normalizers."""

from .statement_parser import (
    StatementNormalizer,
    detect_column_mapping,
    parse_amount,
    parse_date,
    to_minor_units,
)

__all__ = [
    "StatementNormalizer",
    "detect_column_mapping",
    "parse_amount",
    "parse_date",
    "to_minor_units",
]

"""Configuration loader and validation for reconciliation settings."""

from pathlib import Path
from typing import Any, Optional
import logging

import yaml
from pydantic import BaseModel, Field, ValidationError

from .utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class ColumnMapping(BaseModel):
    """Which statement columns carry which fields."""

    date_column: str = "Date"
    description_column: str = "Description"
    amount_column: str = "Amount"
    type_column: Optional[str] = None
    payment_method_column: Optional[str] = None
    identifier_column: Optional[str] = None
    negative_means_outbound: bool = True


class StatementConfig(BaseModel):
    """Configuration for statement file reading and normalization."""

    encoding: str = "utf-8"
    delimiter: str = ","
    sheet_name: Optional[str] = None
    columns: ColumnMapping = Field(default_factory=ColumnMapping)
    outbound_markers: list[str] = Field(
        default_factory=lambda: ["deb", "sai", "out", "withdraw"]
    )


class MatchingConfig(BaseModel):
    """Configuration for the match scorer and batch orchestration."""

    tolerance_days: int = Field(default=10, ge=0)
    tolerance_percent: float = Field(default=1.0, ge=0)
    chunk_size: int = Field(default=50, ge=1)
    auto_select_threshold: float = Field(default=0.8, ge=0, le=1)
    auto_confirm_threshold: float = Field(default=0.9, ge=0, le=1)


class SettlementConfig(BaseModel):
    """Batch-level defaults for committing settlements."""

    default_payment_method: Optional[str] = None
    default_bank_account: Optional[str] = None
    known_payment_methods: list[str] = Field(default_factory=list)
    note_template: str = "Automatic settlement from bank statement: {description}"
    max_error_details: int = Field(default=20, ge=0)


class ExcelOutputConfig(BaseModel):
    """Configuration for Excel output."""

    filename_template: str = "reconciliation_report_{date}_{time}.xlsx"


class SheetConfig(BaseModel):
    """Configuration for a report sheet."""

    enabled: bool = True
    name: str


class SheetsConfig(BaseModel):
    """Configuration for all report sheets."""

    summary: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Summary"))
    proposed: SheetConfig = Field(
        default_factory=lambda: SheetConfig(name="Proposed Matches")
    )
    unmatched: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Unmatched"))
    duplicates: SheetConfig = Field(
        default_factory=lambda: SheetConfig(name="Duplicates")
    )
    commit_results: SheetConfig = Field(
        default_factory=lambda: SheetConfig(name="Commit Results")
    )


class OutputConfig(BaseModel):
    """Configuration for output."""

    excel: ExcelOutputConfig = Field(default_factory=ExcelOutputConfig)
    sheets: SheetsConfig = Field(default_factory=SheetsConfig)


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None
    file_format: str = (
        "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
    )
    max_bytes: int = Field(default=10 * 1024 * 1024, ge=0)
    backup_count: int = Field(default=5, ge=0)


class ReconConfig(BaseModel):
    """Main configuration model for reconciliation."""

    statement: StatementConfig = Field(default_factory=StatementConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    settlement: SettlementConfig = Field(default_factory=SettlementConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    config_file_path: Optional[str] = None


def get_default_config() -> dict[str, Any]:
    """Return the default configuration as a dictionary."""
    return {
        "statement": {
            "encoding": "utf-8",
            "delimiter": ",",
            "sheet_name": None,
            "columns": {
                "date_column": "Date",
                "description_column": "Description",
                "amount_column": "Amount",
                "type_column": None,
                "payment_method_column": None,
                "identifier_column": None,
                "negative_means_outbound": True,
            },
            "outbound_markers": ["deb", "sai", "out", "withdraw"],
        },
        "matching": {
            "tolerance_days": 10,
            "tolerance_percent": 1.0,
            "chunk_size": 50,
            "auto_select_threshold": 0.8,
            "auto_confirm_threshold": 0.9,
        },
        "settlement": {
            "default_payment_method": None,
            "default_bank_account": None,
            "known_payment_methods": [],
            "note_template": "Automatic settlement from bank statement: {description}",
            "max_error_details": 20,
        },
        "output": {
            "excel": {
                "filename_template": "reconciliation_report_{date}_{time}.xlsx",
            },
            "sheets": {
                "summary": {"enabled": True, "name": "Summary"},
                "proposed": {"enabled": True, "name": "Proposed Matches"},
                "unmatched": {"enabled": True, "name": "Unmatched"},
                "duplicates": {"enabled": True, "name": "Duplicates"},
                "commit_results": {"enabled": True, "name": "Commit Results"},
            },
        },
        "logging": {
            "level": "INFO",
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "file": None,
            "file_format": (
                "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d"
                " - %(message)s"
            ),
            "max_bytes": 10 * 1024 * 1024,
            "backup_count": 5,
        },
    }


def load_config(config_path: Optional[Path] = None) -> ReconConfig:
    """
    Load configuration from a YAML file or use defaults.

    Args:
        config_path: Path to YAML configuration file (optional)

    Returns:
        ReconConfig object with loaded or default settings

    Raises:
        ConfigurationError: If the file is not valid YAML or holds invalid values
    """
    config_dict = get_default_config()

    if config_path and config_path.exists():
        logger.info(f"Loading configuration from: {config_path}")
        try:
            with open(config_path, "r") as f:
                user_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(user_config, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")

        # Deep merge user config into defaults
        config_dict = _deep_merge(config_dict, user_config)
        config_dict["config_file_path"] = str(config_path)
    else:
        logger.info("Using default configuration")

    try:
        return ReconConfig(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary to merge on top

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def generate_default_config(output_path: Path) -> None:
    """
    Generate a default configuration file.

    Args:
        output_path: Path to write the configuration file
    """
    config_dict = get_default_config()

    yaml_content = """# Bank statement reconciliation configuration
# Generated configuration file - customize as needed

"""
    yaml_content += yaml.dump(config_dict, default_flow_style=False, sort_keys=False)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        f.write(yaml_content)

    logger.info(f"Generated configuration file: {output_path}")

"""Configuration loader and validation for reconciliation settings."""

from pathlib import Path
from typing import Any, Optional
import logging

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from .utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class InputConfig(BaseModel):
    """Configuration for CSV exports read by the file-backed repository."""

    bank: dict[str, Any] = Field(
        default_factory=lambda: {
            "encoding": "utf-8",
            "delimiter": ",",
            "date_format": "%Y-%m-%d",
            "column_mappings": {
                "id": "id",
                "tenant_id": "tenant_id",
                "account_id": "account_id",
                "external_transaction_id": "transaction_id",
                "date": "date",
                "amount": "amount",
                "currency": "currency",
                "description": "description",
                "reconciled": "reconciled",
                "reconciled_with": "reconciled_with_ledger",
                "reconciled_with_document": "reconciled_with_document",
            },
        }
    )
    ledger: dict[str, Any] = Field(
        default_factory=lambda: {
            "encoding": "utf-8",
            "delimiter": ",",
            "date_format": "%Y-%m-%d",
            "column_mappings": {
                "id": "id",
                "tenant_id": "tenant_id",
                "account_code": "account_code",
                "transaction_date": "transaction_date",
                "amount": "amount",
                "entry_type": "entry_type",
                "description": "description",
                "document_id": "document_id",
                "reconciled": "reconciled",
            },
        }
    )
    documents: dict[str, Any] = Field(
        default_factory=lambda: {
            "encoding": "utf-8",
            "delimiter": ",",
            "column_mappings": {
                "id": "id",
                "tenant_id": "tenant_id",
                "file_name": "file_name",
                "extracted_total": "extracted_total",
                "created_at": "created_at",
            },
        }
    )


class MatchProfile(BaseModel):
    """Amount tolerance and date window bounding which candidates are considered."""

    name: str
    amount_tolerance: float = 0.01
    amount_tolerance_percent: float = 0.0
    date_window_days: int = 7

    @model_validator(mode="after")
    def _check_non_negative(self) -> "MatchProfile":
        if self.amount_tolerance < 0 or self.amount_tolerance_percent < 0:
            raise ValueError(f"Profile {self.name}: tolerances must be non-negative")
        if self.date_window_days < 0:
            raise ValueError(f"Profile {self.name}: date window must be non-negative")
        return self


class MatchingConfig(BaseModel):
    """Configuration for candidate generation and assignment."""

    strict: MatchProfile = Field(
        default_factory=lambda: MatchProfile(name="strict", amount_tolerance=0.01)
    )
    fuzzy: MatchProfile = Field(
        default_factory=lambda: MatchProfile(
            name="fuzzy", amount_tolerance=0.01, amount_tolerance_percent=5.0
        )
    )
    suggestion_threshold: float = 0.7
    match_documents: bool = False
    workers: int = 1


class ScoringWeights(BaseModel):
    """Weights of the three similarity signals. Must sum to 1.0."""

    amount: float = 0.5
    description: float = 0.3
    date: float = 0.2

    @model_validator(mode="after")
    def _check_sum(self) -> "ScoringWeights":
        values = (self.amount, self.description, self.date)
        if any(w < 0 for w in values):
            raise ValueError("Scoring weights must be non-negative")
        if abs(sum(values) - 1.0) > 1e-9:
            raise ValueError(f"Scoring weights must sum to 1.0, got {sum(values):.4f}")
        return self


class ScoringConfig(BaseModel):
    """Configuration for similarity scoring and match explanations."""

    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    description_reason_threshold: float = 0.8
    high_confidence_threshold: float = 0.9
    ambiguous_band: tuple[float, float] = (0.7, 0.8)


class DatabaseConfig(BaseModel):
    """Configuration for the SQL-backed repository."""

    url: Optional[str] = None
    echo: bool = False


class ExcelOutputConfig(BaseModel):
    """Configuration for Excel output."""

    filename_template: str = "reconciliation_{tenant}_{start}_{end}.xlsx"


class SheetConfig(BaseModel):
    """Configuration for a report sheet."""

    enabled: bool = True
    name: str


class SheetsConfig(BaseModel):
    """Configuration for all report sheets."""

    summary: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Summary"))
    matched: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Matched"))
    unmatched_bank: SheetConfig = Field(
        default_factory=lambda: SheetConfig(name="Unmatched Bank")
    )
    unmatched_ledger: SheetConfig = Field(
        default_factory=lambda: SheetConfig(name="Unmatched Ledger")
    )


class OutputConfig(BaseModel):
    """Configuration for output."""

    excel: ExcelOutputConfig = Field(default_factory=ExcelOutputConfig)
    sheets: SheetsConfig = Field(default_factory=SheetsConfig)


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ReconConfig(BaseModel):
    """Main configuration model for reconciliation."""

    input: InputConfig = Field(default_factory=InputConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    config_file_path: Optional[str] = None


def get_default_config() -> dict[str, Any]:
    """Return the default configuration as a dictionary."""
    return {
        "input": InputConfig().model_dump(),
        "matching": {
            "strict": {
                "name": "strict",
                "amount_tolerance": 0.01,
                "amount_tolerance_percent": 0.0,
                "date_window_days": 7,
            },
            "fuzzy": {
                "name": "fuzzy",
                "amount_tolerance": 0.01,
                "amount_tolerance_percent": 5.0,
                "date_window_days": 7,
            },
            "suggestion_threshold": 0.7,
            "match_documents": False,
            "workers": 1,
        },
        "scoring": {
            "weights": {"amount": 0.5, "description": 0.3, "date": 0.2},
            "description_reason_threshold": 0.8,
            "high_confidence_threshold": 0.9,
            "ambiguous_band": [0.7, 0.8],
        },
        "database": {"url": None, "echo": False},
        "output": {
            "excel": {
                "filename_template": "reconciliation_{tenant}_{start}_{end}.xlsx",
            },
            "sheets": {
                "summary": {"enabled": True, "name": "Summary"},
                "matched": {"enabled": True, "name": "Matched"},
                "unmatched_bank": {"enabled": True, "name": "Unmatched Bank"},
                "unmatched_ledger": {"enabled": True, "name": "Unmatched Ledger"},
            },
        },
        "logging": {
            "level": "INFO",
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
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
        ConfigurationError: If the file cannot be parsed or fails validation
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
    yaml_content = """# Bank/ledger reconciliation configuration
# Generated configuration file - customize as needed

"""
    yaml_content += yaml.dump(get_default_config(), default_flow_style=False, sort_keys=False)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        f.write(yaml_content)

    logger.info(f"Generated configuration file: {output_path}")

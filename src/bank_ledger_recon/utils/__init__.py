"""Utility modules."""

from .exceptions import (
    ReconciliationError,
    DataAccessError,
    InvalidWindowError,
    ConfigurationError,
    ReportGenerationError,
    AmbiguousMatchWarning,
)
from .logging_config import setup_logging

__all__ = [
    "ReconciliationError",
    "DataAccessError",
    "InvalidWindowError",
    "ConfigurationError",
    "ReportGenerationError",
    "AmbiguousMatchWarning",
    "setup_logging",
]

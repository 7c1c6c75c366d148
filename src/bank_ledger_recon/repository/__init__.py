"""Record repositories over the system of record."""

from .base import RecordRepository, ReconciliationLink, validate_window
from .memory import InMemoryRecordRepository
from .csv_repository import CsvRecordRepository
from .sql_repository import SqlRecordRepository

__all__ = [
    "RecordRepository",
    "ReconciliationLink",
    "validate_window",
    "InMemoryRecordRepository",
    "CsvRecordRepository",
    "SqlRecordRepository",
]

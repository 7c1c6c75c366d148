"""
Bank/ledger reconciliation engine.

Matches bank transactions against ledger entries (and, optionally,
candidate documents) for one tenant and period, and reports balances,
matches and discrepancies.
"""

from .config import ReconConfig, load_config
# matching must be imported before reports
from .matching import ReconciliationEngine
from .models import (
    BankTransaction,
    CandidateDocument,
    EntryType,
    LedgerEntry,
    MatchCandidate,
    ReconciliationItem,
    ReconciliationReport,
    TargetType,
)
from .reports import ExcelReportGenerator
from .repository import (
    CsvRecordRepository,
    InMemoryRecordRepository,
    RecordRepository,
    SqlRecordRepository,
)

__version__ = "0.1.0"

__all__ = [
    "ReconConfig",
    "load_config",
    "ReconciliationEngine",
    "BankTransaction",
    "CandidateDocument",
    "EntryType",
    "LedgerEntry",
    "MatchCandidate",
    "ReconciliationItem",
    "ReconciliationReport",
    "TargetType",
    "ExcelReportGenerator",
    "CsvRecordRepository",
    "InMemoryRecordRepository",
    "RecordRepository",
    "SqlRecordRepository",
]

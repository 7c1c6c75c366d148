"""Data models for reconciliation."""

from .records import (
    BankTransaction,
    LedgerEntry,
    CandidateDocument,
    Candidate,
    EntryType,
    TargetType,
    RecordWindow,
    target_type_of,
)
from .report import (
    ItemStatus,
    MatchCandidate,
    ReconciliationItem,
    ReconciliationSummary,
    ReconciliationReport,
)

__all__ = [
    "BankTransaction",
    "LedgerEntry",
    "CandidateDocument",
    "Candidate",
    "EntryType",
    "TargetType",
    "RecordWindow",
    "target_type_of",
    "ItemStatus",
    "MatchCandidate",
    "ReconciliationItem",
    "ReconciliationSummary",
    "ReconciliationReport",
]

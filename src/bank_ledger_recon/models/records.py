"""Typed records loaded from the system of record."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union


class EntryType(Enum):
    """Ledger posting direction, from the bank account's point of view."""

    DEBIT = "debit"  # Increases the bank account balance
    CREDIT = "credit"  # Decreases the bank account balance


class TargetType(Enum):
    """Kind of record a bank transaction can be matched against."""

    LEDGER_ENTRY = "ledger_entry"
    DOCUMENT = "document"


@dataclass
class BankTransaction:
    """
    A bank feed row, as delivered by the connector subsystem.

    The amount is signed: positive for money in, negative for money out.
    Only ``reconciled`` and ``reconciled_with`` are ever written by this engine.
    """

    id: str
    tenant_id: str
    account_id: str
    date: date
    amount: Decimal
    description: str = ""
    currency: str = "GBP"
    external_transaction_id: Optional[str] = None

    # Write-back state
    reconciled: bool = False
    reconciled_with: Optional[str] = None
    reconciled_with_document: Optional[str] = None


@dataclass
class LedgerEntry:
    """
    A posted ledger entry.

    The amount is unsigned; ``entry_type`` carries the direction.
    """

    id: str
    tenant_id: str
    account_code: str
    transaction_date: date
    amount: Decimal
    entry_type: EntryType
    description: str = ""
    document_id: Optional[str] = None
    reconciled: bool = False

    @property
    def date(self) -> date:
        """Alias so ledger entries and bank transactions share a date accessor."""
        return self.transaction_date


@dataclass
class CandidateDocument:
    """A receipt or invoice with an extracted total. Read-only here."""

    id: str
    tenant_id: str
    file_name: str
    extracted_total: Decimal
    created_at: datetime

    @property
    def date(self) -> date:
        return self.created_at.date()

    @property
    def description(self) -> str:
        return self.file_name


Candidate = Union[LedgerEntry, CandidateDocument]


def target_type_of(candidate: Candidate) -> TargetType:
    """Return the target type tag for a candidate record."""
    if isinstance(candidate, LedgerEntry):
        return TargetType.LEDGER_ENTRY
    return TargetType.DOCUMENT


@dataclass
class RecordWindow:
    """Everything loaded for one tenant, period and optional account."""

    tenant_id: str
    period_start: date
    period_end: date
    account_id: Optional[str] = None
    bank_transactions: list[BankTransaction] = field(default_factory=list)
    ledger_entries: list[LedgerEntry] = field(default_factory=list)
    documents: list[CandidateDocument] = field(default_factory=list)

"""Derived reconciliation results: candidates, items and the period report."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
import json

from .records import TargetType


class ItemStatus(Enum):
    """Reconciliation status of a single item."""

    MATCHED = "matched"
    UNMATCHED = "unmatched"


@dataclass
class MatchCandidate:
    """A scored candidate for one bank transaction. Never persisted."""

    target_id: str
    target_type: TargetType
    similarity: float
    match_reasons: list[str] = field(default_factory=list)

    # Candidate details for review screens
    description: str = ""
    amount: Optional[Decimal] = None
    date: Optional[date] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "targetId": self.target_id,
            "targetType": self.target_type.value,
            "similarity": self.similarity,
            "matchReasons": list(self.match_reasons),
            "description": self.description,
            "amount": _decimal_str(self.amount),
            "date": self.date.isoformat() if self.date else None,
        }


@dataclass
class ReconciliationItem:
    """
    One row of the reconciliation report.

    A matched item links a bank transaction to a ledger entry or document.
    An unmatched item carries exactly one side: either the bank transaction
    or the ledger entry nobody claimed.
    """

    bank_transaction_id: Optional[str]
    ledger_entry_id: Optional[str]
    document_id: Optional[str]
    date: date
    amount: Decimal
    description: str
    status: ItemStatus

    # Bank amount minus the compared candidate amount, when they differ
    discrepancy: Optional[Decimal] = None

    # Explanation of an accepted match
    similarity: Optional[float] = None
    match_reasons: list[str] = field(default_factory=list)

    @property
    def is_matched(self) -> bool:
        return self.status == ItemStatus.MATCHED

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "bankTransactionId": self.bank_transaction_id,
            "ledgerEntryId": self.ledger_entry_id,
            "documentId": self.document_id,
            "date": self.date.isoformat(),
            "amount": _decimal_str(self.amount),
            "description": self.description,
            "status": self.status.value,
        }
        if self.discrepancy is not None:
            data["discrepancy"] = _decimal_str(self.discrepancy)
        if self.similarity is not None:
            data["similarity"] = self.similarity
            data["matchReasons"] = list(self.match_reasons)
        return data


@dataclass
class ReconciliationSummary:
    """Headline statistics of a reconciliation run."""

    total_bank_transactions: int
    total_ledger_entries: int
    match_rate: float
    discrepancies: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalBankTransactions": self.total_bank_transactions,
            "totalLedgerEntries": self.total_ledger_entries,
            "matchRate": self.match_rate,
            "discrepancies": self.discrepancies,
        }


@dataclass
class ReconciliationReport:
    """
    The unit of output of a batch run.

    Built fresh per invocation. Callers that persist it for audit treat the
    stored copy as an immutable snapshot.
    """

    tenant_id: str
    period_start: date
    period_end: date
    bank_balance: Decimal
    ledger_balance: Decimal
    difference: Decimal
    matched: int
    unmatched: int
    items: list[ReconciliationItem]
    summary: ReconciliationSummary
    account_id: Optional[str] = None

    @property
    def matched_items(self) -> list[ReconciliationItem]:
        return [i for i in self.items if i.is_matched]

    @property
    def unmatched_bank_items(self) -> list[ReconciliationItem]:
        return [
            i
            for i in self.items
            if not i.is_matched and i.bank_transaction_id is not None
        ]

    @property
    def unmatched_ledger_items(self) -> list[ReconciliationItem]:
        return [
            i for i in self.items if not i.is_matched and i.bank_transaction_id is None
        ]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the external camelCase contract."""
        return {
            "tenantId": self.tenant_id,
            "accountId": self.account_id,
            "periodStart": self.period_start.isoformat(),
            "periodEnd": self.period_end.isoformat(),
            "bankBalance": _decimal_str(self.bank_balance),
            "ledgerBalance": _decimal_str(self.ledger_balance),
            "difference": _decimal_str(self.difference),
            "matched": self.matched,
            "unmatched": self.unmatched,
            "items": [item.to_dict() for item in self.items],
            "summary": self.summary.to_dict(),
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


def _decimal_str(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)

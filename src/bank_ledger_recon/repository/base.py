"""
Read boundary over the system of record.

Repositories map raw rows to the typed records in ``models.records`` and
return them in query order. The only write they perform is the
all-or-nothing reconciliation flag update.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional
import logging

from ..models.records import BankTransaction, CandidateDocument, LedgerEntry, RecordWindow
from ..models.report import ReconciliationItem
from ..utils.exceptions import InvalidWindowError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconciliationLink:
    """One accepted match to be written back."""

    bank_transaction_id: str
    ledger_entry_id: Optional[str] = None
    document_id: Optional[str] = None


def validate_window(period_start: date, period_end: date) -> None:
    """Reject a period that is not a closed interval."""
    if period_start is None or period_end is None:
        raise InvalidWindowError("Period start and end are both required")
    if period_end < period_start:
        raise InvalidWindowError(
            f"Period end {period_end} is before period start {period_start}"
        )


def bank_query_order(txn: BankTransaction):
    return (txn.date, txn.amount, txn.id)


def ledger_query_order(entry: LedgerEntry):
    return (entry.transaction_date, entry.amount, entry.id)


def document_query_order(doc: CandidateDocument):
    return (doc.created_at, doc.id)


def links_from_items(items: Iterable[ReconciliationItem]) -> list[ReconciliationLink]:
    """Collect the write-back links of the matched items."""
    return [
        ReconciliationLink(
            bank_transaction_id=item.bank_transaction_id,
            ledger_entry_id=item.ledger_entry_id,
            document_id=item.document_id,
        )
        for item in items
        if item.is_matched and item.bank_transaction_id is not None
    ]


class RecordRepository(ABC):
    """Abstract base class for record repositories."""

    def load_window(
        self,
        tenant_id: str,
        period_start: date,
        period_end: date,
        account_id: Optional[str] = None,
    ) -> RecordWindow:
        """
        Load bank transactions, ledger entries and documents for a period.

        Args:
            tenant_id: Tenant whose books are reconciled
            period_start: First day of the period (inclusive)
            period_end: Last day of the period (inclusive)
            account_id: Restricts bank transactions to one account; ledger
                entries have no bank-account dimension and are never filtered

        Returns:
            RecordWindow with every list in query order

        Raises:
            InvalidWindowError: If the period or tenant/account is invalid
            DataAccessError: If the store cannot be read
        """
        self.validate(tenant_id, period_start, period_end, account_id)

        bank = self._fetch_bank_transactions(tenant_id, period_start, period_end, account_id)
        ledger = self._fetch_ledger_entries(tenant_id, period_start, period_end, False)
        documents = self._fetch_documents(tenant_id, period_start, period_end)

        window = RecordWindow(
            tenant_id=tenant_id,
            period_start=period_start,
            period_end=period_end,
            account_id=account_id,
            bank_transactions=sorted(bank, key=bank_query_order),
            ledger_entries=sorted(ledger, key=ledger_query_order),
            documents=sorted(documents, key=document_query_order),
        )

        logger.info(
            f"Loaded window for tenant {tenant_id} {period_start}..{period_end}: "
            f"{len(window.bank_transactions)} bank txns, "
            f"{len(window.ledger_entries)} ledger entries, "
            f"{len(window.documents)} documents"
        )
        return window

    def load_candidates(
        self,
        tenant_id: str,
        start: date,
        end: date,
        unreconciled_only: bool = True,
    ) -> tuple[list[LedgerEntry], list[CandidateDocument]]:
        """Load ledger entries and documents around a transaction for suggestions."""
        validate_window(start, end)
        ledger = self._fetch_ledger_entries(tenant_id, start, end, unreconciled_only)
        documents = self._fetch_documents(tenant_id, start, end)
        return (
            sorted(ledger, key=ledger_query_order),
            sorted(documents, key=document_query_order),
        )

    def validate(
        self,
        tenant_id: str,
        period_start: date,
        period_end: date,
        account_id: Optional[str] = None,
    ) -> None:
        """Reject an invalid window before anything is loaded."""
        validate_window(period_start, period_end)
        if not self.tenant_exists(tenant_id):
            raise InvalidWindowError(f"Unknown tenant: {tenant_id}")
        if account_id is not None and not self.account_exists(tenant_id, account_id):
            raise InvalidWindowError(f"Unknown account {account_id} for tenant {tenant_id}")

    def mark_reconciled(
        self, tenant_id: str, items: Iterable[ReconciliationItem]
    ) -> int:
        """
        Flag every matched item as reconciled in one transaction.

        Either every flag is written or none is.

        Returns:
            Number of links written

        Raises:
            DataAccessError: If the commit fails; nothing is applied
        """
        links = links_from_items(items)
        if not links:
            return 0

        self._apply_links(tenant_id, links)
        logger.info(f"Wrote back {len(links)} reconciliation links for tenant {tenant_id}")
        return len(links)

    def confirm_link(self, tenant_id: str, link: ReconciliationLink) -> None:
        """Write back a single confirmed match through the same transactional path."""
        self._apply_links(tenant_id, [link])
        logger.info(
            f"Confirmed match for tenant {tenant_id}: {link.bank_transaction_id} -> "
            f"{link.ledger_entry_id or link.document_id}"
        )

    @abstractmethod
    def tenant_exists(self, tenant_id: str) -> bool:
        pass

    @abstractmethod
    def account_exists(self, tenant_id: str, account_id: str) -> bool:
        """Whether the tenant has this bank account, registered or seen in the feed."""
        pass

    @abstractmethod
    def get_bank_transaction(
        self, tenant_id: str, transaction_id: str
    ) -> Optional[BankTransaction]:
        pass

    @abstractmethod
    def get_ledger_entry(self, tenant_id: str, entry_id: str) -> Optional[LedgerEntry]:
        pass

    @abstractmethod
    def _fetch_bank_transactions(
        self,
        tenant_id: str,
        start: date,
        end: date,
        account_id: Optional[str],
    ) -> list[BankTransaction]:
        pass

    @abstractmethod
    def _fetch_ledger_entries(
        self,
        tenant_id: str,
        start: date,
        end: date,
        unreconciled_only: bool,
    ) -> list[LedgerEntry]:
        pass

    @abstractmethod
    def _fetch_documents(
        self, tenant_id: str, start: date, end: date
    ) -> list[CandidateDocument]:
        pass

    @abstractmethod
    def _apply_links(self, tenant_id: str, links: list[ReconciliationLink]) -> None:
        """Apply all links atomically or raise DataAccessError."""
        pass

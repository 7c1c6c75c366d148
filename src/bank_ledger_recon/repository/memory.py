"""Dict-backed repository for direct callers and tests."""

from dataclasses import replace
from datetime import date
from typing import Iterable, Optional

from ..models.records import BankTransaction, CandidateDocument, LedgerEntry
from ..utils.exceptions import DataAccessError
from .base import RecordRepository, ReconciliationLink


class InMemoryRecordRepository(RecordRepository):
    """
    Holds records in memory.

    Reads hand out copies so callers cannot mutate the store. Write-back is
    staged on copies and swapped in only when every link applied.
    """

    def __init__(
        self,
        bank_transactions: Iterable[BankTransaction] = (),
        ledger_entries: Iterable[LedgerEntry] = (),
        documents: Iterable[CandidateDocument] = (),
        tenants: Optional[Iterable[str]] = None,
        accounts: Iterable[tuple[str, str]] = (),
    ):
        self._bank = {t.id: t for t in bank_transactions}
        self._ledger = {e.id: e for e in ledger_entries}
        self._documents = {d.id: d for d in documents}

        if tenants is None:
            tenants = (
                {t.tenant_id for t in self._bank.values()}
                | {e.tenant_id for e in self._ledger.values()}
                | {d.tenant_id for d in self._documents.values()}
            )
        self._tenants = set(tenants)
        self._accounts = set(accounts)

    def add_tenant(self, tenant_id: str) -> None:
        self._tenants.add(tenant_id)

    def add_account(self, tenant_id: str, account_id: str) -> None:
        self._accounts.add((tenant_id, account_id))

    def tenant_exists(self, tenant_id: str) -> bool:
        return tenant_id in self._tenants

    def account_exists(self, tenant_id: str, account_id: str) -> bool:
        if (tenant_id, account_id) in self._accounts:
            return True
        return any(
            t.tenant_id == tenant_id and t.account_id == account_id
            for t in self._bank.values()
        )

    def get_bank_transaction(
        self, tenant_id: str, transaction_id: str
    ) -> Optional[BankTransaction]:
        txn = self._bank.get(transaction_id)
        if txn is None or txn.tenant_id != tenant_id:
            return None
        return replace(txn)

    def get_ledger_entry(self, tenant_id: str, entry_id: str) -> Optional[LedgerEntry]:
        entry = self._ledger.get(entry_id)
        if entry is None or entry.tenant_id != tenant_id:
            return None
        return replace(entry)

    def _fetch_bank_transactions(
        self,
        tenant_id: str,
        start: date,
        end: date,
        account_id: Optional[str],
    ) -> list[BankTransaction]:
        return [
            replace(t)
            for t in self._bank.values()
            if t.tenant_id == tenant_id
            and start <= t.date <= end
            and (account_id is None or t.account_id == account_id)
        ]

    def _fetch_ledger_entries(
        self,
        tenant_id: str,
        start: date,
        end: date,
        unreconciled_only: bool,
    ) -> list[LedgerEntry]:
        return [
            replace(e)
            for e in self._ledger.values()
            if e.tenant_id == tenant_id
            and start <= e.transaction_date <= end
            and not (unreconciled_only and e.reconciled)
        ]

    def _fetch_documents(
        self, tenant_id: str, start: date, end: date
    ) -> list[CandidateDocument]:
        return [
            replace(d)
            for d in self._documents.values()
            if d.tenant_id == tenant_id and start <= d.created_at.date() <= end
        ]

    def _apply_links(self, tenant_id: str, links: list[ReconciliationLink]) -> None:
        staged_bank = dict(self._bank)
        staged_ledger = dict(self._ledger)

        for link in links:
            txn = staged_bank.get(link.bank_transaction_id)
            if txn is None or txn.tenant_id != tenant_id:
                raise DataAccessError(
                    f"Bank transaction {link.bank_transaction_id} not found for tenant {tenant_id}"
                )
            staged_bank[txn.id] = replace(
                txn,
                reconciled=True,
                reconciled_with=link.ledger_entry_id,
                reconciled_with_document=link.document_id,
            )

            if link.ledger_entry_id is not None:
                entry = staged_ledger.get(link.ledger_entry_id)
                if entry is None or entry.tenant_id != tenant_id:
                    raise DataAccessError(
                        f"Ledger entry {link.ledger_entry_id} not found for tenant {tenant_id}"
                    )
                staged_ledger[entry.id] = replace(entry, reconciled=True)

        self._bank = staged_bank
        self._ledger = staged_ledger

"""Tests for the SQLAlchemy-backed repository over a sqlite file."""

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import insert, select

from bank_ledger_recon.matching.engine import ReconciliationEngine
from bank_ledger_recon.models.records import EntryType
from bank_ledger_recon.models.report import ItemStatus, ReconciliationItem
from bank_ledger_recon.repository.sql_repository import (
    SqlRecordRepository,
    bank_accounts,
    bank_transactions,
    documents,
    ledger_entries,
    tenants,
)
from bank_ledger_recon.utils.exceptions import DataAccessError, InvalidWindowError

pytestmark = pytest.mark.filterwarnings("ignore::sqlalchemy.exc.SAWarning")

TENANT = "tenant-1"
START = date(2024, 1, 1)
END = date(2024, 1, 31)


def _bank_row(id, amount, day, account_id="acc-1", tenant_id=TENANT, **kwargs):
    row = {
        "id": id,
        "tenant_id": tenant_id,
        "account_id": account_id,
        "transaction_id": f"T-{id}",
        "date": day,
        "amount": Decimal(amount),
        "currency": "GBP",
        "description": kwargs.pop("description", ""),
        "reconciled": False,
    }
    row.update(kwargs)
    return row


def _ledger_row(id, amount, day, entry_type="debit", tenant_id=TENANT, **kwargs):
    row = {
        "id": id,
        "tenant_id": tenant_id,
        "account_code": "1200",
        "transaction_date": day,
        "amount": Decimal(amount),
        "entry_type": entry_type,
        "description": kwargs.pop("description", ""),
        "document_id": None,
        "reconciled": False,
    }
    row.update(kwargs)
    return row


@pytest.fixture
def repository(tmp_path):
    repo = SqlRecordRepository(f"sqlite:///{tmp_path / 'recon.db'}")
    repo.create_schema()
    with repo.engine.begin() as conn:
        conn.execute(insert(tenants), [{"id": TENANT, "name": "Test Ltd"}, {"id": "other", "name": "Other"}])
        conn.execute(
            insert(bank_transactions),
            [
                _bank_row("b2", "-42.50", date(2024, 1, 16), description="Card payment"),
                _bank_row("b1", "100.00", date(2024, 1, 15), description="Test Transaction"),
                _bank_row("b3", "7.00", date(2024, 1, 15), account_id="acc-2"),
                _bank_row("x1", "100.00", date(2024, 1, 15), tenant_id="other"),
            ],
        )
        conn.execute(
            insert(ledger_entries),
            [
                _ledger_row("l1", "100.00", date(2024, 1, 15), description="Test Transaction"),
                _ledger_row("l2", "42.50", date(2024, 1, 16), "CREDIT", document_id="d1"),
                _ledger_row("l3", "9.99", date(2024, 1, 20), reconciled=True),
            ],
        )
        conn.execute(
            insert(documents),
            [
                {
                    "id": "d1",
                    "tenant_id": TENANT,
                    "file_name": "receipt.pdf",
                    "extracted_total": Decimal("42.50"),
                    "created_at": datetime(2024, 1, 16, 9, 30),
                },
                {
                    "id": "d2",
                    "tenant_id": TENANT,
                    "file_name": "unread.pdf",
                    "extracted_total": None,
                    "created_at": datetime(2024, 1, 17, 9, 30),
                },
            ],
        )
    return repo


def _flags(repo, table, row_id):
    with repo.engine.connect() as conn:
        return conn.execute(select(table).where(table.c.id == row_id)).mappings().one()


class TestSqlLoading:
    def test_load_window(self, repository):
        window = repository.load_window(TENANT, START, END)

        assert [t.id for t in window.bank_transactions] == ["b3", "b1", "b2"]
        assert [e.id for e in window.ledger_entries] == ["l1", "l2", "l3"]
        assert window.ledger_entries[1].entry_type == EntryType.CREDIT
        assert window.bank_transactions[1].amount == Decimal("100.00")
        assert window.bank_transactions[1].external_transaction_id == "T-b1"
        assert [d.id for d in window.documents] == ["d1"]

    def test_account_filter(self, repository):
        window = repository.load_window(TENANT, START, END, account_id="acc-2")

        assert [t.id for t in window.bank_transactions] == ["b3"]
        assert len(window.ledger_entries) == 3

    def test_unknown_tenant_and_account(self, repository):
        with pytest.raises(InvalidWindowError):
            repository.load_window("nobody", START, END)
        with pytest.raises(InvalidWindowError):
            repository.load_window(TENANT, START, END, account_id="acc-404")

    def test_load_candidates_skips_reconciled(self, repository):
        ledger, docs = repository.load_candidates(TENANT, START, END)

        assert [e.id for e in ledger] == ["l1", "l2"]
        assert [d.id for d in docs] == ["d1"]

    def test_get_bank_transaction_scoped_to_tenant(self, repository):
        assert repository.get_bank_transaction(TENANT, "b1").description == "Test Transaction"
        assert repository.get_bank_transaction(TENANT, "x1") is None

    def test_get_ledger_entry(self, repository):
        entry = repository.get_ledger_entry(TENANT, "l2")

        assert entry.entry_type == EntryType.CREDIT
        assert entry.document_id == "d1"
        assert repository.get_ledger_entry("other", "l2") is None

    def test_registered_account_without_transactions(self, repository):
        with repository.engine.begin() as conn:
            conn.execute(insert(bank_accounts), [{"id": "acc-new", "tenant_id": TENANT, "name": "Savings"}])

        window = repository.load_window(TENANT, START, END, account_id="acc-new")

        assert window.bank_transactions == []
        assert not repository.account_exists("other", "acc-new")

    def test_unreachable_database(self, tmp_path):
        repo = SqlRecordRepository(f"sqlite:///{tmp_path / 'missing' / 'recon.db'}")
        with pytest.raises(DataAccessError):
            repo.tenant_exists(TENANT)


class TestSqlWriteBack:
    def test_reconcile_and_write_back(self, repository):
        report = ReconciliationEngine(repository).reconcile(TENANT, START, END, write_back=True)

        assert report.matched == 2
        b1 = _flags(repository, bank_transactions, "b1")
        assert b1["reconciled"] is True
        assert b1["reconciled_with_ledger"] == "l1"
        assert _flags(repository, bank_transactions, "b2")["reconciled_with_document"] == "d1"
        assert _flags(repository, ledger_entries, "l2")["reconciled_with"] == "b2"
        assert _flags(repository, bank_transactions, "b3")["reconciled"] is False

    def test_write_back_rolls_back_on_missing_row(self, repository):
        items = [
            ReconciliationItem("b1", "l1", None, START, Decimal("100.00"), "", ItemStatus.MATCHED),
            ReconciliationItem("b2", "ghost", None, START, Decimal("-42.50"), "", ItemStatus.MATCHED),
        ]

        with pytest.raises(DataAccessError):
            repository.mark_reconciled(TENANT, items)

        assert _flags(repository, bank_transactions, "b1")["reconciled"] is False
        assert _flags(repository, ledger_entries, "l1")["reconciled"] is False

    def test_write_back_is_tenant_scoped(self, repository):
        items = [ReconciliationItem("x1", "l1", None, START, Decimal("1"), "", ItemStatus.MATCHED)]

        with pytest.raises(DataAccessError):
            repository.mark_reconciled(TENANT, items)

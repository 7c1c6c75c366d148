"""Tests for the CSV-backed repository."""

from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
import os

import pandas as pd
import pytest

from bank_ledger_recon.config import load_config
from bank_ledger_recon.matching.engine import ReconciliationEngine
from bank_ledger_recon.models.records import EntryType
from bank_ledger_recon.repository.base import ReconciliationLink
from bank_ledger_recon.repository.csv_repository import CsvRecordRepository
from bank_ledger_recon.utils.exceptions import DataAccessError

TENANT = "tenant-1"
START = date(2024, 1, 1)
END = date(2024, 1, 31)

BANK_CSV = """id,tenant_id,account_id,transaction_id,date,amount,currency,description,reconciled,reconciled_with_ledger
b1,tenant-1,acc-1,T-001,2024-01-15,100.00,GBP,Test Transaction,false,
b2,tenant-1,acc-1,T-002,2024-01-16,-42.50,GBP,Card payment,false,
b3,tenant-2,acc-9,T-003,2024-01-16,5.00,GBP,Other tenant,false,
"""

LEDGER_CSV = """id,tenant_id,account_code,transaction_date,amount,entry_type,description,document_id,reconciled
l1,tenant-1,1200,2024-01-15,100.00,debit,Test Transaction,,false
l2,tenant-1,1200,2024-01-16,42.50,Credit,Card payment,d1,false
"""

DOCUMENTS_CSV = """id,tenant_id,file_name,extracted_total,created_at
d1,tenant-1,receipt.pdf,42.50,2024-01-16T09:30:00
"""


@pytest.fixture
def csv_files(tmp_path):
    bank = tmp_path / "bank.csv"
    ledger = tmp_path / "ledger.csv"
    documents = tmp_path / "documents.csv"
    bank.write_text(BANK_CSV)
    ledger.write_text(LEDGER_CSV)
    documents.write_text(DOCUMENTS_CSV)
    return bank, ledger, documents


class TestCsvLoading:
    def test_rows_mapped_to_records(self, csv_files):
        bank, ledger, documents = csv_files
        repository = CsvRecordRepository(bank, ledger, documents)

        window = repository.load_window(TENANT, START, END)

        assert [t.id for t in window.bank_transactions] == ["b1", "b2"]
        txn = window.bank_transactions[0]
        assert txn.amount == Decimal("100.00")
        assert txn.date == date(2024, 1, 15)
        assert txn.external_transaction_id == "T-001"
        assert txn.reconciled is False

        entry = window.ledger_entries[1]
        assert entry.id == "l2"
        assert entry.entry_type == EntryType.CREDIT
        assert entry.document_id == "d1"

        assert window.documents[0].created_at == datetime(2024, 1, 16, 9, 30)
        assert window.documents[0].extracted_total == Decimal("42.50")

    def test_default_tenant_without_tenant_column(self, tmp_path):
        bank = tmp_path / "bank.csv"
        ledger = tmp_path / "ledger.csv"
        bank.write_text("id,account_id,date,amount,description\nb1,acc-1,2024-01-02,10.00,x\n")
        ledger.write_text("id,account_code,transaction_date,amount,entry_type\nl1,1200,2024-01-02,10.00,debit\n")
        repository = CsvRecordRepository(bank, ledger, default_tenant=TENANT)

        report = ReconciliationEngine(repository).reconcile(TENANT, START, END)

        assert report.matched == 1

    def test_custom_column_mappings(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text(
            "input:\n"
            "  bank:\n"
            "    date_format: '%d/%m/%Y'\n"
            "    column_mappings:\n"
            "      id: Ref\n"
            "      date: Posted\n"
            "      amount: Value\n"
        )
        bank = tmp_path / "bank.csv"
        ledger = tmp_path / "ledger.csv"
        bank.write_text("Ref,account_id,Posted,Value\nb1,acc-1,02/01/2024,\"1,250.00\"\n")
        ledger.write_text("id,transaction_date,amount,entry_type\n")
        repository = CsvRecordRepository(
            bank, ledger, config=load_config(config_path), default_tenant=TENANT
        )

        txn = repository.get_bank_transaction(TENANT, "b1")

        assert txn.date == date(2024, 1, 2)
        assert txn.amount == Decimal("1250.00")

    @pytest.mark.parametrize(
        "ledger_row, message",
        [
            ("l1,tenant-1,1200,2024-01-15,abc,debit,x,,false", "invalid amount"),
            ("l1,tenant-1,1200,2024-01-15,-5.00,debit,x,,false", "unsigned"),
            ("l1,tenant-1,1200,2024-01-15,5.00,transfer,x,,false", "invalid entry type"),
            ("l1,tenant-1,1200,not-a-date,5.00,debit,x,,false", "invalid date"),
        ],
    )
    def test_malformed_rows_fail_the_load(self, tmp_path, csv_files, ledger_row, message):
        bank, ledger, _ = csv_files
        ledger.write_text(LEDGER_CSV.splitlines()[0] + "\n" + ledger_row + "\n")
        repository = CsvRecordRepository(bank, ledger)

        with pytest.raises(DataAccessError, match=message):
            repository.load_window(TENANT, START, END)

    def test_missing_file(self, tmp_path, csv_files):
        _, ledger, _ = csv_files
        repository = CsvRecordRepository(tmp_path / "missing.csv", ledger)

        with pytest.raises(DataAccessError):
            repository.load_window(TENANT, START, END)


class TestCsvWriteBack:
    def test_flags_written_to_both_files(self, csv_files):
        bank, ledger, documents = csv_files
        engine = ReconciliationEngine(CsvRecordRepository(bank, ledger, documents))

        report = engine.reconcile(TENANT, START, END, write_back=True)

        assert report.matched == 2
        bank_df = pd.read_csv(bank, dtype=str).set_index("id")
        assert bank_df.loc["b1", "reconciled"] == "true"
        assert bank_df.loc["b1", "reconciled_with_ledger"] == "l1"
        assert bank_df.loc["b3", "reconciled"] == "false"
        ledger_df = pd.read_csv(ledger, dtype=str).set_index("id")
        assert ledger_df.loc["l2", "reconciled"] == "true"

        reloaded = CsvRecordRepository(bank, ledger)
        assert reloaded.get_bank_transaction(TENANT, "b2").reconciled is True

    def test_failed_write_leaves_files_untouched(self, csv_files):
        bank, ledger, _ = csv_files
        repository = CsvRecordRepository(bank, ledger)
        before = (bank.read_text(), ledger.read_text())

        with pytest.raises(DataAccessError):
            repository.confirm_link(TENANT, ReconciliationLink("b1", ledger_entry_id="ghost"))

        assert (bank.read_text(), ledger.read_text()) == before

    def test_no_temporary_files_left(self, csv_files):
        bank, ledger, _ = csv_files
        repository = CsvRecordRepository(bank, ledger)

        repository.confirm_link(TENANT, ReconciliationLink("b1", ledger_entry_id="l1"))

        assert sorted(p.name for p in bank.parent.iterdir()) == [
            "bank.csv",
            "documents.csv",
            "ledger.csv",
        ]

    def test_document_link_written(self, csv_files):
        bank, ledger, documents = csv_files
        engine = ReconciliationEngine(CsvRecordRepository(bank, ledger, documents))

        engine.confirm_match(TENANT, "b2", document_id="d1")

        bank_df = pd.read_csv(bank, dtype=str).set_index("id")
        assert bank_df.loc["b2", "reconciled"] == "true"
        assert bank_df.loc["b2", "reconciled_with_document"] == "d1"
        assert pd.isna(bank_df.loc["b2", "reconciled_with_ledger"])

        txn = CsvRecordRepository(bank, ledger).get_bank_transaction(TENANT, "b2")
        assert txn.reconciled_with_document == "d1"
        assert txn.reconciled_with is None

    def test_bank_file_restored_when_ledger_replace_fails(self, csv_files, monkeypatch):
        bank, ledger, _ = csv_files
        repository = CsvRecordRepository(bank, ledger)
        before = (bank.read_text(), ledger.read_text())
        real_replace = os.replace

        def replace(src, dst):
            if Path(dst) == ledger:
                raise OSError("disk full")
            real_replace(src, dst)

        monkeypatch.setattr(os, "replace", replace)

        with pytest.raises(DataAccessError):
            repository.confirm_link(TENANT, ReconciliationLink("b1", ledger_entry_id="l1"))

        assert (bank.read_text(), ledger.read_text()) == before
        assert sorted(p.name for p in bank.parent.iterdir()) == [
            "bank.csv",
            "documents.csv",
            "ledger.csv",
        ]

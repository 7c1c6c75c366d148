"""Tests for the command-line interface."""

import json
from datetime import date

import pandas as pd
import pytest
from click.testing import CliRunner

from bank_ledger_recon.cli import main
from bank_ledger_recon.repository.sql_repository import (
    SqlRecordRepository,
    bank_transactions,
    ledger_entries,
    tenants,
)

BANK_CSV = """id,account_id,date,amount,description,reconciled,reconciled_with_ledger
b1,acc-1,2024-01-15,100.00,Office Supplies Ltd,false,
b2,acc-1,2024-01-20,-30.00,Card,false,
"""

LEDGER_CSV = """id,account_code,transaction_date,amount,entry_type,description,reconciled
l1,1200,2024-01-19,100.02,debit,Office Supplies Ltd.,false
l2,1200,2024-01-20,30.00,credit,Card,false
"""

WINDOW = ["--tenant", "acme", "--start", "2024-01-01", "--end", "2024-01-31"]


@pytest.fixture
def csv_files(tmp_path):
    bank = tmp_path / "bank.csv"
    ledger = tmp_path / "ledger.csv"
    bank.write_text(BANK_CSV)
    ledger.write_text(LEDGER_CSV)
    return bank, ledger


class TestReconcileCommand:
    def test_writes_excel_and_json(self, csv_files, tmp_path):
        bank, ledger = csv_files
        output = tmp_path / "report.xlsx"
        json_output = tmp_path / "report.json"

        result = CliRunner().invoke(
            main,
            ["reconcile", str(bank), str(ledger), *WINDOW, "-o", str(output), "--json", str(json_output)],
        )

        assert result.exit_code == 0, result.output
        assert output.exists()
        data = json.loads(json_output.read_text())
        assert data["matched"] == 1
        assert data["periodStart"] == "2024-01-01"
        assert "Reconciliation Summary" in result.output

    def test_dry_run_writes_nothing(self, csv_files, tmp_path):
        bank, ledger = csv_files
        output = tmp_path / "report.xlsx"
        before = bank.read_text()

        result = CliRunner().invoke(
            main,
            ["reconcile", str(bank), str(ledger), *WINDOW, "-o", str(output), "--write-back", "--dry-run"],
        )

        assert result.exit_code == 0, result.output
        assert "Dry run" in result.output
        assert not output.exists()
        assert bank.read_text() == before

    def test_write_back(self, csv_files, tmp_path):
        bank, ledger = csv_files

        result = CliRunner().invoke(
            main,
            ["reconcile", str(bank), str(ledger), *WINDOW, "-o", str(tmp_path / "r.xlsx"), "--write-back"],
        )

        assert result.exit_code == 0, result.output
        flags = pd.read_csv(bank, dtype=str).set_index("id")
        assert flags.loc["b2", "reconciled"] == "true"
        assert flags.loc["b2", "reconciled_with_ledger"] == "l2"

    def test_invalid_window_exits_nonzero(self, csv_files):
        bank, ledger = csv_files

        result = CliRunner().invoke(
            main,
            ["reconcile", str(bank), str(ledger), "--tenant", "acme", "--start", "2024-02-01", "--end", "2024-01-01"],
        )

        assert result.exit_code == 1
        assert "Error" in result.output


class TestSuggestAndConfirm:
    def test_suggest_lists_candidates(self, csv_files):
        bank, ledger = csv_files

        result = CliRunner().invoke(
            main, ["suggest", str(bank), str(ledger), "--tenant", "acme", "--transaction", "b1"]
        )

        assert result.exit_code == 0, result.output
        assert "l1" in result.output

    def test_suggest_unknown_transaction(self, csv_files):
        bank, ledger = csv_files

        result = CliRunner().invoke(
            main, ["suggest", str(bank), str(ledger), "--tenant", "acme", "--transaction", "nope"]
        )

        assert result.exit_code == 0
        assert "No candidates" in result.output

    def test_confirm_writes_link(self, csv_files):
        bank, ledger = csv_files

        result = CliRunner().invoke(
            main,
            ["confirm", str(bank), str(ledger), "--tenant", "acme", "--transaction", "b1", "--ledger-entry", "l1"],
        )

        assert result.exit_code == 0, result.output
        flags = pd.read_csv(ledger, dtype=str).set_index("id")
        assert flags.loc["l1", "reconciled"] == "true"

    def test_confirm_without_target(self, csv_files):
        bank, ledger = csv_files

        result = CliRunner().invoke(
            main, ["confirm", str(bank), str(ledger), "--tenant", "acme", "--transaction", "b1"]
        )

        assert result.exit_code == 1


def test_reconcile_db(tmp_path):
    url = f"sqlite:///{tmp_path / 'recon.db'}"
    repository = SqlRecordRepository(url)
    repository.create_schema()
    with repository.engine.begin() as conn:
        conn.execute(tenants.insert(), [{"id": "acme", "name": "Acme"}])
        conn.execute(
            bank_transactions.insert(),
            [{"id": "b1", "tenant_id": "acme", "account_id": "acc-1", "date": date(2024, 1, 5), "amount": 10}],
        )
        conn.execute(
            ledger_entries.insert(),
            [
                {
                    "id": "l1",
                    "tenant_id": "acme",
                    "account_code": "1200",
                    "transaction_date": date(2024, 1, 5),
                    "amount": 10,
                    "entry_type": "debit",
                }
            ],
        )

    result = CliRunner().invoke(main, ["reconcile-db", "--database-url", url, *WINDOW, "--dry-run"])

    assert result.exit_code == 0, result.output
    assert "Dry run" in result.output


def test_reconcile_db_needs_url():
    result = CliRunner().invoke(main, ["reconcile-db", *WINDOW])
    assert result.exit_code == 2


def test_init_config(tmp_path):
    output = tmp_path / "config.yaml"

    result = CliRunner().invoke(main, ["init-config", "-o", str(output)])

    assert result.exit_code == 0
    assert output.exists()

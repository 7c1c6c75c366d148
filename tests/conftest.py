"""Shared fixtures and record builders for the reconciliation test suite."""

from datetime import date, datetime, time
from decimal import Decimal

import pytest

from bank_ledger_recon.config import ReconConfig
from bank_ledger_recon.matching.engine import ReconciliationEngine
from bank_ledger_recon.models.records import (
    BankTransaction,
    CandidateDocument,
    EntryType,
    LedgerEntry,
    RecordWindow,
)
from bank_ledger_recon.repository.base import (
    bank_query_order,
    document_query_order,
    ledger_query_order,
)
from bank_ledger_recon.repository.memory import InMemoryRecordRepository

TENANT = "tenant-1"
ACCOUNT = "acc-1"
JAN_START = date(2024, 1, 1)
JAN_END = date(2024, 1, 31)


def _make_bank(id, amount, day, description="", **kwargs) -> BankTransaction:
    """Helper to create a BankTransaction with defaults."""
    defaults = {
        "tenant_id": TENANT,
        "account_id": ACCOUNT,
    }
    defaults.update(kwargs)
    return BankTransaction(
        id=id,
        date=day,
        amount=Decimal(str(amount)),
        description=description,
        **defaults,
    )


def _make_ledger(
    id, amount, day, entry_type=EntryType.DEBIT, description="", **kwargs
) -> LedgerEntry:
    """Helper to create a LedgerEntry with defaults."""
    defaults = {
        "tenant_id": TENANT,
        "account_code": "1200",
    }
    defaults.update(kwargs)
    return LedgerEntry(
        id=id,
        transaction_date=day,
        amount=Decimal(str(amount)),
        entry_type=entry_type,
        description=description,
        **defaults,
    )


def _make_document(id, total, day, file_name=None, **kwargs) -> CandidateDocument:
    """Helper to create a CandidateDocument created at noon on ``day``."""
    defaults = {"tenant_id": TENANT}
    defaults.update(kwargs)
    return CandidateDocument(
        id=id,
        file_name=file_name or f"{id}.pdf",
        extracted_total=Decimal(str(total)),
        created_at=datetime.combine(day, time(12, 0)),
        **defaults,
    )


def _make_window(bank=(), ledger=(), documents=(), start=JAN_START, end=JAN_END):
    """Build a RecordWindow the way a repository returns it: in query order."""
    return RecordWindow(
        tenant_id=TENANT,
        period_start=start,
        period_end=end,
        bank_transactions=sorted(bank, key=bank_query_order),
        ledger_entries=sorted(ledger, key=ledger_query_order),
        documents=sorted(documents, key=document_query_order),
    )


@pytest.fixture
def make_bank():
    return _make_bank


@pytest.fixture
def make_ledger():
    return _make_ledger


@pytest.fixture
def make_document():
    return _make_document


@pytest.fixture
def make_window():
    return _make_window


@pytest.fixture
def config():
    """Default configuration for each test."""
    return ReconConfig()


@pytest.fixture
def engine_for(config):
    """Factory building an engine over an in-memory repository."""

    def _engine(bank=(), ledger=(), documents=(), engine_config=None):
        repository = InMemoryRecordRepository(bank, ledger, documents, tenants=[TENANT])
        return ReconciliationEngine(repository, engine_config or config), repository

    return _engine

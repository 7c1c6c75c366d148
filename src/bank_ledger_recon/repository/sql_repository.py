"""
SQL-backed repository using SQLAlchemy Core.

The schema mirrors the system-of-record tables the engine reads from. The
reconciliation write-back runs inside a single transaction.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Mapping, Optional, Union
import logging

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    and_,
    create_engine,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..models.records import BankTransaction, CandidateDocument, EntryType, LedgerEntry
from ..utils.exceptions import DataAccessError
from .base import RecordRepository, ReconciliationLink

logger = logging.getLogger(__name__)

metadata = MetaData()

tenants = Table(
    "tenants",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(255)),
)

bank_accounts = Table(
    "bank_accounts",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("tenant_id", String(64), nullable=False, index=True),
    Column("name", String(255)),
)

bank_transactions = Table(
    "bank_transactions",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("tenant_id", String(64), nullable=False, index=True),
    Column("account_id", String(64), nullable=False),
    Column("transaction_id", String(128)),
    Column("date", Date, nullable=False),
    Column("amount", Numeric(18, 2), nullable=False),
    Column("currency", String(3), nullable=False, default="GBP"),
    Column("description", Text, nullable=False, default=""),
    Column("reconciled", Boolean, nullable=False, default=False),
    Column("reconciled_with_ledger", String(64)),
    Column("reconciled_with_document", String(64)),
)

ledger_entries = Table(
    "ledger_entries",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("tenant_id", String(64), nullable=False, index=True),
    Column("account_code", String(32), nullable=False),
    Column("transaction_date", Date, nullable=False),
    Column("amount", Numeric(18, 2), nullable=False),
    Column("entry_type", String(10), nullable=False),
    Column("description", Text, nullable=False, default=""),
    Column("document_id", String(64)),
    Column("reconciled", Boolean, nullable=False, default=False),
    Column("reconciled_with", String(64)),
)

documents = Table(
    "documents",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("tenant_id", String(64), nullable=False, index=True),
    Column("file_name", String(255), nullable=False),
    Column("extracted_total", Numeric(18, 2)),
    Column("created_at", DateTime, nullable=False),
)


class SqlRecordRepository(RecordRepository):
    """Repository over a relational store reachable through SQLAlchemy."""

    def __init__(self, engine: Union[Engine, str], echo: bool = False):
        """
        Initialize the repository.

        Args:
            engine: SQLAlchemy engine or database URL
            echo: Log emitted SQL (only used when a URL is given)
        """
        if isinstance(engine, str):
            engine = create_engine(engine, echo=echo)
        self.engine = engine

    def create_schema(self) -> None:
        """Create the tables if they do not exist."""
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise DataAccessError(f"Failed to create schema: {e}") from e

    def _fetch(self, stmt) -> list[Mapping[str, Any]]:
        try:
            with self.engine.connect() as conn:
                return list(conn.execute(stmt).mappings())
        except SQLAlchemyError as e:
            logger.error(f"Query failed: {e}")
            raise DataAccessError(f"Query failed: {e}") from e

    # Row mapping

    @staticmethod
    def _to_bank_transaction(row: Mapping[str, Any]) -> BankTransaction:
        return BankTransaction(
            id=row["id"],
            tenant_id=row["tenant_id"],
            account_id=row["account_id"],
            external_transaction_id=row["transaction_id"],
            date=row["date"],
            amount=Decimal(str(row["amount"])),
            currency=row["currency"],
            description=row["description"] or "",
            reconciled=bool(row["reconciled"]),
            reconciled_with=row["reconciled_with_ledger"],
            reconciled_with_document=row["reconciled_with_document"],
        )

    @staticmethod
    def _to_ledger_entry(row: Mapping[str, Any]) -> LedgerEntry:
        try:
            entry_type = EntryType(str(row["entry_type"]).lower())
        except ValueError as e:
            raise DataAccessError(
                f"Ledger entry {row['id']}: invalid entry type {row['entry_type']!r}"
            ) from e
        return LedgerEntry(
            id=row["id"],
            tenant_id=row["tenant_id"],
            account_code=row["account_code"],
            transaction_date=row["transaction_date"],
            amount=Decimal(str(row["amount"])),
            entry_type=entry_type,
            description=row["description"] or "",
            document_id=row["document_id"],
            reconciled=bool(row["reconciled"]),
        )

    @staticmethod
    def _to_document(row: Mapping[str, Any]) -> CandidateDocument:
        return CandidateDocument(
            id=row["id"],
            tenant_id=row["tenant_id"],
            file_name=row["file_name"],
            extracted_total=Decimal(str(row["extracted_total"] or 0)),
            created_at=row["created_at"],
        )

    # RecordRepository interface

    def tenant_exists(self, tenant_id: str) -> bool:
        rows = self._fetch(select(tenants.c.id).where(tenants.c.id == tenant_id))
        return bool(rows)

    def account_exists(self, tenant_id: str, account_id: str) -> bool:
        """An account is known if it is registered or has any bank transaction."""
        registered = select(bank_accounts.c.id).where(
            and_(
                bank_accounts.c.tenant_id == tenant_id,
                bank_accounts.c.id == account_id,
            )
        )
        if self._fetch(registered):
            return True

        stmt = (
            select(bank_transactions.c.id)
            .where(
                and_(
                    bank_transactions.c.tenant_id == tenant_id,
                    bank_transactions.c.account_id == account_id,
                )
            )
            .limit(1)
        )
        return bool(self._fetch(stmt))

    def get_bank_transaction(
        self, tenant_id: str, transaction_id: str
    ) -> Optional[BankTransaction]:
        rows = self._fetch(
            select(bank_transactions).where(
                and_(
                    bank_transactions.c.id == transaction_id,
                    bank_transactions.c.tenant_id == tenant_id,
                )
            )
        )
        return self._to_bank_transaction(rows[0]) if rows else None

    def get_ledger_entry(self, tenant_id: str, entry_id: str) -> Optional[LedgerEntry]:
        rows = self._fetch(
            select(ledger_entries).where(
                and_(
                    ledger_entries.c.id == entry_id,
                    ledger_entries.c.tenant_id == tenant_id,
                )
            )
        )
        return self._to_ledger_entry(rows[0]) if rows else None

    def _fetch_bank_transactions(
        self,
        tenant_id: str,
        start: date,
        end: date,
        account_id: Optional[str],
    ) -> list[BankTransaction]:
        stmt = select(bank_transactions).where(
            and_(
                bank_transactions.c.tenant_id == tenant_id,
                bank_transactions.c.date.between(start, end),
            )
        )
        if account_id is not None:
            stmt = stmt.where(bank_transactions.c.account_id == account_id)
        stmt = stmt.order_by(
            bank_transactions.c.date, bank_transactions.c.amount, bank_transactions.c.id
        )
        return [self._to_bank_transaction(row) for row in self._fetch(stmt)]

    def _fetch_ledger_entries(
        self,
        tenant_id: str,
        start: date,
        end: date,
        unreconciled_only: bool,
    ) -> list[LedgerEntry]:
        stmt = select(ledger_entries).where(
            and_(
                ledger_entries.c.tenant_id == tenant_id,
                ledger_entries.c.transaction_date.between(start, end),
            )
        )
        if unreconciled_only:
            stmt = stmt.where(ledger_entries.c.reconciled.is_(False))
        stmt = stmt.order_by(
            ledger_entries.c.transaction_date, ledger_entries.c.amount, ledger_entries.c.id
        )
        return [self._to_ledger_entry(row) for row in self._fetch(stmt)]

    def _fetch_documents(
        self, tenant_id: str, start: date, end: date
    ) -> list[CandidateDocument]:
        lower = datetime.combine(start, time.min)
        upper = datetime.combine(end + timedelta(days=1), time.min)
        stmt = (
            select(documents)
            .where(
                and_(
                    documents.c.tenant_id == tenant_id,
                    documents.c.created_at >= lower,
                    documents.c.created_at < upper,
                    documents.c.extracted_total.is_not(None),
                )
            )
            .order_by(documents.c.created_at, documents.c.id)
        )
        return [self._to_document(row) for row in self._fetch(stmt)]

    def _apply_links(self, tenant_id: str, links: list[ReconciliationLink]) -> None:
        try:
            with self.engine.begin() as conn:
                for link in links:
                    result = conn.execute(
                        update(bank_transactions)
                        .where(
                            and_(
                                bank_transactions.c.id == link.bank_transaction_id,
                                bank_transactions.c.tenant_id == tenant_id,
                            )
                        )
                        .values(
                            reconciled=True,
                            reconciled_with_ledger=link.ledger_entry_id,
                            reconciled_with_document=link.document_id,
                        )
                    )
                    if result.rowcount != 1:
                        raise DataAccessError(
                            f"Bank transaction {link.bank_transaction_id} not found "
                            f"for tenant {tenant_id}"
                        )

                    if link.ledger_entry_id is None:
                        continue

                    result = conn.execute(
                        update(ledger_entries)
                        .where(
                            and_(
                                ledger_entries.c.id == link.ledger_entry_id,
                                ledger_entries.c.tenant_id == tenant_id,
                            )
                        )
                        .values(reconciled=True, reconciled_with=link.bank_transaction_id)
                    )
                    if result.rowcount != 1:
                        raise DataAccessError(
                            f"Ledger entry {link.ledger_entry_id} not found for tenant {tenant_id}"
                        )
        except SQLAlchemyError as e:
            logger.error(f"Reconciliation write-back rolled back: {e}")
            raise DataAccessError(f"Reconciliation write-back failed: {e}") from e

"""
CSV-backed repository.
Reads bank, ledger and document exports and maps rows to typed records.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional
import logging
import os
import shutil
import tempfile

import pandas as pd

from ..config import ReconConfig
from ..models.records import BankTransaction, CandidateDocument, EntryType, LedgerEntry
from ..utils.exceptions import DataAccessError
from .base import RecordRepository, ReconciliationLink

logger = logging.getLogger(__name__)

TRUE_VALUES = {"true", "1", "yes", "y", "t"}


class CsvRecordRepository(RecordRepository):
    """
    Repository over CSV exports.

    Column names are taken from ``input.<bank|ledger|documents>.column_mappings``.
    When an export has no tenant column every row is assigned to
    ``default_tenant``. A malformed row fails the load rather than being
    skipped, since a report built from a partial window would be wrong.
    """

    def __init__(
        self,
        bank_path: Path,
        ledger_path: Path,
        documents_path: Optional[Path] = None,
        config: Optional[ReconConfig] = None,
        default_tenant: Optional[str] = None,
    ):
        """
        Initialize the repository.

        Args:
            bank_path: Path to the bank transactions CSV
            ledger_path: Path to the ledger entries CSV
            documents_path: Optional path to the candidate documents CSV
            config: Application configuration object
            default_tenant: Tenant assigned to rows of exports without a tenant column
        """
        self.config = config or ReconConfig()
        self.bank_path = Path(bank_path)
        self.ledger_path = Path(ledger_path)
        self.documents_path = Path(documents_path) if documents_path else None
        self.default_tenant = default_tenant

        input_config = self.config.input
        self.bank_settings = input_config.bank
        self.ledger_settings = input_config.ledger
        self.document_settings = input_config.documents

        self._bank_cache: Optional[list[BankTransaction]] = None
        self._ledger_cache: Optional[list[LedgerEntry]] = None
        self._document_cache: Optional[list[CandidateDocument]] = None

    # Loading

    def _read_frame(self, file_path: Path, settings: dict[str, Any]) -> pd.DataFrame:
        try:
            return pd.read_csv(
                file_path,
                encoding=settings.get("encoding", "utf-8"),
                delimiter=settings.get("delimiter", ","),
                dtype=str,
            )
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read CSV file {file_path}: {e}")
            raise DataAccessError(f"Failed to read CSV file {file_path}: {e}") from e

    def _bank_transactions(self) -> list[BankTransaction]:
        if self._bank_cache is None:
            df = self._read_frame(self.bank_path, self.bank_settings)
            cols = self.bank_settings.get("column_mappings", {})
            date_format = self.bank_settings.get("date_format", "%Y-%m-%d")
            self._bank_cache = [
                self._bank_row(row, int(idx), cols, date_format) for idx, row in df.iterrows()
            ]
            logger.info(f"Loaded {len(self._bank_cache)} bank transactions from {self.bank_path}")
        return self._bank_cache

    def _ledger_entries(self) -> list[LedgerEntry]:
        if self._ledger_cache is None:
            df = self._read_frame(self.ledger_path, self.ledger_settings)
            cols = self.ledger_settings.get("column_mappings", {})
            date_format = self.ledger_settings.get("date_format", "%Y-%m-%d")
            self._ledger_cache = [
                self._ledger_row(row, int(idx), cols, date_format) for idx, row in df.iterrows()
            ]
            logger.info(f"Loaded {len(self._ledger_cache)} ledger entries from {self.ledger_path}")
        return self._ledger_cache

    def _documents(self) -> list[CandidateDocument]:
        if self._document_cache is None:
            if self.documents_path is None:
                self._document_cache = []
            else:
                df = self._read_frame(self.documents_path, self.document_settings)
                cols = self.document_settings.get("column_mappings", {})
                self._document_cache = [
                    self._document_row(row, int(idx), cols) for idx, row in df.iterrows()
                ]
        return self._document_cache

    def _bank_row(
        self, row: pd.Series, idx: int, cols: dict[str, str], date_format: str
    ) -> BankTransaction:
        where = f"{self.bank_path.name} row {idx}"
        return BankTransaction(
            id=self._required(row, cols.get("id", "id"), where),
            tenant_id=self._tenant(row, cols.get("tenant_id", "tenant_id"), where),
            account_id=self._text(row, cols.get("account_id", "account_id")) or "",
            external_transaction_id=self._text(
                row, cols.get("external_transaction_id", "transaction_id")
            ),
            date=self._parse_date(row.get(cols.get("date", "date")), date_format, where),
            amount=self._parse_amount(row.get(cols.get("amount", "amount")), where),
            currency=self._text(row, cols.get("currency", "currency")) or "GBP",
            description=self._text(row, cols.get("description", "description")) or "",
            reconciled=self._parse_bool(row.get(cols.get("reconciled", "reconciled"))),
            reconciled_with=self._text(row, cols.get("reconciled_with", "reconciled_with_ledger")),
            reconciled_with_document=self._text(
                row, cols.get("reconciled_with_document", "reconciled_with_document")
            ),
        )

    def _ledger_row(
        self, row: pd.Series, idx: int, cols: dict[str, str], date_format: str
    ) -> LedgerEntry:
        where = f"{self.ledger_path.name} row {idx}"
        raw_type = (self._text(row, cols.get("entry_type", "entry_type")) or "").lower()
        try:
            entry_type = EntryType(raw_type)
        except ValueError as e:
            raise DataAccessError(f"{where}: invalid entry type {raw_type!r}") from e

        amount = self._parse_amount(row.get(cols.get("amount", "amount")), where)
        if amount < 0:
            raise DataAccessError(f"{where}: ledger amounts must be unsigned, got {amount}")

        return LedgerEntry(
            id=self._required(row, cols.get("id", "id"), where),
            tenant_id=self._tenant(row, cols.get("tenant_id", "tenant_id"), where),
            account_code=self._text(row, cols.get("account_code", "account_code")) or "",
            transaction_date=self._parse_date(
                row.get(cols.get("transaction_date", "transaction_date")), date_format, where
            ),
            amount=amount,
            entry_type=entry_type,
            description=self._text(row, cols.get("description", "description")) or "",
            document_id=self._text(row, cols.get("document_id", "document_id")),
            reconciled=self._parse_bool(row.get(cols.get("reconciled", "reconciled"))),
        )

    def _document_row(
        self, row: pd.Series, idx: int, cols: dict[str, str]
    ) -> CandidateDocument:
        where = f"{self.documents_path.name} row {idx}"
        raw_created = row.get(cols.get("created_at", "created_at"))
        if raw_created is None or pd.isna(raw_created):
            raise DataAccessError(f"{where}: missing created_at")
        try:
            created_at = pd.to_datetime(raw_created).to_pydatetime()
        except (ValueError, TypeError) as e:
            raise DataAccessError(f"{where}: invalid created_at {raw_created!r}") from e

        return CandidateDocument(
            id=self._required(row, cols.get("id", "id"), where),
            tenant_id=self._tenant(row, cols.get("tenant_id", "tenant_id"), where),
            file_name=self._text(row, cols.get("file_name", "file_name")) or "",
            extracted_total=self._parse_amount(
                row.get(cols.get("extracted_total", "extracted_total")), where
            ),
            created_at=created_at,
        )

    # Field parsing

    def _text(self, row: pd.Series, column: str) -> Optional[str]:
        value = row.get(column)
        if value is None or pd.isna(value):
            return None
        text = str(value).strip()
        return text or None

    def _required(self, row: pd.Series, column: str, where: str) -> str:
        value = self._text(row, column)
        if value is None:
            raise DataAccessError(f"{where}: missing required column {column!r}")
        return value

    def _tenant(self, row: pd.Series, column: str, where: str) -> str:
        value = self._text(row, column) or self.default_tenant
        if value is None:
            raise DataAccessError(f"{where}: no tenant column and no default tenant")
        return value

    def _parse_date(self, date_value, date_format: str, where: str) -> date:
        if date_value is None or pd.isna(date_value):
            raise DataAccessError(f"{where}: missing date")

        try:
            return datetime.strptime(str(date_value).strip(), date_format).date()
        except ValueError:
            # Try pandas parser as fallback
            try:
                return pd.to_datetime(date_value).date()
            except (ValueError, TypeError) as e:
                raise DataAccessError(f"{where}: invalid date {date_value!r}") from e

    def _parse_amount(self, amount_value, where: str) -> Decimal:
        if amount_value is None or pd.isna(amount_value) or str(amount_value).strip() == "":
            raise DataAccessError(f"{where}: missing amount")

        cleaned = str(amount_value).replace("$", "").replace("£", "").replace(",", "").strip()
        try:
            return Decimal(cleaned)
        except InvalidOperation as e:
            raise DataAccessError(f"{where}: invalid amount {amount_value!r}") from e

    def _parse_bool(self, value) -> bool:
        if value is None or pd.isna(value):
            return False
        return str(value).strip().lower() in TRUE_VALUES

    # RecordRepository interface

    def tenant_exists(self, tenant_id: str) -> bool:
        return (
            any(t.tenant_id == tenant_id for t in self._bank_transactions())
            or any(e.tenant_id == tenant_id for e in self._ledger_entries())
        )

    def account_exists(self, tenant_id: str, account_id: str) -> bool:
        # Exports carry no account register, so an account is known by its rows
        return any(
            t.tenant_id == tenant_id and t.account_id == account_id
            for t in self._bank_transactions()
        )

    def get_bank_transaction(
        self, tenant_id: str, transaction_id: str
    ) -> Optional[BankTransaction]:
        return next(
            (
                t
                for t in self._bank_transactions()
                if t.id == transaction_id and t.tenant_id == tenant_id
            ),
            None,
        )

    def get_ledger_entry(self, tenant_id: str, entry_id: str) -> Optional[LedgerEntry]:
        return next(
            (
                e
                for e in self._ledger_entries()
                if e.id == entry_id and e.tenant_id == tenant_id
            ),
            None,
        )

    def _fetch_bank_transactions(
        self,
        tenant_id: str,
        start: date,
        end: date,
        account_id: Optional[str],
    ) -> list[BankTransaction]:
        return [
            t
            for t in self._bank_transactions()
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
            e
            for e in self._ledger_entries()
            if e.tenant_id == tenant_id
            and start <= e.transaction_date <= end
            and not (unreconciled_only and e.reconciled)
        ]

    def _fetch_documents(
        self, tenant_id: str, start: date, end: date
    ) -> list[CandidateDocument]:
        return [
            d
            for d in self._documents()
            if d.tenant_id == tenant_id and start <= d.created_at.date() <= end
        ]

    def _apply_links(self, tenant_id: str, links: list[ReconciliationLink]) -> None:
        """
        Rewrite the bank and ledger exports with the reconciliation flags.

        Both files are fully written to temporary siblings before either is
        replaced. Each original is copied aside first and restored if a later
        replace fails, so a failure leaves the originals untouched.
        """
        bank_cols = self.bank_settings.get("column_mappings", {})
        ledger_cols = self.ledger_settings.get("column_mappings", {})

        known_bank = {t.id for t in self._bank_transactions() if t.tenant_id == tenant_id}
        known_ledger = {e.id for e in self._ledger_entries() if e.tenant_id == tenant_id}

        bank_updates: dict[str, ReconciliationLink] = {}
        ledger_updates: set[str] = set()
        for link in links:
            if link.bank_transaction_id not in known_bank:
                raise DataAccessError(
                    f"Bank transaction {link.bank_transaction_id} not found for tenant {tenant_id}"
                )
            bank_updates[link.bank_transaction_id] = link
            if link.ledger_entry_id is not None:
                if link.ledger_entry_id not in known_ledger:
                    raise DataAccessError(
                        f"Ledger entry {link.ledger_entry_id} not found for tenant {tenant_id}"
                    )
                ledger_updates.add(link.ledger_entry_id)

        bank_df = self._read_frame(self.bank_path, self.bank_settings)
        ledger_df = self._read_frame(self.ledger_path, self.ledger_settings)

        id_col = bank_cols.get("id", "id")
        reconciled_col = bank_cols.get("reconciled", "reconciled")
        with_col = bank_cols.get("reconciled_with", "reconciled_with_ledger")
        document_col = bank_cols.get("reconciled_with_document", "reconciled_with_document")
        for column in (reconciled_col, with_col, document_col):
            if column not in bank_df.columns:
                bank_df[column] = None

        for idx, row_id in bank_df[id_col].items():
            link = bank_updates.get(str(row_id).strip())
            if link is not None:
                bank_df.at[idx, reconciled_col] = "true"
                bank_df.at[idx, with_col] = link.ledger_entry_id
                bank_df.at[idx, document_col] = link.document_id

        ledger_id_col = ledger_cols.get("id", "id")
        ledger_reconciled_col = ledger_cols.get("reconciled", "reconciled")
        if ledger_reconciled_col not in ledger_df.columns:
            ledger_df[ledger_reconciled_col] = None

        for idx, row_id in ledger_df[ledger_id_col].items():
            if str(row_id).strip() in ledger_updates:
                ledger_df.at[idx, ledger_reconciled_col] = "true"

        staged: list[tuple[str, Path]] = []
        backups: list[tuple[str, Path]] = []
        replaced: list[Path] = []
        try:
            for df, target, settings in (
                (bank_df, self.bank_path, self.bank_settings),
                (ledger_df, self.ledger_path, self.ledger_settings),
            ):
                staged.append((self._sibling(target, ".tmp"), target))
                df.to_csv(
                    staged[-1][0],
                    index=False,
                    encoding=settings.get("encoding", "utf-8"),
                    sep=settings.get("delimiter", ","),
                )
                backups.append((self._sibling(target, ".bak"), target))
                shutil.copy2(target, backups[-1][0])

            for tmp_name, target in staged:
                os.replace(tmp_name, target)
                replaced.append(target)
        except OSError as e:
            # Put back any export that was already replaced
            for backup_name, target in backups:
                if target in replaced:
                    os.replace(backup_name, target)
            raise DataAccessError(f"Failed to write reconciliation flags: {e}") from e
        finally:
            for leftover, _ in staged + backups:
                if os.path.exists(leftover):
                    os.remove(leftover)
            self._bank_cache = None
            self._ledger_cache = None

    def _sibling(self, target: Path, suffix: str) -> str:
        """Create an empty hidden file next to ``target`` and return its name."""
        fd, name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=suffix, dir=target.parent)
        os.close(fd)
        return name

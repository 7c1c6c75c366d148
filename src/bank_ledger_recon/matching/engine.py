"""
Reconciliation engine for bank transactions and ledger entries.

Runs the pipeline repository -> candidate generation -> scoring ->
assignment -> aggregation -> report in one of two modes:

* batch: strict profile, greedy first-fit assignment, a full report;
* interactive: fuzzy profile, ranked suggestions for a single bank
  transaction, nothing consumed and nothing written.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta
from typing import Optional, Sequence
import logging

from ..config import MatchProfile, ReconConfig
from ..models.records import BankTransaction, CandidateDocument, LedgerEntry, RecordWindow
from ..models.report import MatchCandidate, ReconciliationReport
from ..repository.base import RecordRepository, ReconciliationLink
from ..reports.builder import ReportBuilder
from ..utils.exceptions import ConfigurationError, InvalidWindowError, ReconciliationError
from .assigner import MatchAssigner
from .candidates import CandidateGenerator, TransactionCandidates
from .scorer import SimilarityScorer

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """
    Main reconciliation engine that orchestrates the matching process.

    Runs are stateless: every call loads its own window and owns its own
    exclusion set, so one engine may serve concurrent runs.
    """

    def __init__(
        self,
        repository: Optional[RecordRepository] = None,
        config: Optional[ReconConfig] = None,
    ):
        """
        Initialize the reconciliation engine.

        Args:
            repository: System of record; only ``reconcile_window`` works without one
            config: Application configuration (defaults when omitted)
        """
        self.repository = repository
        self.config = config or ReconConfig()
        self.scorer = SimilarityScorer(self.config.scoring)
        self.assigner = MatchAssigner(
            scorer=self.scorer,
            match_documents=self.config.matching.match_documents,
        )
        self.report_builder = ReportBuilder()

    def reconcile(
        self,
        tenant_id: str,
        period_start: date,
        period_end: date,
        account_id: Optional[str] = None,
        write_back: bool = False,
    ) -> ReconciliationReport:
        """
        Reconcile one tenant's period in batch mode.

        Args:
            tenant_id: Tenant whose books are reconciled
            period_start: First day of the period (inclusive)
            period_end: Last day of the period (inclusive)
            account_id: Restrict bank transactions to one account
            write_back: Flag matched records as reconciled in the store

        Returns:
            ReconciliationReport

        Raises:
            InvalidWindowError: If the window is rejected before loading
            DataAccessError: If loading or the write-back fails; no report is returned
        """
        repository = self._require_repository()
        window = repository.load_window(tenant_id, period_start, period_end, account_id)
        report = self.reconcile_window(window)

        if write_back:
            repository.mark_reconciled(tenant_id, report.items)

        return report

    def reconcile_window(
        self, window: RecordWindow, profile: Optional[MatchProfile] = None
    ) -> ReconciliationReport:
        """
        Reconcile an already loaded window. Performs no I/O.

        Args:
            window: Records in query order
            profile: Match profile (the strict profile when omitted)

        Returns:
            ReconciliationReport
        """
        start_time = datetime.now()
        profile = profile or self.config.matching.strict
        logger.info(
            f"Starting reconciliation for tenant {window.tenant_id} "
            f"{window.period_start}..{window.period_end}: "
            f"{len(window.bank_transactions)} bank txns, "
            f"{len(window.ledger_entries)} ledger entries"
        )

        documents: list[CandidateDocument] = []
        if self.config.matching.match_documents:
            documents = self._unlinked_documents(window)

        generator = CandidateGenerator(profile, window.ledger_entries, documents)
        candidate_lists = self._generate_candidates(generator, window.bank_transactions)

        assignment = self.assigner.assign(candidate_lists, window.ledger_entries)
        report = self.report_builder.build(window, assignment.items)

        elapsed = (datetime.now() - start_time).total_seconds()
        logger.info(
            f"Reconciliation complete in {elapsed:.2f}s: {report.matched} matched, "
            f"{report.unmatched} unmatched, match rate {report.summary.match_rate:.1%}"
        )
        return report

    def suggest_matches(
        self,
        tenant_id: str,
        transaction_id: str,
        threshold: Optional[float] = None,
    ) -> list[MatchCandidate]:
        """
        Suggest ranked candidates for one bank transaction.

        Only unreconciled ledger entries are considered. Nothing is consumed
        or written.

        Args:
            tenant_id: Tenant owning the transaction
            transaction_id: Bank transaction to find candidates for
            threshold: Minimum similarity (configured threshold when omitted)

        Returns:
            Candidates at or above the threshold, best first; empty if the
            transaction does not exist
        """
        repository = self._require_repository()
        bank_txn = repository.get_bank_transaction(tenant_id, transaction_id)
        if bank_txn is None:
            logger.warning(f"Bank transaction {transaction_id} not found for tenant {tenant_id}")
            return []

        window = timedelta(days=self.config.matching.fuzzy.date_window_days)
        ledger_entries, documents = repository.load_candidates(
            tenant_id, bank_txn.date - window, bank_txn.date + window
        )
        return self.suggest_for_transaction(bank_txn, ledger_entries, documents, threshold)

    def suggest_for_transaction(
        self,
        bank_txn: BankTransaction,
        ledger_entries: Sequence[LedgerEntry],
        documents: Sequence[CandidateDocument] = (),
        threshold: Optional[float] = None,
    ) -> list[MatchCandidate]:
        """Score and rank already loaded candidates against a bank transaction."""
        if threshold is None:
            threshold = self.config.matching.suggestion_threshold

        generator = CandidateGenerator(self.config.matching.fuzzy, ledger_entries, documents)
        scored = [
            self.scorer.to_match_candidate(bank_txn, candidate)
            for candidate in generator.candidates_for(bank_txn)
        ]
        ranked = self.assigner.rank(scored, threshold)

        logger.debug(
            f"Suggestions for {bank_txn.id}: {len(scored)} candidates scored, "
            f"{len(ranked)} at or above {threshold}"
        )
        return ranked

    def confirm_match(
        self,
        tenant_id: str,
        transaction_id: str,
        ledger_entry_id: Optional[str] = None,
        document_id: Optional[str] = None,
    ) -> ReconciliationLink:
        """
        Record a human-confirmed match.

        Raises:
            ReconciliationError: If neither a ledger entry nor a document is
                given, or either side is already reconciled
            InvalidWindowError: If the bank transaction does not exist
            DataAccessError: If the write-back fails
        """
        if not ledger_entry_id and not document_id:
            raise ReconciliationError(
                "A confirmed match needs a ledger entry or a document"
            )

        repository = self._require_repository()
        bank_txn = repository.get_bank_transaction(tenant_id, transaction_id)
        if bank_txn is None:
            raise InvalidWindowError(
                f"Bank transaction {transaction_id} not found for tenant {tenant_id}"
            )
        if bank_txn.reconciled:
            raise ReconciliationError(
                f"Bank transaction {transaction_id} is already reconciled with "
                f"{bank_txn.reconciled_with or bank_txn.reconciled_with_document}"
            )

        if ledger_entry_id:
            # A missing entry is reported by the write-back itself
            entry = repository.get_ledger_entry(tenant_id, ledger_entry_id)
            if entry is not None and entry.reconciled:
                raise ReconciliationError(
                    f"Ledger entry {ledger_entry_id} is already reconciled"
                )

        link = ReconciliationLink(
            bank_transaction_id=transaction_id,
            ledger_entry_id=ledger_entry_id,
            document_id=document_id,
        )
        repository.confirm_link(tenant_id, link)
        return link

    def _require_repository(self) -> RecordRepository:
        if self.repository is None:
            raise ConfigurationError("This operation needs a record repository")
        return self.repository

    def _unlinked_documents(self, window: RecordWindow) -> list[CandidateDocument]:
        """Documents no ledger entry of the window already points at."""
        linked = {e.document_id for e in window.ledger_entries if e.document_id}
        return [doc for doc in window.documents if doc.id not in linked]

    def _generate_candidates(
        self,
        generator: CandidateGenerator,
        bank_transactions: Sequence[BankTransaction],
    ) -> list[TransactionCandidates]:
        """Generate candidates per bank transaction, fanning out when configured."""
        include_documents = self.config.matching.match_documents
        workers = self.config.matching.workers

        if workers <= 1 or len(bank_transactions) < 2:
            return [
                generator.for_transaction(txn, include_documents)
                for txn in bank_transactions
            ]

        # map() yields in input order, which the assignment pass depends on
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(
                pool.map(
                    lambda txn: generator.for_transaction(txn, include_documents),
                    bank_transactions,
                )
            )

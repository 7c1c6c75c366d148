"""
Conflict-free assignment of bank transactions to candidates.

The authoritative pass is a greedy first-fit bipartite matching: bank
transactions are visited in query order and each accepts the first
candidate nobody has consumed yet, not the best-scoring one. The
interactive pass only ranks candidates and consumes nothing.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence
import logging

from ..models.records import (
    BankTransaction,
    Candidate,
    LedgerEntry,
    TargetType,
)
from ..models.report import ItemStatus, MatchCandidate, ReconciliationItem
from .amounts import amount_delta, signed_ledger_amount
from .candidates import CandidateKey, TransactionCandidates, candidate_key
from .scorer import SimilarityScorer

logger = logging.getLogger(__name__)


@dataclass
class Assignment:
    """Result of one strict assignment pass."""

    items: list[ReconciliationItem] = field(default_factory=list)
    matched_ids: set[CandidateKey] = field(default_factory=set)

    @property
    def matched_count(self) -> int:
        return sum(1 for item in self.items if item.is_matched)


class MatchAssigner:
    """Greedy, deterministic assignment of candidates to bank transactions."""

    def __init__(self, scorer: Optional[SimilarityScorer] = None, match_documents: bool = False):
        """
        Initialize the assigner.

        Args:
            scorer: Scorer used to explain accepted matches
            match_documents: Fall back to document candidates when no ledger entry fits
        """
        self.scorer = scorer or SimilarityScorer()
        self.match_documents = match_documents

    def assign(
        self,
        candidate_lists: Sequence[TransactionCandidates],
        ledger_entries: Sequence[LedgerEntry],
    ) -> Assignment:
        """
        Run the strict first-fit pass.

        Args:
            candidate_lists: Candidates per bank transaction, in bank query order
            ledger_entries: All ledger entries of the window, in query order

        Returns:
            Assignment covering every bank transaction and every ledger entry once
        """
        # Owned by this pass only; the loop must stay serialized
        matched_ids: set[CandidateKey] = set()
        items: list[ReconciliationItem] = []

        for candidates in candidate_lists:
            bank_txn = candidates.bank_transaction

            chosen = self._first_available(candidates.ledger_entries, matched_ids)
            if chosen is None and self.match_documents:
                chosen = self._first_available(candidates.documents, matched_ids)

            if chosen is None:
                items.append(self._unmatched_bank_item(bank_txn))
                continue

            items.append(self._matched_item(bank_txn, chosen, matched_ids))

        matched_count = sum(1 for item in items if item.is_matched)

        unmatched_ledger = 0
        for entry in ledger_entries:
            if (TargetType.LEDGER_ENTRY, entry.id) not in matched_ids:
                items.append(self._unmatched_ledger_item(entry))
                unmatched_ledger += 1

        logger.debug(
            f"Assignment pass: {len(candidate_lists)} bank txns, {matched_count} matched, "
            f"{unmatched_ledger} ledger entries unclaimed"
        )

        return Assignment(items=items, matched_ids=matched_ids)

    def rank(
        self, candidates: Iterable[MatchCandidate], threshold: float = 0.7
    ) -> list[MatchCandidate]:
        """
        Rank suggestions for interactive review.

        Args:
            candidates: Scored candidates for a single bank transaction
            threshold: Minimum similarity to keep

        Returns:
            Candidates at or above the threshold, best first
        """
        kept = [c for c in candidates if c.similarity >= threshold]
        return sorted(
            kept, key=lambda c: (-c.similarity, c.target_type.value, c.target_id)
        )

    def _first_available(
        self, candidates: Sequence[Candidate], matched_ids: set[CandidateKey]
    ) -> Optional[Candidate]:
        for candidate in candidates:
            if candidate_key(candidate) not in matched_ids:
                return candidate
        return None

    def _matched_item(
        self,
        bank_txn: BankTransaction,
        chosen: Candidate,
        matched_ids: set[CandidateKey],
    ) -> ReconciliationItem:
        matched_ids.add(candidate_key(chosen))

        ledger_entry_id: Optional[str] = None
        document_id: Optional[str] = None

        if isinstance(chosen, LedgerEntry):
            ledger_entry_id = chosen.id
            linked = chosen.document_id
            # A document linked to two matched ledger entries is claimed by the first
            if linked and (TargetType.DOCUMENT, linked) not in matched_ids:
                matched_ids.add((TargetType.DOCUMENT, linked))
                document_id = linked
        else:
            document_id = chosen.id

        result = self.scorer.score(bank_txn, chosen)
        delta = amount_delta(bank_txn, chosen)

        return ReconciliationItem(
            bank_transaction_id=bank_txn.id,
            ledger_entry_id=ledger_entry_id,
            document_id=document_id,
            date=bank_txn.date,
            amount=bank_txn.amount,
            description=bank_txn.description,
            status=ItemStatus.MATCHED,
            discrepancy=delta if delta != 0 else None,
            similarity=result.similarity,
            match_reasons=result.reasons,
        )

    def _unmatched_bank_item(self, bank_txn: BankTransaction) -> ReconciliationItem:
        return ReconciliationItem(
            bank_transaction_id=bank_txn.id,
            ledger_entry_id=None,
            document_id=None,
            date=bank_txn.date,
            amount=bank_txn.amount,
            description=bank_txn.description,
            status=ItemStatus.UNMATCHED,
        )

    def _unmatched_ledger_item(self, entry: LedgerEntry) -> ReconciliationItem:
        return ReconciliationItem(
            bank_transaction_id=None,
            ledger_entry_id=entry.id,
            document_id=entry.document_id,
            date=entry.transaction_date,
            amount=signed_ledger_amount(entry),
            description=entry.description,
            status=ItemStatus.UNMATCHED,
        )

"""
Candidate generation: restricts each bank transaction's search space to
records inside the match window (amount tolerance and date window).
"""

from bisect import bisect_left, bisect_right
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import AbstractSet, Iterable, Sequence

from ..config import MatchProfile
from ..models.records import (
    BankTransaction,
    Candidate,
    CandidateDocument,
    LedgerEntry,
    TargetType,
    target_type_of,
)
from .amounts import amount_delta

CandidateKey = tuple[TargetType, str]


def candidate_key(candidate: Candidate) -> CandidateKey:
    """Return the exclusion-set key of a candidate."""
    return target_type_of(candidate), candidate.id


@dataclass
class TransactionCandidates:
    """Candidates found for one bank transaction, each list in query order."""

    bank_transaction: BankTransaction
    ledger_entries: list[Candidate] = field(default_factory=list)
    documents: list[Candidate] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.ledger_entries) + len(self.documents)


class CandidateIndex:
    """
    Date index over candidates that preserves their original (query) order.

    A lookup bisects to the date window and only inspects records inside it,
    so per-transaction cost does not grow with the whole ledger.
    """

    def __init__(self, candidates: Iterable[Candidate]):
        self._candidates = list(candidates)
        self._positions = sorted(
            range(len(self._candidates)),
            key=lambda pos: (self._candidates[pos].date, pos),
        )
        self._dates = [self._candidates[pos].date for pos in self._positions]

    def __len__(self) -> int:
        return len(self._candidates)

    def between(self, start: date, end: date) -> list[Candidate]:
        """Return candidates dated within [start, end], in query order."""
        lo = bisect_left(self._dates, start)
        hi = bisect_right(self._dates, end)
        return [self._candidates[pos] for pos in sorted(self._positions[lo:hi])]


class CandidateGenerator:
    """Finds candidates for a bank transaction within a match profile's window."""

    def __init__(
        self,
        profile: MatchProfile,
        ledger_entries: Sequence[LedgerEntry] = (),
        documents: Sequence[CandidateDocument] = (),
    ):
        """
        Initialize the generator.

        Args:
            profile: Amount tolerance and date window to apply
            ledger_entries: Ledger entries in query order
            documents: Candidate documents in query order
        """
        self.profile = profile
        self.absolute_tolerance = Decimal(str(profile.amount_tolerance))
        self.percent_tolerance = Decimal(str(profile.amount_tolerance_percent))
        self.window = timedelta(days=profile.date_window_days)
        self._ledger_index = CandidateIndex(ledger_entries)
        self._document_index = CandidateIndex(documents)

    def amount_tolerance(self, bank_txn: BankTransaction) -> Decimal:
        """Return the amount epsilon for a bank transaction."""
        relative = abs(bank_txn.amount) * self.percent_tolerance / Decimal("100")
        return max(self.absolute_tolerance, relative)

    def ledger_candidates(
        self,
        bank_txn: BankTransaction,
        exclude: AbstractSet[CandidateKey] = frozenset(),
    ) -> list[Candidate]:
        """Return ledger entries inside the match window, in query order."""
        return self._filter(bank_txn, self._ledger_index, exclude)

    def document_candidates(
        self,
        bank_txn: BankTransaction,
        exclude: AbstractSet[CandidateKey] = frozenset(),
    ) -> list[Candidate]:
        """Return documents inside the match window, in query order."""
        return self._filter(bank_txn, self._document_index, exclude)

    def candidates_for(
        self,
        bank_txn: BankTransaction,
        exclude: AbstractSet[CandidateKey] = frozenset(),
        include_documents: bool = True,
    ) -> list[Candidate]:
        """Return ledger candidates followed by document candidates."""
        candidates = self.ledger_candidates(bank_txn, exclude)
        if include_documents:
            candidates.extend(self.document_candidates(bank_txn, exclude))
        return candidates

    def for_transaction(
        self, bank_txn: BankTransaction, include_documents: bool = True
    ) -> TransactionCandidates:
        """Collect ledger and document candidates separately for assignment."""
        return TransactionCandidates(
            bank_transaction=bank_txn,
            ledger_entries=self.ledger_candidates(bank_txn),
            documents=self.document_candidates(bank_txn) if include_documents else [],
        )

    def _filter(
        self,
        bank_txn: BankTransaction,
        index: CandidateIndex,
        exclude: AbstractSet[CandidateKey],
    ) -> list[Candidate]:
        if not len(index):
            return []

        epsilon = self.amount_tolerance(bank_txn)
        in_window = index.between(bank_txn.date - self.window, bank_txn.date + self.window)

        return [
            candidate
            for candidate in in_window
            if candidate_key(candidate) not in exclude
            and abs(amount_delta(bank_txn, candidate)) < epsilon
        ]

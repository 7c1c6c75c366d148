"""
Multi-factor similarity scoring between a bank transaction and a candidate.

The similarity is a weighted sum of three bounded sub-scores (amount,
description, date), so it always lies in [0, 1]. Every score comes with a
list of human-readable reasons derived from the same thresholds.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional
import logging

from rapidfuzz.distance import Levenshtein

from ..config import ScoringConfig
from ..models.records import BankTransaction, Candidate, target_type_of
from ..models.report import MatchCandidate
from ..utils.exceptions import AmbiguousMatchWarning
from .amounts import candidate_amount, comparable_amounts

logger = logging.getLogger(__name__)

EXACT_AMOUNT_TOLERANCE = Decimal("0.01")
ONE_PERCENT = Decimal("0.01")
FIVE_PERCENT = Decimal("0.05")

# (max days apart, score, reason); first satisfied bracket wins
DATE_BRACKETS: tuple[tuple[int, float, str], ...] = (
    (0, 1.0, "Same date"),
    (1, 0.9, "Date within 1 day"),
    (3, 0.7, "Date within 3 days"),
    (7, 0.5, "Date within 7 days"),
)
DATE_FALLBACK_SCORE = 0.2


@dataclass
class ScoreResult:
    """Similarity of one (bank transaction, candidate) pair with its explanation."""

    similarity: float
    reasons: list[str] = field(default_factory=list)
    amount_score: float = 0.0
    description_score: float = 0.0
    date_score: float = 0.0


def description_similarity(first: str, second: str) -> float:
    """
    Return ``1 - levenshtein / max(len)`` over lower-cased strings.

    Two empty descriptions are a perfect match so minimal-metadata feeds are
    not penalized.
    """
    first = (first or "").lower()
    second = (second or "").lower()
    max_len = max(len(first), len(second))
    if max_len == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(first, second) / max_len


def amount_similarity(bank_amount: Decimal, other: Decimal) -> tuple[float, Optional[str]]:
    """Score the amount difference relative to the bank amount."""
    diff = abs(bank_amount - other)
    magnitude = abs(bank_amount)

    if diff < EXACT_AMOUNT_TOLERANCE:
        return 1.0, "Exact amount match"
    if diff < magnitude * ONE_PERCENT:
        return 0.9, "Amount within 1%"
    if diff < magnitude * FIVE_PERCENT:
        return 0.7, "Amount within 5%"
    return 0.3, None


def date_similarity(days_apart: int) -> tuple[float, Optional[str]]:
    """Score how many calendar days separate the two records."""
    days_apart = abs(days_apart)
    for max_days, score, reason in DATE_BRACKETS:
        if days_apart <= max_days:
            return score, reason
    return DATE_FALLBACK_SCORE, None


class SimilarityScorer:
    """Scores candidates for a bank transaction."""

    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or ScoringConfig()

    def score(self, bank_txn: BankTransaction, candidate: Candidate) -> ScoreResult:
        """
        Compute the weighted similarity of a bank transaction and a candidate.

        Args:
            bank_txn: Bank transaction being reconciled
            candidate: Ledger entry or document

        Returns:
            ScoreResult with the similarity in [0, 1] and its reasons
        """
        weights = self.config.weights
        reasons: list[str] = []

        bank_amount, other_amount = comparable_amounts(bank_txn, candidate)
        amount_score, amount_reason = amount_similarity(bank_amount, other_amount)
        if amount_reason:
            reasons.append(amount_reason)

        date_score, date_reason = date_similarity((bank_txn.date - candidate.date).days)
        if date_reason:
            reasons.append(date_reason)

        desc_score = description_similarity(bank_txn.description, candidate.description)
        desc_threshold = self.config.description_reason_threshold
        if desc_score > desc_threshold:
            reasons.append(f"Description similarity > {desc_threshold:.0%}")

        similarity = (
            amount_score * weights.amount
            + desc_score * weights.description
            + date_score * weights.date
        )
        similarity = round(min(1.0, max(0.0, similarity)), 4)

        if similarity > self.config.high_confidence_threshold:
            reasons.append("High overall match confidence")

        low, high = self.config.ambiguous_band
        if low <= similarity < high:
            reasons.append(AmbiguousMatchWarning.annotation(similarity))
            logger.debug(
                f"Borderline match {bank_txn.id} -> {candidate.id}: {similarity:.4f}"
            )

        return ScoreResult(
            similarity=similarity,
            reasons=reasons,
            amount_score=amount_score,
            description_score=desc_score,
            date_score=date_score,
        )

    def to_match_candidate(
        self, bank_txn: BankTransaction, candidate: Candidate
    ) -> MatchCandidate:
        """Score a candidate and wrap it for review."""
        result = self.score(bank_txn, candidate)
        return MatchCandidate(
            target_id=candidate.id,
            target_type=target_type_of(candidate),
            similarity=result.similarity,
            match_reasons=result.reasons,
            description=candidate.description,
            amount=candidate_amount(candidate),
            date=candidate.date,
        )

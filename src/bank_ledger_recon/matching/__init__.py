"""Matching pipeline components."""

from .amounts import amount_delta, comparable_amounts, signed_ledger_amount
from .candidates import CandidateGenerator, CandidateIndex, TransactionCandidates
from .scorer import ScoreResult, SimilarityScorer
from .assigner import Assignment, MatchAssigner
from .engine import ReconciliationEngine

__all__ = [
    "amount_delta",
    "comparable_amounts",
    "signed_ledger_amount",
    "CandidateGenerator",
    "CandidateIndex",
    "TransactionCandidates",
    "ScoreResult",
    "SimilarityScorer",
    "Assignment",
    "MatchAssigner",
    "ReconciliationEngine",
]

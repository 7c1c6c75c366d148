"""Balances and match statistics for a reconciliation run."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from ..matching.amounts import signed_ledger_amount
from ..models.records import BankTransaction, LedgerEntry
from ..models.report import ReconciliationItem, ReconciliationSummary


@dataclass
class ReconciliationTotals:
    """Aggregated figures of one run."""

    bank_balance: Decimal
    ledger_balance: Decimal
    difference: Decimal
    matched: int
    unmatched: int
    summary: ReconciliationSummary


class ReconciliationAggregator:
    """Computes balances, counts and the match rate from an assignment."""

    def aggregate(
        self,
        bank_transactions: Sequence[BankTransaction],
        ledger_entries: Sequence[LedgerEntry],
        items: Sequence[ReconciliationItem],
    ) -> ReconciliationTotals:
        """
        Aggregate a run.

        Args:
            bank_transactions: Bank transactions of the window
            ledger_entries: Ledger entries of the window
            items: Items produced by the assignment pass

        Returns:
            ReconciliationTotals
        """
        bank_balance = sum((t.amount for t in bank_transactions), Decimal("0"))
        ledger_balance = sum(
            (signed_ledger_amount(e) for e in ledger_entries), Decimal("0")
        )
        difference = abs(bank_balance - ledger_balance)

        matched = sum(1 for item in items if item.is_matched)
        unmatched = len(items) - matched

        total_bank = len(bank_transactions)
        match_rate = matched / total_bank if total_bank > 0 else 0.0

        summary = ReconciliationSummary(
            total_bank_transactions=total_bank,
            total_ledger_entries=len(ledger_entries),
            match_rate=match_rate,
            discrepancies=unmatched,
        )

        return ReconciliationTotals(
            bank_balance=bank_balance,
            ledger_balance=ledger_balance,
            difference=difference,
            matched=matched,
            unmatched=unmatched,
            summary=summary,
        )

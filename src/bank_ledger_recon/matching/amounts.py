"""
Sign normalization between signed bank amounts and ledger/document amounts.

Bank amounts are signed (money in is positive). Ledger amounts are unsigned
and carry their direction in ``entry_type``; from the bank account's point of
view a debit increases the balance and a credit decreases it. Document totals
are unsigned and say nothing about direction.
"""

from decimal import Decimal

from ..models.records import BankTransaction, Candidate, EntryType, LedgerEntry


def signed_ledger_amount(entry: LedgerEntry) -> Decimal:
    """Return the ledger amount signed as it moves the bank balance."""
    if entry.entry_type == EntryType.DEBIT:
        return entry.amount
    return -entry.amount


def candidate_amount(candidate: Candidate) -> Decimal:
    """Return the candidate amount on the scale it is compared at."""
    if isinstance(candidate, LedgerEntry):
        return signed_ledger_amount(candidate)
    return abs(candidate.extracted_total)


def comparable_amounts(
    bank_txn: BankTransaction, candidate: Candidate
) -> tuple[Decimal, Decimal]:
    """
    Return the (bank, candidate) amount pair that matching compares.

    Ledger entries are compared signed. Documents only have a magnitude, so
    they are compared against the absolute bank amount.
    """
    if isinstance(candidate, LedgerEntry):
        return bank_txn.amount, signed_ledger_amount(candidate)
    return abs(bank_txn.amount), candidate_amount(candidate)


def amount_delta(bank_txn: BankTransaction, candidate: Candidate) -> Decimal:
    """Return the bank amount minus the compared candidate amount."""
    bank_amount, other = comparable_amounts(bank_txn, candidate)
    return bank_amount - other

"""Assembles the final reconciliation report."""

from typing import Optional, Sequence
import logging

from ..models.records import RecordWindow
from ..models.report import ReconciliationItem, ReconciliationReport
from .aggregator import ReconciliationAggregator

logger = logging.getLogger(__name__)


class ReportBuilder:
    """Builds a ReconciliationReport from a window and its assignment."""

    def __init__(self, aggregator: Optional[ReconciliationAggregator] = None):
        self.aggregator = aggregator or ReconciliationAggregator()

    def build(
        self, window: RecordWindow, items: Sequence[ReconciliationItem]
    ) -> ReconciliationReport:
        """
        Aggregate and assemble the report.

        Items are stable-sorted by date, so items sharing a date keep their
        assignment order.
        """
        totals = self.aggregator.aggregate(
            window.bank_transactions, window.ledger_entries, items
        )
        ordered = sorted(items, key=lambda item: item.date)

        report = ReconciliationReport(
            tenant_id=window.tenant_id,
            account_id=window.account_id,
            period_start=window.period_start,
            period_end=window.period_end,
            bank_balance=totals.bank_balance,
            ledger_balance=totals.ledger_balance,
            difference=totals.difference,
            matched=totals.matched,
            unmatched=totals.unmatched,
            items=ordered,
            summary=totals.summary,
        )

        logger.debug(
            f"Built report for {window.tenant_id} {window.period_start}..{window.period_end}: "
            f"{report.matched} matched, {report.unmatched} unmatched"
        )
        return report

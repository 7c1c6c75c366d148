"""Aggregation, report assembly and export."""

from .aggregator import ReconciliationAggregator, ReconciliationTotals
from .builder import ReportBuilder
from .excel_generator import ExcelReportGenerator

__all__ = [
    "ReconciliationAggregator",
    "ReconciliationTotals",
    "ReportBuilder",
    "ExcelReportGenerator",
]

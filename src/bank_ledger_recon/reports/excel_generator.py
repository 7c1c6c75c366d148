"""
Excel report generator for reconciliation results.
Creates multi-sheet workbooks with formatted output.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional
import logging

from openpyxl import Workbook
from openpyxl.styles import Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from ..config import ReconConfig, SheetConfig
from ..models.report import ReconciliationItem, ReconciliationReport
from ..utils.exceptions import ReportGenerationError

logger = logging.getLogger(__name__)

# Style definitions
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True)
MATCH_FILL = PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid")
VARIANCE_FILL = PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid")
UNMATCHED_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)


class ExcelReportGenerator:
    """Generates Excel reconciliation reports with multiple sheets."""

    def __init__(self, config: Optional[ReconConfig] = None):
        """
        Initialize the report generator.

        Args:
            config: Application configuration
        """
        self.config = config or ReconConfig()
        self.sheet_config = self.config.output.sheets

    def default_filename(self, report: ReconciliationReport) -> str:
        """Render the configured file name template for a report."""
        return self.config.output.excel.filename_template.format(
            tenant=report.tenant_id,
            start=report.period_start.isoformat(),
            end=report.period_end.isoformat(),
        )

    def generate_report(self, report: ReconciliationReport, output_path: Path) -> Path:
        """
        Generate the complete reconciliation report.

        Args:
            report: Reconciliation report to export
            output_path: Path for output file

        Returns:
            Path to generated report

        Raises:
            ReportGenerationError: If the workbook cannot be written
        """
        logger.info(f"Generating Excel report: {output_path}")

        wb = Workbook()

        # Remove default sheet
        if wb.active:
            wb.remove(wb.active)

        sheets = self.sheet_config
        if sheets.summary.enabled:
            self._create_summary_sheet(wb, sheets.summary, report)
        if sheets.matched.enabled:
            self._create_matched_sheet(wb, sheets.matched, report.matched_items)
        if sheets.unmatched_bank.enabled:
            self._create_unmatched_bank_sheet(
                wb, sheets.unmatched_bank, report.unmatched_bank_items
            )
        if sheets.unmatched_ledger.enabled:
            self._create_unmatched_ledger_sheet(
                wb, sheets.unmatched_ledger, report.unmatched_ledger_items
            )

        if not wb.worksheets:
            raise ReportGenerationError("All report sheets are disabled")

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            wb.save(output_path)
        except OSError as e:
            raise ReportGenerationError(f"Failed to write report {output_path}: {e}") from e

        logger.info(f"Report saved: {output_path}")
        return output_path

    def _create_summary_sheet(
        self, wb: Workbook, sheet: SheetConfig, report: ReconciliationReport
    ) -> None:
        """Create the summary sheet with key metrics."""
        ws = wb.create_sheet(sheet.name)

        ws["A1"] = "Bank Reconciliation Summary"
        ws["A1"].font = Font(size=16, bold=True)
        ws.merge_cells("A1:D1")

        ws["A3"] = "Reconciliation Window"
        ws["A3"].font = Font(bold=True)

        window_info = [
            ("Tenant:", report.tenant_id),
            ("Account:", report.account_id or "All accounts"),
            ("Period:", f"{report.period_start} to {report.period_end}"),
            ("Generated At:", datetime.now().strftime("%Y-%m-%d %H:%M:%S")),
        ]

        for i, (label, value) in enumerate(window_info, start=4):
            ws[f"A{i}"] = label
            ws[f"B{i}"] = str(value)

        ws["A9"] = "Transaction Counts"
        ws["A9"].font = Font(bold=True)

        summary = report.summary
        count_data = [
            ("Total Bank Transactions:", summary.total_bank_transactions),
            ("Total Ledger Entries:", summary.total_ledger_entries),
            ("Matched:", report.matched),
            ("Unmatched Bank:", len(report.unmatched_bank_items)),
            ("Unmatched Ledger:", len(report.unmatched_ledger_items)),
            ("Discrepancies:", summary.discrepancies),
        ]

        for i, (label, value) in enumerate(count_data, start=10):
            ws[f"A{i}"] = label
            ws[f"B{i}"] = value

        ws["A17"] = "Match Rate"
        ws["A17"].font = Font(bold=True)
        ws["A18"] = "Bank Match Rate:"
        ws["B18"] = f"{summary.match_rate * 100:.1f}%"

        ws["A20"] = "Balances"
        ws["A20"].font = Font(bold=True)

        balance_data = [
            ("Bank Balance:", f"{report.bank_balance:,.2f}"),
            ("Ledger Balance:", f"{report.ledger_balance:,.2f}"),
            ("Difference:", f"{report.difference:,.2f}"),
        ]

        for i, (label, value) in enumerate(balance_data, start=21):
            ws[f"A{i}"] = label
            ws[f"B{i}"] = value

        if report.difference:
            ws["B23"].fill = VARIANCE_FILL

        self._auto_fit_columns(ws)

    def _create_matched_sheet(
        self, wb: Workbook, sheet: SheetConfig, items: list[ReconciliationItem]
    ) -> None:
        """Create the matched transactions sheet."""
        ws = wb.create_sheet(sheet.name)

        headers = [
            "Date",
            "Bank Transaction",
            "Ledger Entry",
            "Document",
            "Amount",
            "Discrepancy",
            "Similarity",
            "Description",
            "Match Reasons",
        ]
        self._write_headers(ws, headers)

        for row_num, item in enumerate(items, start=2):
            row_data = [
                item.date,
                item.bank_transaction_id,
                item.ledger_entry_id or "",
                item.document_id or "",
                float(item.amount),
                float(item.discrepancy) if item.discrepancy is not None else "",
                item.similarity if item.similarity is not None else "",
                item.description,
                "; ".join(item.match_reasons),
            ]
            # Matches with an amount discrepancy are highlighted separately
            fill = VARIANCE_FILL if item.discrepancy else MATCH_FILL
            self._write_row(ws, row_num, row_data, fill)

        self._auto_fit_columns(ws)

    def _create_unmatched_bank_sheet(
        self, wb: Workbook, sheet: SheetConfig, items: list[ReconciliationItem]
    ) -> None:
        """Create the sheet of bank transactions without a counterpart."""
        ws = wb.create_sheet(sheet.name)

        headers = ["Date", "Bank Transaction", "Amount", "Description"]
        self._write_headers(ws, headers)

        for row_num, item in enumerate(items, start=2):
            row_data = [
                item.date,
                item.bank_transaction_id,
                float(item.amount),
                item.description,
            ]
            self._write_row(ws, row_num, row_data, UNMATCHED_FILL)

        self._auto_fit_columns(ws)

    def _create_unmatched_ledger_sheet(
        self, wb: Workbook, sheet: SheetConfig, items: list[ReconciliationItem]
    ) -> None:
        """Create the sheet of ledger entries no bank transaction claimed."""
        ws = wb.create_sheet(sheet.name)

        headers = ["Date", "Ledger Entry", "Document", "Signed Amount", "Description"]
        self._write_headers(ws, headers)

        for row_num, item in enumerate(items, start=2):
            row_data = [
                item.date,
                item.ledger_entry_id,
                item.document_id or "",
                float(item.amount),
                item.description,
            ]
            self._write_row(ws, row_num, row_data, UNMATCHED_FILL)

        self._auto_fit_columns(ws)

    def _write_headers(self, ws: Worksheet, headers: list[str]) -> None:
        for col, header in enumerate(headers, start=1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.fill = HEADER_FILL
            cell.font = HEADER_FONT
            cell.border = THIN_BORDER

    def _write_row(
        self, ws: Worksheet, row_num: int, row_data: list, fill: PatternFill
    ) -> None:
        for col, value in enumerate(row_data, start=1):
            cell = ws.cell(row=row_num, column=col, value=value)
            cell.border = THIN_BORDER
            cell.fill = fill

    def _auto_fit_columns(self, ws: Worksheet) -> None:
        """Auto-fit column widths based on content."""
        for column_cells in ws.iter_cols():
            max_length = 0
            column = get_column_letter(column_cells[0].column)

            for cell in column_cells:
                if cell.value is not None:
                    max_length = max(max_length, len(str(cell.value)))

            ws.column_dimensions[column].width = min(max_length + 2, 50)

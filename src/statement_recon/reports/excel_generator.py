"""
Excel report generator for reconciliation batches.
Creates a review workbook with proposals, unmatched lines and commit outcomes.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Optional
import logging

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Border, Side
from openpyxl.worksheet.worksheet import Worksheet

from ..config import ReconConfig
from ..models.transaction import (
    CommitOutcome,
    CommitResult,
    ReconciliationItem,
    ReconciliationSummary,
)
from ..utils.exceptions import ReportGenerationError

logger = logging.getLogger(__name__)

# Style definitions
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True)
MATCH_FILL = PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid")
REVIEW_FILL = PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid")
UNMATCHED_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)


def format_minor(amount_minor: int) -> float:
    """Minor units as a decimal amount for display."""
    return amount_minor / 100


class ExcelReportGenerator:
    """Generates Excel review workbooks with multiple sheets."""

    def __init__(self, config: ReconConfig):
        self.config = config
        self.sheet_config = config.output.sheets

    def generate_report(
        self,
        summary: ReconciliationSummary,
        items: list[ReconciliationItem],
        output_path: Path,
        commit_result: Optional[CommitResult] = None,
    ) -> Path:
        """
        Generate the complete review report.

        Args:
            summary: Batch summary
            items: Reconciliation items in statement order
            output_path: Path for output file
            commit_result: Commit outcomes, when the batch was committed

        Returns:
            Path to generated report

        Raises:
            ReportGenerationError: If the workbook cannot be written
        """
        logger.info(f"Generating Excel report: {output_path}")

        wb = Workbook()
        if wb.active:
            wb.remove(wb.active)

        sheets = self.sheet_config
        if sheets.summary.enabled:
            self._create_summary_sheet(wb, summary, commit_result)
        if sheets.proposed.enabled:
            self._create_proposed_sheet(wb, items)
        if sheets.unmatched.enabled:
            self._create_unmatched_sheet(
                wb, [i for i in items if not i.candidates and not i.duplicate_identifier]
            )
        if sheets.duplicates.enabled:
            self._create_duplicates_sheet(wb, [i for i in items if i.duplicate_identifier])
        if sheets.commit_results.enabled and commit_result is not None:
            self._create_commit_sheet(wb, commit_result)

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            wb.save(output_path)
        except OSError as e:
            raise ReportGenerationError(f"Failed to write report: {e}") from e

        logger.info(f"Report saved: {output_path}")
        return output_path

    def _create_summary_sheet(
        self,
        wb: Workbook,
        summary: ReconciliationSummary,
        commit_result: Optional[CommitResult],
    ) -> None:
        ws = wb.create_sheet(self.sheet_config.summary.name)

        ws["A1"] = "Bank Statement Reconciliation Summary"
        ws["A1"].font = Font(size=16, bold=True)
        ws.merge_cells("A1:D1")

        rows: list[tuple[str, Any]] = [
            ("Statement File:", summary.statement_filename),
            (
                "Reconciliation Date:",
                summary.reconciliation_date.strftime("%Y-%m-%d %H:%M:%S"),
            ),
            ("Config File:", summary.config_file_used or "Default"),
            ("Processing Time:", f"{summary.processing_time_seconds:.2f} seconds"),
            ("Cancelled:", "Yes" if summary.cancelled else "No"),
            ("", ""),
            ("Outbound Transactions:", summary.total_transactions),
            ("Processed:", summary.processed_count),
            ("With Candidates:", summary.with_candidates_count),
            ("Pre-selected:", summary.auto_selected_count),
            ("Confirmed:", summary.confirmed_count),
            ("Already Settled (Duplicates):", summary.duplicate_count),
            ("Unmatched:", summary.unmatched_count),
            ("Conflicts:", summary.conflict_count),
            ("Match Rate:", f"{summary.match_rate:.1f}%"),
            ("", ""),
            ("Total Outbound:", f"{format_minor(summary.total_outbound_minor):,.2f}"),
            ("Confirmed Amount:", f"{format_minor(summary.confirmed_amount_minor):,.2f}"),
        ]

        if commit_result is not None:
            rows.extend(
                [
                    ("", ""),
                    ("Settlements Inserted:", commit_result.inserted),
                    ("Settlements Overridden:", commit_result.overridden),
                    ("Commit Errors:", commit_result.errored),
                ]
            )

        for i, (label, value) in enumerate(rows, start=3):
            ws[f"A{i}"] = label
            ws[f"B{i}"] = value

        ws.column_dimensions["A"].width = 32
        ws.column_dimensions["B"].width = 40

    def _create_proposed_sheet(self, wb: Workbook, items: list[ReconciliationItem]) -> None:
        ws = wb.create_sheet(self.sheet_config.proposed.name)

        headers = [
            "Row",
            "Date",
            "Description",
            "Amount",
            "Identifier",
            "Candidates",
            "Best Installment",
            "Counterparty",
            "Due Date",
            "Installment Amount",
            "Score",
            "Selected",
            "Confirmed",
            "Override",
            "Conflict",
        ]
        self._write_headers(ws, headers)

        row_num = 2
        for item in items:
            if not item.candidates:
                continue
            txn = item.transaction
            best = item.selected_candidate or item.candidates[0]

            row_data = [
                txn.row_number or "",
                txn.date,
                txn.description,
                format_minor(txn.amount_minor),
                txn.external_id or "",
                len(item.candidates),
                best.installment_id,
                best.counterparty_name,
                best.due_date,
                format_minor(best.amount_minor),
                f"{best.score:.2f}",
                item.selected_installment_id or "",
                "Yes" if item.confirmed else "No",
                "Yes" if item.override_settlement else "",
                "Yes" if item.conflicted else "",
            ]

            if item.conflicted:
                fill = UNMATCHED_FILL
            elif item.confirmed:
                fill = MATCH_FILL
            else:
                fill = REVIEW_FILL

            self._write_row(ws, row_num, row_data, fill)
            row_num += 1

        self._auto_fit_columns(ws)

    def _create_unmatched_sheet(
        self, wb: Workbook, unmatched: list[ReconciliationItem]
    ) -> None:
        ws = wb.create_sheet(self.sheet_config.unmatched.name)

        headers = ["Row", "Date", "Description", "Amount", "Payment Method", "Identifier"]
        self._write_headers(ws, headers)

        for row_num, item in enumerate(unmatched, start=2):
            txn = item.transaction
            row_data = [
                txn.row_number or "",
                txn.date,
                txn.description,
                format_minor(txn.amount_minor),
                txn.payment_method_tag or "",
                txn.external_id or "",
            ]
            self._write_row(ws, row_num, row_data, UNMATCHED_FILL)

        self._auto_fit_columns(ws)

    def _create_duplicates_sheet(
        self, wb: Workbook, duplicates: list[ReconciliationItem]
    ) -> None:
        ws = wb.create_sheet(self.sheet_config.duplicates.name)

        headers = ["Row", "Date", "Description", "Amount", "Identifier"]
        self._write_headers(ws, headers)

        for row_num, item in enumerate(duplicates, start=2):
            txn = item.transaction
            row_data = [
                txn.row_number or "",
                txn.date,
                txn.description,
                format_minor(txn.amount_minor),
                txn.external_id or "",
            ]
            self._write_row(ws, row_num, row_data, REVIEW_FILL)

        self._auto_fit_columns(ws)

    def _create_commit_sheet(self, wb: Workbook, commit_result: CommitResult) -> None:
        ws = wb.create_sheet(self.sheet_config.commit_results.name)

        ws["A1"] = "Commit Log"
        ws["A1"].font = Font(size=14, bold=True)
        ws["A2"] = f"Generated At: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"

        headers = ["Row", "Installment", "Outcome", "Message"]
        for col, header in enumerate(headers, start=1):
            cell = ws.cell(row=4, column=col, value=header)
            cell.fill = HEADER_FILL
            cell.font = HEADER_FONT
            cell.border = THIN_BORDER

        for row_num, outcome in enumerate(commit_result.outcomes, start=5):
            fill = UNMATCHED_FILL if outcome.outcome == CommitOutcome.ERROR else MATCH_FILL
            row_data = [
                outcome.row_number or "",
                outcome.installment_id,
                outcome.outcome.value,
                outcome.message or "",
            ]
            self._write_row(ws, row_num, row_data, fill)

        self._auto_fit_columns(ws)

    @staticmethod
    def _write_headers(ws: Worksheet, headers: list[str]) -> None:
        for col, header in enumerate(headers, start=1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.fill = HEADER_FILL
            cell.font = HEADER_FONT
            cell.border = THIN_BORDER

    @staticmethod
    def _write_row(
        ws: Worksheet, row_num: int, row_data: list[Any], fill: PatternFill
    ) -> None:
        for col, value in enumerate(row_data, start=1):
            cell = ws.cell(row=row_num, column=col, value=value)
            cell.border = THIN_BORDER
            cell.fill = fill

    def _auto_fit_columns(self, ws: Worksheet) -> None:
        """Auto-fit column widths based on content."""
        for column_cells in ws.columns:
            column = column_cells[0].column_letter
            max_length = max(
                (len(str(cell.value)) for cell in column_cells if cell.value is not None),
                default=0,
            )
            ws.column_dimensions[column].width = min(max_length + 2, 50)

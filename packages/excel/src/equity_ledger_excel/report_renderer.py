"""Ledger report renderer: one workbook per company snapshot."""

from __future__ import annotations

from typing import Dict, List, Optional

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.worksheet.worksheet import Worksheet

from equity_ledger.blocks import BlockContext, BlockExecutor, default_blocks
from equity_ledger.config import get_settings
from equity_ledger.schemas import LedgerSnapshot

SHEET_TITLES = ["Summary", "Investments", "Valuation History", "Equity", "ESOP"]

CURRENCY_FORMATS: Dict[str, str] = {
    "USD": '$#,##0',
    "EUR": '€#,##0',
    "GBP": '£#,##0',
}


def money_format(currency: str) -> str:
    return CURRENCY_FORMATS.get(currency, f'#,##0 "{currency}"')


class LedgerReportRenderer:
    """Render a company's ledger snapshot as a read-only workbook.

    Every figure comes from the ledger blocks; the workbook holds values, not
    formulas.

    Example:
        snapshot = store.load_snapshot(company_id)
        LedgerReportRenderer(snapshot).render("ledger.xlsx")
    """

    def __init__(self, snapshot: LedgerSnapshot, currency: Optional[str] = None):
        self.snapshot = snapshot
        self.currency = currency or get_settings().BASE_CURRENCY
        self.money_format = money_format(self.currency)

        self.bold_font = Font(bold=True)
        self.title_font = Font(bold=True, size=14)
        self.warning_font = Font(bold=True, color="C00000")  # Dark red

        self.header_font = Font(bold=True, color="FFFFFF")  # White text on dark blue
        self.header_fill = PatternFill(start_color="1F4E78", end_color="1F4E78", fill_type="solid")
        self.label_fill = PatternFill(start_color="E7E6E6", end_color="E7E6E6", fill_type="solid")  # Light gray

        self.thin_border = Border(
            left=Side(style='thin'),
            right=Side(style='thin'),
            top=Side(style='thin'),
            bottom=Side(style='thin')
        )
        self.top_border = Border(top=Side(style='medium'))
        self.center_align = Alignment(horizontal='center', vertical='center')

    def render(self, output_path: str) -> str:
        wb = self.build_workbook()
        wb.save(output_path)
        return output_path

    def compute(self) -> BlockContext:
        context = BlockContext()
        context.set("ledger_snapshot", self.snapshot)
        return BlockExecutor(default_blocks()).execute(context)

    def build_workbook(self) -> Workbook:
        context = self.compute()

        wb = Workbook()
        wb.remove(wb.active)

        self._render_summary(wb.create_sheet("Summary"), context)
        self._render_frame(
            wb.create_sheet("Investments"),
            context.get("investment_records"),
            headers=["ID", "Date", "Investor", "Investor Type", "Round Type", "Amount", "Equity %", "Post-Money"],
            formats={"amount": self.money_format, "equity_allocated_percent": '0.00', "post_money_valuation": self.money_format},
            totals=["amount"],
        )
        self._render_frame(
            wb.create_sheet("Valuation History"),
            context.get("valuation_history"),
            headers=["Date", "Record", "Investor", "Round Type", "Valuation", "Amount"],
            formats={"valuation": self.money_format, "investment_amount": self.money_format},
        )
        self._render_equity(wb.create_sheet("Equity"), context)
        self._render_esop(wb.create_sheet("ESOP"), context)

        return wb

    # ------------------------------------------------------------------ #
    # Sheets
    # ------------------------------------------------------------------ #

    def _render_summary(self, sheet: Worksheet, context: BlockContext) -> None:
        summary = context.get("funding_summary").iloc[0]
        esop = context.get("esop_status").iloc[0]
        fundraising = self.snapshot.fundraising_round

        sheet.cell(row=1, column=1, value=f"Company {self.snapshot.company_id} equity ledger").font = self.title_font
        sheet.cell(row=2, column=1, value=f"As of {self.snapshot.loaded_at:%Y-%m-%d %H:%M}")

        rows = [
            ("Current valuation", float(context.get("current_valuation")), self.money_format),
            ("Price per share", float(esop["price_per_share"]), '$0.00' if self.currency == "USD" else '0.00'),
            ("Total shares", int(esop["total_shares"]), '#,##0'),
            ("Equity funding", float(summary["total_equity_funding"]), self.money_format),
            ("Debt funding", float(summary["total_debt_funding"]), self.money_format),
            ("Grant funding", float(summary["total_grant_funding"]), self.money_format),
            ("Total funding", float(summary["total_funding"]), self.money_format),
            ("Investments", int(summary["investment_count"]), '0'),
            ("Average equity allocated %", float(summary["avg_equity_allocated"]), '0.00'),
        ]
        if summary["recorded_total_funding"] is not None and not pd.isna(summary["recorded_total_funding"]):
            rows.append(("Recorded total funding", float(summary["recorded_total_funding"]), self.money_format))
        if fundraising is not None:
            rows.append(("Fundraising round", f"{fundraising.round_stage} ({fundraising.status.value})", None))
            rows.append(("Fundraising target", float(fundraising.target_value), self.money_format))
            rows.append(("Fundraising equity %", float(fundraising.target_equity_percent), '0.00'))

        for offset, (label, value, number_format) in enumerate(rows):
            row = 4 + offset
            label_cell = sheet.cell(row=row, column=1, value=label)
            label_cell.fill = self.label_fill
            label_cell.border = self.thin_border
            value_cell = sheet.cell(row=row, column=2, value=value)
            value_cell.border = self.thin_border
            if number_format:
                value_cell.number_format = number_format

        sheet.column_dimensions['A'].width = 30
        sheet.column_dimensions['B'].width = 22

    def _render_equity(self, sheet: Worksheet, context: BlockContext) -> None:
        slices: pd.DataFrame = context.get("equity_distribution")
        totals = context.get("equity_totals").iloc[0]

        self._render_frame(
            sheet,
            slices,
            headers=["Holder Type", "Holder", "Equity %", "Invested"],
            formats={"equity_percent": '0.00', "total_amount": self.money_format},
        )

        row = len(slices) + 3
        sheet.cell(row=row, column=1, value="Investor total %").font = self.bold_font
        sheet.cell(row=row, column=3, value=float(totals["total_investor_percent"])).number_format = '0.00'
        sheet.cell(row=row + 1, column=1, value="Founder residual %").font = self.bold_font
        sheet.cell(row=row + 1, column=3, value=float(totals["founder_residual"])).number_format = '0.00'
        if bool(totals["over_allocated"]):
            sheet.cell(row=row + 2, column=1, value="Investor allocations exceed 100%").font = self.warning_font

    def _render_esop(self, sheet: Worksheet, context: BlockContext) -> None:
        status = context.get("esop_status").iloc[0]

        rows = [
            ("Total shares", int(status["total_shares"]), '#,##0'),
            ("Reserved shares", int(status["reserved_shares"]), '#,##0'),
            ("Reserved % of shares", float(status["reserved_percent"]), '0.00'),
            ("Reserved value", float(status["reserved_value"]), self.money_format),
            ("Allocated value", float(status["allocated_value"]), self.money_format),
            ("Available value", float(status["available_value"]), self.money_format),
            ("Utilization", float(status["utilization"]), '0.0%'),
        ]
        for idx, header in enumerate(["Metric", "Value"], start=1):
            cell = sheet.cell(row=1, column=idx, value=header)
            cell.font = self.header_font
            cell.fill = self.header_fill
            cell.alignment = self.center_align

        for offset, (label, value, number_format) in enumerate(rows):
            sheet.cell(row=2 + offset, column=1, value=label).border = self.thin_border
            value_cell = sheet.cell(row=2 + offset, column=2, value=value)
            value_cell.number_format = number_format
            value_cell.border = self.thin_border

        if bool(status["over_allocated"]):
            sheet.cell(row=len(rows) + 3, column=1, value="Allocations exceed the reserve").font = self.warning_font

        if self.snapshot.employees:
            start = len(rows) + 5
            sheet.cell(row=start, column=1, value="Employee").font = self.bold_font
            sheet.cell(row=start, column=2, value="Allocation").font = self.bold_font
            for offset, employee in enumerate(self.snapshot.employees, start=1):
                sheet.cell(row=start + offset, column=1, value=employee.name)
                cell = sheet.cell(row=start + offset, column=2, value=float(employee.esop_allocation_value))
                cell.number_format = self.money_format

        sheet.column_dimensions['A'].width = 25
        sheet.column_dimensions['B'].width = 18

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _render_frame(
        self,
        sheet: Worksheet,
        frame: pd.DataFrame,
        headers: List[str],
        formats: Optional[Dict[str, str]] = None,
        totals: Optional[List[str]] = None,
    ) -> None:
        """Write a DataFrame as a header row plus one row per record."""
        formats = formats or {}

        for col_idx, header in enumerate(headers, start=1):
            cell = sheet.cell(row=1, column=col_idx, value=header)
            cell.font = self.header_font
            cell.fill = self.header_fill
            cell.alignment = self.center_align
            sheet.column_dimensions[cell.column_letter].width = max(12, len(header) + 4)

        for row_idx, record in enumerate(frame.itertuples(index=False), start=2):
            for col_idx, (column, value) in enumerate(zip(frame.columns, record), start=1):
                cell = sheet.cell(row=row_idx, column=col_idx, value=value)
                cell.border = self.thin_border
                if column in formats:
                    cell.number_format = formats[column]

        if totals and not frame.empty:
            totals_row = len(frame) + 2
            sheet.cell(row=totals_row, column=1, value="Total").font = self.bold_font
            for column in totals:
                col_idx = list(frame.columns).index(column) + 1
                cell = sheet.cell(row=totals_row, column=col_idx, value=float(frame[column].sum()))
                cell.font = self.bold_font
                cell.border = self.top_border
                cell.number_format = formats.get(column, '#,##0')

        sheet.freeze_panes = "A2"

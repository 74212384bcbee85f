"""Excel rendering of equity ledger snapshots."""

from .report_renderer import LedgerReportRenderer, SHEET_TITLES, money_format

__all__ = ["LedgerReportRenderer", "SHEET_TITLES", "money_format"]

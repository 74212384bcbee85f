"""Funding summary block.

Output DataFrames:
- investment_records: the ledger in insertion order
- funding_summary: single row of per-category totals
"""

from typing import List
import pandas as pd

from .base import Block, BlockContext
from ..calculations import summarize
from ..schemas import LedgerSnapshot

RECORD_COLUMNS = [
    "record_id",
    "date",
    "investor_name",
    "investor_type",
    "round_type",
    "amount",
    "equity_allocated_percent",
    "post_money_valuation",
]


class SummaryBlock(Block):
    """Per-category funding totals and the flat record listing.

    Inputs (from context):
        - ledger_snapshot: LedgerSnapshot

    Outputs (to context):
        - investment_records: DataFrame with RECORD_COLUMNS
        - funding_summary: DataFrame with a single row:
            * total_equity_funding, total_debt_funding, total_grant_funding
            * total_funding: sum of the three categories
            * investment_count
            * avg_equity_allocated: mean equity % per record (0 when empty)
            * recorded_total_funding: the company's stored aggregate, which can
              drift from total_funding until recompute_total_funding() runs
    """

    def __init__(self, snapshot_key: str = "ledger_snapshot"):
        self.snapshot_key = snapshot_key

    def inputs(self) -> List[str]:
        return [self.snapshot_key]

    def outputs(self) -> List[str]:
        return ["investment_records", "funding_summary"]

    def execute(self, context: BlockContext) -> None:
        snapshot: LedgerSnapshot = context.get(self.snapshot_key)

        records = pd.DataFrame(
            [
                {
                    "record_id": r.id,
                    "date": r.date,
                    "investor_name": r.investor_name,
                    "investor_type": r.investor_type,
                    "round_type": r.round_type,
                    "amount": float(r.amount),
                    "equity_allocated_percent": float(r.equity_allocated_percent),
                    "post_money_valuation": float(r.post_money_valuation),
                }
                for r in snapshot.records
            ],
            columns=RECORD_COLUMNS,
        )
        context.set("investment_records", records)

        summary = summarize(snapshot.records)
        recorded = snapshot.account.total_funding if snapshot.account else None
        context.set("funding_summary", pd.DataFrame([{
            "total_equity_funding": float(summary.total_equity_funding),
            "total_debt_funding": float(summary.total_debt_funding),
            "total_grant_funding": float(summary.total_grant_funding),
            "total_funding": float(summary.total_funding),
            "investment_count": summary.investment_count,
            "avg_equity_allocated": float(summary.avg_equity_allocated),
            "recorded_total_funding": float(recorded) if recorded is not None else None,
        }]))

"""Equity distribution block.

Converts the founder/investor split into a DataFrame for charts and reports.
"""

from typing import List
import pandas as pd

from .base import Block, BlockContext
from ..calculations import equity_distribution
from ..schemas import LedgerSnapshot

SLICE_COLUMNS = ["holder_type", "holder_name", "equity_percent", "total_amount"]


class EquityBlock(Block):
    """Ownership slices of founders and investors.

    Inputs (from context):
        - ledger_snapshot: LedgerSnapshot

    Outputs (to context):
        - equity_distribution: DataFrame with SLICE_COLUMNS, largest slice first
        - equity_totals: single-row DataFrame with total_investor_percent,
          founder_residual and over_allocated
    """

    def __init__(self, snapshot_key: str = "ledger_snapshot"):
        self.snapshot_key = snapshot_key

    def inputs(self) -> List[str]:
        return [self.snapshot_key]

    def outputs(self) -> List[str]:
        return ["equity_distribution", "equity_totals"]

    def execute(self, context: BlockContext) -> None:
        snapshot: LedgerSnapshot = context.get(self.snapshot_key)
        distribution = equity_distribution(snapshot.records, snapshot.founders)

        slices = pd.DataFrame(
            [
                {
                    "holder_type": s.holder_type,
                    "holder_name": s.holder_name,
                    "equity_percent": float(s.equity_percent),
                    "total_amount": float(s.total_amount),
                }
                for s in distribution.slices
            ],
            columns=SLICE_COLUMNS,
        )
        context.set("equity_distribution", slices)

        context.set("equity_totals", pd.DataFrame([{
            "total_investor_percent": float(distribution.total_investor_percent),
            "founder_residual": float(distribution.founder_residual),
            "over_allocated": distribution.over_allocated,
        }]))

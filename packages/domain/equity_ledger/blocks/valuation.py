"""Valuation computation block.

Output:
- valuation_history: one row per record, ascending by date
- current_valuation: Decimal valuation used for per-share figures
"""

from typing import List
import pandas as pd

from .base import Block, BlockContext
from ..calculations import current_valuation, valuation_history
from ..schemas import LedgerSnapshot

HISTORY_COLUMNS = [
    "date",
    "record_id",
    "investor_name",
    "round_type",
    "valuation",
    "investment_amount",
]


class ValuationBlock(Block):
    """Turns the ledger into a valuation time series.

    Inputs (from context):
        - ledger_snapshot: LedgerSnapshot

    Outputs (to context):
        - valuation_history: DataFrame with HISTORY_COLUMNS. Records sharing a
          date keep their insertion order.
        - current_valuation: Decimal, latest post-money or the company's
          fallback valuation when the ledger is empty
    """

    def __init__(self, snapshot_key: str = "ledger_snapshot"):
        self.snapshot_key = snapshot_key

    def inputs(self) -> List[str]:
        return [self.snapshot_key]

    def outputs(self) -> List[str]:
        return ["valuation_history", "current_valuation"]

    def execute(self, context: BlockContext) -> None:
        snapshot: LedgerSnapshot = context.get(self.snapshot_key)

        rows = [
            {
                "date": point.date,
                "record_id": point.record_id,
                "investor_name": point.investor_name,
                "round_type": point.round_type,
                "valuation": float(point.valuation),
                "investment_amount": float(point.investment_amount),
            }
            for point in valuation_history(snapshot.records)
        ]
        context.set("valuation_history", pd.DataFrame(rows, columns=HISTORY_COLUMNS))
        context.set("current_valuation", current_valuation(snapshot.records, snapshot.fallback_valuation))

"""ESOP pool block.

Prices the reserve at the current valuation, so it runs after ValuationBlock.
"""

from decimal import Decimal
from typing import List
import pandas as pd

from .base import Block, BlockContext
from ..calculations import esop_status
from ..schemas import LedgerSnapshot


class EsopBlock(Block):
    """Reserve value and utilization of the ESOP pool.

    Inputs (from context):
        - ledger_snapshot: LedgerSnapshot
        - current_valuation: Decimal (written by ValuationBlock)

    Outputs (to context):
        - esop_status: single-row DataFrame with total_shares, reserved_shares,
          reserved_percent, price_per_share, reserved_value, allocated_value,
          available_value, utilization and over_allocated
    """

    def __init__(self, snapshot_key: str = "ledger_snapshot"):
        self.snapshot_key = snapshot_key

    def inputs(self) -> List[str]:
        return [self.snapshot_key, "current_valuation"]

    def outputs(self) -> List[str]:
        return ["esop_status"]

    def execute(self, context: BlockContext) -> None:
        snapshot: LedgerSnapshot = context.get(self.snapshot_key)
        valuation: Decimal = context.get("current_valuation")

        status = esop_status(
            snapshot.total_shares,
            snapshot.reserved_shares,
            valuation,
            snapshot.employees,
        )

        context.set("esop_status", pd.DataFrame([{
            "total_shares": status.total_shares,
            "reserved_shares": status.reserved_shares,
            "reserved_percent": float(status.reserved_percent),
            "price_per_share": float(status.price_per_share),
            "reserved_value": float(status.reserved_value),
            "allocated_value": float(status.allocated_value),
            "available_value": float(status.available_value),
            "utilization": float(status.utilization),
            "over_allocated": status.over_allocated,
        }]))

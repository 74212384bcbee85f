"""Computation blocks for ledger reporting.

Architecture:
    LedgerSnapshot -> Blocks (computation) -> DataFrames (output)

Available blocks:
- ValuationBlock: valuation history and current valuation
- EquityBlock: founder/investor equity slices
- EsopBlock: ESOP reserve value and utilization (needs ValuationBlock)
- SummaryBlock: record listing and funding totals

Usage:
    from equity_ledger.blocks import BlockContext, BlockExecutor, default_blocks

    context = BlockContext()
    context.set("ledger_snapshot", store.load_snapshot(company_id))
    BlockExecutor(default_blocks()).execute(context)

    history_df = context.get("valuation_history")
"""

from typing import List

from .base import Block, BlockContext, BlockExecutor, CircularDependencyError, topological_sort
from .valuation import ValuationBlock
from .equity import EquityBlock
from .esop import EsopBlock
from .summary import SummaryBlock


def default_blocks() -> List[Block]:
    """Every ledger block, in no particular order."""
    return [SummaryBlock(), EsopBlock(), EquityBlock(), ValuationBlock()]


__all__ = [
    "Block",
    "BlockContext",
    "BlockExecutor",
    "CircularDependencyError",
    "topological_sort",
    "ValuationBlock",
    "EquityBlock",
    "EsopBlock",
    "SummaryBlock",
    "default_blocks",
]

"""Pure derivations over ledger data.

- valuation: post-money derivation, valuation history, current valuation, equity distribution
- esop: price per share, reserved value, utilization
- summary: per-category funding totals
"""

from .valuation import (
    derive_post_money,
    derive_equity_percent,
    sort_by_date,
    valuation_history,
    current_valuation,
    equity_distribution,
)
from .esop import (
    price_per_share,
    reserved_value,
    utilization,
    allocated_value,
    esop_status,
)
from .summary import summarize, total_for

__all__ = [
    "derive_post_money",
    "derive_equity_percent",
    "sort_by_date",
    "valuation_history",
    "current_valuation",
    "equity_distribution",
    "price_per_share",
    "reserved_value",
    "utilization",
    "allocated_value",
    "esop_status",
    "summarize",
    "total_for",
]

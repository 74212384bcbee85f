"""Funding summary aggregation.

Every call recomputes from the full record set; there is no cached or
incremental state. At tens to low hundreds of records per company a full pass
is cheap. Revisit if ledgers grow into the thousands.
"""

from decimal import Decimal
from typing import Sequence

from ..schemas.base import ZERO
from ..schemas.records import InvestmentRecord, RoundType
from ..schemas.analytics import InvestmentSummary


def total_for(records: Sequence[InvestmentRecord], round_type: RoundType) -> Decimal:
    """Sum of amounts for one round type."""
    return sum((r.amount for r in records if r.round_type == round_type), ZERO)


def summarize(records: Sequence[InvestmentRecord]) -> InvestmentSummary:
    """Roll up a company's ledger into funding totals.

    Returns:
        InvestmentSummary with equity/debt/grant totals, the record count and
        the average equity allocated per record (0 for an empty ledger)
    """
    count = len(records)
    avg_equity = (
        sum((r.equity_allocated_percent for r in records), ZERO) / count
        if count
        else ZERO
    )

    return InvestmentSummary(
        total_equity_funding=total_for(records, RoundType.EQUITY),
        total_debt_funding=total_for(records, RoundType.DEBT),
        total_grant_funding=total_for(records, RoundType.GRANT),
        investment_count=count,
        avg_equity_allocated=avg_equity,
    )

"""Derived ledger facts: valuation points, equity slices and funding summaries.

These models are outputs of the calculator and aggregator functions. They are
never persisted.
"""

import datetime
from enum import Enum
from typing import List, Optional
from decimal import Decimal
from pydantic import Field

from .base import DomainModel, MoneyAmount, RecordId
from .records import RoundType


class HolderType(str, Enum):
    FOUNDER = "Founder"
    INVESTOR = "Investor"


class ValuationPoint(DomainModel):
    """One entry of the valuation history (one per investment record)."""

    date: datetime.date
    record_id: Optional[RecordId] = None
    investor_name: str
    round_type: RoundType
    valuation: MoneyAmount = Field(description="Post-money valuation of the record")
    investment_amount: MoneyAmount


class EquitySlice(DomainModel):
    """Share of the company held by one founder or one investment record."""

    holder_type: HolderType
    holder_name: str
    equity_percent: Decimal = Field(ge=0, description="Ownership on a 0-100 scale")
    total_amount: MoneyAmount = Field(
        default=Decimal("0"),
        description="Amount invested (0 for founders)"
    )


class EquityDistribution(DomainModel):
    """Equity split between founders and investors.

    Example:
        Two founders, one investor at 20%:
            founder_residual = 80, slices = [Founder 40, Founder 40, Investor 20]
    """

    slices: List[EquitySlice] = Field(default_factory=list)

    total_investor_percent: Decimal = Field(
        description="Sum of equity allocated over all records (may exceed 100)"
    )

    founder_residual: Decimal = Field(
        ge=0,
        description="max(0, 100 - total_investor_percent)"
    )

    @property
    def over_allocated(self) -> bool:
        """True when recorded allocations exceed 100% (residual was floored)."""
        return self.total_investor_percent > 100


class InvestmentSummary(DomainModel):
    """Per-category funding totals over the full record set."""

    total_equity_funding: MoneyAmount = Decimal("0")
    total_debt_funding: MoneyAmount = Decimal("0")
    total_grant_funding: MoneyAmount = Decimal("0")
    investment_count: int = Field(default=0, ge=0)
    avg_equity_allocated: Decimal = Field(default=Decimal("0"), ge=0)

    @property
    def total_funding(self) -> Decimal:
        return self.total_equity_funding + self.total_debt_funding + self.total_grant_funding

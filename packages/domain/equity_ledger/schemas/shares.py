"""Share configuration and ESOP pool models.

Both are edited independently of the investment ledger. Their monetary values
(price per share, reserved value) are never stored: they are recomputed from
the current ledger on every read.
"""

from decimal import Decimal
from pydantic import Field

from .base import DomainModel, CompanyId, ShareCount, MoneyAmount, Ratio


class ShareConfiguration(DomainModel):
    """Total shares issued by a company (one row per company)."""

    company_id: CompanyId
    total_shares: ShareCount = Field(
        default=0,
        description="Total number of shares of the company"
    )


class EsopPool(DomainModel):
    """Shares reserved for the employee stock option pool (one row per company).

    The ``reserved_shares <= total_shares`` invariant is checked when the
    reserve is edited, not when total shares later shrink below it.
    """

    company_id: CompanyId
    reserved_shares: ShareCount = Field(
        default=0,
        description="Shares reserved for future employee grants"
    )


class EsopStatus(DomainModel):
    """Derived view of the ESOP pool at read time.

    Example:
        total_shares=1000, reserved_shares=500, price_per_share=1000
        reserved_value=500_000, allocated_value=100_000, utilization=0.10
    """

    total_shares: ShareCount
    reserved_shares: ShareCount
    reserved_percent: Decimal = Field(
        description="Reserved shares as a percentage of total shares (0 when no shares)"
    )
    price_per_share: MoneyAmount
    reserved_value: MoneyAmount
    allocated_value: MoneyAmount
    available_value: MoneyAmount = Field(
        description="Reserve not yet allocated (floored at 0)"
    )
    utilization: Ratio = Field(
        description="allocated / reserved, capped at 1.0"
    )
    over_allocated: bool = Field(
        default=False,
        description="True when allocations exceed the monetary reserve"
    )

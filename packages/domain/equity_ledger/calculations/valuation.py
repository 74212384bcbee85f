"""Valuation and equity derivations.

Pure functions over a snapshot of the ledger. Nothing here performs I/O or
mutates its inputs.
"""

from decimal import Decimal
from typing import List, Optional, Sequence

from ..schemas.base import HUNDRED, ZERO
from ..schemas.records import InvestmentRecord, Founder
from ..schemas.analytics import (
    EquityDistribution,
    EquitySlice,
    HolderType,
    ValuationPoint,
)


# =============================================================================
# Mutually derivable values
# =============================================================================

def derive_post_money(amount: Decimal, equity_percent: Decimal) -> Decimal:
    """Post-money valuation implied by an investment.

    Args:
        amount: Amount invested
        equity_percent: Equity received on a 0-100 scale

    Returns:
        amount * 100 / equity_percent, or 0 when equity_percent <= 0

    Example:
        derive_post_money(Decimal("100000"), Decimal("10"))  # Decimal("1000000")
    """
    amount = Decimal(amount)
    equity_percent = Decimal(equity_percent)
    if equity_percent <= 0:
        return ZERO
    return amount * HUNDRED / equity_percent


def derive_equity_percent(amount: Decimal, post_money: Decimal) -> Decimal:
    """Equity percentage implied by an amount and a post-money valuation.

    Inverse of derive_post_money. Returns 0 when post_money <= 0.
    """
    amount = Decimal(amount)
    post_money = Decimal(post_money)
    if post_money <= 0:
        return ZERO
    return amount * HUNDRED / post_money


# =============================================================================
# Valuation history
# =============================================================================

def sort_by_date(records: Sequence[InvestmentRecord]) -> List[InvestmentRecord]:
    """Records in ascending date order.

    Records sharing a date keep their insertion order (sorted() is stable and
    there is no secondary key).
    """
    return sorted(records, key=lambda r: r.date)


def valuation_history(records: Sequence[InvestmentRecord]) -> List[ValuationPoint]:
    """Time-ordered valuation points, one per record."""
    return [
        ValuationPoint(
            date=record.date,
            record_id=record.id,
            investor_name=record.investor_name,
            round_type=record.round_type,
            valuation=record.post_money_valuation,
            investment_amount=record.amount,
        )
        for record in sort_by_date(records)
    ]


def current_valuation(
    records: Sequence[InvestmentRecord],
    fallback: Optional[Decimal] = None,
) -> Decimal:
    """Valuation of the most recent record by calendar date.

    When several records share the latest date, the one inserted last wins.

    Args:
        records: Ledger records in insertion order
        fallback: Company's last known static valuation, used when the ledger is empty

    Returns:
        Post-money valuation of the latest record, or fallback (0 if None)
    """
    if not records:
        return Decimal(fallback) if fallback is not None else ZERO
    return sort_by_date(records)[-1].post_money_valuation


# =============================================================================
# Equity distribution
# =============================================================================

def equity_distribution(
    records: Sequence[InvestmentRecord],
    founders: Sequence[Founder],
) -> EquityDistribution:
    """Split ownership between founders and investment records.

    Founder residual = max(0, 100 - sum of equity allocated), split evenly
    across founders. Records with equity_allocated_percent <= 0 are left out of
    the slices but still counted in the subtraction. A ledger allocating more
    than 100% is not rejected: the residual floors at zero.

    Slices are ordered by equity descending; equal slices keep founders first,
    then records in insertion order.
    """
    total_investor = sum((r.equity_allocated_percent for r in records), ZERO)
    residual = max(ZERO, HUNDRED - total_investor)

    slices: List[EquitySlice] = []
    if founders:
        per_founder = residual / len(founders)
        for founder in founders:
            slices.append(
                EquitySlice(
                    holder_type=HolderType.FOUNDER,
                    holder_name=founder.name,
                    equity_percent=per_founder,
                )
            )

    for record in records:
        if record.equity_allocated_percent <= 0:
            continue
        slices.append(
            EquitySlice(
                holder_type=HolderType.INVESTOR,
                holder_name=record.investor_name,
                equity_percent=record.equity_allocated_percent,
                total_amount=record.amount,
            )
        )

    slices.sort(key=lambda s: s.equity_percent, reverse=True)

    return EquityDistribution(
        slices=slices,
        total_investor_percent=total_investor,
        founder_residual=residual,
    )

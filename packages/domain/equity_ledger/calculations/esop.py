"""ESOP pool derivations.

The reserve is tracked in shares; its monetary value follows the current
valuation through the price per share. Utilization compares the value of
employee allocations (read from the employee subsystem) against that reserve.

The reserved <= total shares invariant is enforced by the ledger store when
the reserve is edited. These functions trust it and do not re-check on read.
"""

from decimal import Decimal
from typing import Iterable

from ..schemas.base import HUNDRED, ZERO
from ..schemas.records import EmployeeAllocation
from ..schemas.shares import EsopStatus

ONE = Decimal("1")


def price_per_share(total_shares: int, current_valuation: Decimal) -> Decimal:
    """Valuation per share, 0 when the company has no shares configured.

    Example:
        price_per_share(1000, Decimal("1000000"))  # Decimal("1000")
    """
    if total_shares <= 0:
        return ZERO
    return Decimal(current_valuation) / Decimal(total_shares)


def reserved_value(reserved_shares: int, pps: Decimal) -> Decimal:
    """Monetary value of the reserved pool."""
    return Decimal(reserved_shares) * Decimal(pps)


def utilization(allocated: Decimal, reserved: Decimal) -> Decimal:
    """Fraction of the reserve allocated to employees, capped at 1.0.

    Over-allocation shows as 1.0 rather than an error; whether it blocks new
    grants is decided by the employee subsystem.
    """
    reserved = Decimal(reserved)
    if reserved <= 0:
        return ZERO
    return min(Decimal(allocated) / reserved, ONE)


def allocated_value(employees: Iterable[EmployeeAllocation]) -> Decimal:
    """Sum of employee ESOP allocation values."""
    return sum((Decimal(e.esop_allocation_value) for e in employees), ZERO)


def esop_status(
    total_shares: int,
    reserved_shares: int,
    current_valuation: Decimal,
    employees: Iterable[EmployeeAllocation],
) -> EsopStatus:
    """Bundle every derived ESOP figure for one company.

    Args:
        total_shares: Current total shares (ShareConfiguration)
        reserved_shares: Current reserved shares (EsopPool)
        current_valuation: Valuation used for the price per share
        employees: Employee allocations from the employee subsystem

    Returns:
        EsopStatus computed from the inputs only
    """
    pps = price_per_share(total_shares, current_valuation)
    reserve = reserved_value(reserved_shares, pps)
    allocated = allocated_value(employees)
    reserved_percent = (
        Decimal(reserved_shares) * HUNDRED / Decimal(total_shares)
        if total_shares > 0
        else ZERO
    )

    return EsopStatus(
        total_shares=total_shares,
        reserved_shares=reserved_shares,
        reserved_percent=reserved_percent,
        price_per_share=pps,
        reserved_value=reserve,
        allocated_value=allocated,
        available_value=max(ZERO, reserve - allocated),
        utilization=utilization(allocated, reserve),
        over_allocated=reserve > 0 and allocated > reserve,
    )

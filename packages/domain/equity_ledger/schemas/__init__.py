"""Equity ledger schemas.

This package contains all Pydantic models for the ledger domain layer:
- Base types and conventions
- Investment records, founders and employee allocations
- Share configuration and ESOP pool
- Fundraising round metadata
- Derived analytics (valuation points, equity slices, summaries)
- Company account and ledger snapshots

Usage:
    from equity_ledger.schemas import (
        InvestmentDraft, InvestmentRecord, Founder,
        ShareConfiguration, EsopPool, FundraisingDraft,
        LedgerSnapshot,
    )
"""

# Base types
from .base import (
    DomainModel,
    MoneyAmount,
    PositiveMoney,
    EquityPercent,
    ShareCount,
    Ratio,
    CompanyId,
    RecordId,
)

# Ledger entries
from .records import (
    InvestorType,
    RoundType,
    InvestmentDraft,
    InvestmentUpdate,
    InvestmentRecord,
    InvestmentFilters,
    Founder,
    EmployeeAllocation,
    check_ledger_date,
)

# Shares and ESOP
from .shares import (
    ShareConfiguration,
    EsopPool,
    EsopStatus,
)

# Fundraising
from .fundraising import (
    RoundStage,
    FundraisingStatus,
    FundraisingDraft,
    FundraisingRound,
)

# Derived facts
from .analytics import (
    HolderType,
    ValuationPoint,
    EquitySlice,
    EquityDistribution,
    InvestmentSummary,
)

# Snapshot
from .snapshot import (
    CompanyLedgerAccount,
    LedgerSnapshot,
)

__all__ = [
    # Base types
    "DomainModel",
    "MoneyAmount",
    "PositiveMoney",
    "EquityPercent",
    "ShareCount",
    "Ratio",
    "CompanyId",
    "RecordId",
    # Ledger entries
    "InvestorType",
    "RoundType",
    "InvestmentDraft",
    "InvestmentUpdate",
    "InvestmentRecord",
    "InvestmentFilters",
    "Founder",
    "EmployeeAllocation",
    "check_ledger_date",
    # Shares and ESOP
    "ShareConfiguration",
    "EsopPool",
    "EsopStatus",
    # Fundraising
    "RoundStage",
    "FundraisingStatus",
    "FundraisingDraft",
    "FundraisingRound",
    # Derived facts
    "HolderType",
    "ValuationPoint",
    "EquitySlice",
    "EquityDistribution",
    "InvestmentSummary",
    # Snapshot
    "CompanyLedgerAccount",
    "LedgerSnapshot",
]

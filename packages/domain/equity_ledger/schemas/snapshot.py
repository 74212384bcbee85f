"""Ledger snapshot: everything known about one company at read time.

A LedgerSnapshot is what readers hold between change notifications. It is
loaded in full from the ledger store and discarded (never patched) when the
ledger changes. Every derived value is recomputed from the snapshot contents
on access.

Usage:
    snapshot = store.load_snapshot(company_id)

    snapshot.current_valuation      # latest post-money, or the company fallback
    snapshot.price_per_share        # current valuation / total shares
    snapshot.esop_status()          # reserve, allocations, utilization
    snapshot.equity_distribution()  # founder residual + investor slices
    snapshot.summary()              # equity / debt / grant totals
"""

import datetime
from typing import List, Optional
from decimal import Decimal
from pydantic import Field

from .base import DomainModel, CompanyId, MoneyAmount
from .records import InvestmentRecord, Founder, EmployeeAllocation
from .shares import ShareConfiguration, EsopPool, EsopStatus
from .fundraising import FundraisingRound
from .analytics import EquityDistribution, InvestmentSummary, ValuationPoint


# =============================================================================
# Company Ledger Account
# =============================================================================

class CompanyLedgerAccount(DomainModel):
    """Company-level aggregates maintained alongside the ledger.

    total_funding is a stored aggregate, not derived on read: deleting a record
    subtracts from it through a compensating action. applied_compensations
    holds the idempotency keys already applied so a replayed compensation is a
    no-op.
    """

    company_id: CompanyId
    total_funding: Decimal = Field(
        default=Decimal("0"),
        description="Aggregate total funding figure shown on the company profile"
    )
    current_valuation: Optional[MoneyAmount] = Field(
        default=None,
        description="Last known static valuation, used when the ledger is empty"
    )
    applied_compensations: List[str] = Field(default_factory=list)


# =============================================================================
# Ledger Snapshot
# =============================================================================

class LedgerSnapshot(DomainModel):
    """Point-in-time read of a company's equity ledger."""

    company_id: CompanyId

    loaded_at: datetime.datetime = Field(
        default_factory=datetime.datetime.now,
        description="When this snapshot was read"
    )

    records: List[InvestmentRecord] = Field(
        default_factory=list,
        description="Investment records in insertion order"
    )

    founders: List[Founder] = Field(default_factory=list)

    share_configuration: Optional[ShareConfiguration] = None

    esop_pool: Optional[EsopPool] = None

    fundraising_round: Optional[FundraisingRound] = None

    account: Optional[CompanyLedgerAccount] = None

    employees: List[EmployeeAllocation] = Field(
        default_factory=list,
        description="Employee ESOP allocations read from the employee subsystem"
    )

    @property
    def total_shares(self) -> int:
        return self.share_configuration.total_shares if self.share_configuration else 0

    @property
    def reserved_shares(self) -> int:
        return self.esop_pool.reserved_shares if self.esop_pool else 0

    @property
    def fallback_valuation(self) -> Optional[Decimal]:
        return self.account.current_valuation if self.account else None

    @property
    def current_valuation(self) -> Decimal:
        from ..calculations import current_valuation

        return current_valuation(self.records, self.fallback_valuation)

    @property
    def price_per_share(self) -> Decimal:
        from ..calculations import price_per_share

        return price_per_share(self.total_shares, self.current_valuation)

    def valuation_history(self) -> List[ValuationPoint]:
        from ..calculations import valuation_history

        return valuation_history(self.records)

    def equity_distribution(self) -> EquityDistribution:
        from ..calculations import equity_distribution

        return equity_distribution(self.records, self.founders)

    def esop_status(self) -> EsopStatus:
        from ..calculations import esop_status

        return esop_status(
            self.total_shares,
            self.reserved_shares,
            self.current_valuation,
            self.employees,
        )

    def summary(self) -> InvestmentSummary:
        from ..calculations import summarize

        return summarize(self.records)

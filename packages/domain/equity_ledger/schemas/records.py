"""Investment records, founders and employee allocations.

An InvestmentRecord is one financing event in a company's ledger: an equity
investment, a debt facility or a grant. Records are submitted as drafts,
validated, and stored with an identity assigned by persistence.

Post-money valuation is one of three mutually derivable values
(amount, equity %, valuation). When the caller omits it, the draft derives it
from the other two; when the caller supplies it, the supplied value is stored
as-is and never re-derived afterwards.
"""

import datetime
from enum import Enum
from typing import Optional, Any
from decimal import Decimal
from pydantic import Field, field_validator, model_validator, ValidationInfo
from pydantic_core import PydanticCustomError

from .base import (
    DomainModel,
    CompanyId,
    RecordId,
    EquityPercent,
    MoneyAmount,
    PositiveMoney,
    HUNDRED,
    ZERO,
)


DEFAULT_MAX_RECORD_AGE_YEARS = 50


# =============================================================================
# Enumerations
# =============================================================================

class InvestorType(str, Enum):
    """Kind of investor behind a ledger entry."""

    ANGEL = "Angel"
    VC = "VC Firm"
    CORPORATE = "Corporate"
    GOVERNMENT = "Government"


class RoundType(str, Enum):
    """Instrument of a ledger entry."""

    EQUITY = "Equity"
    DEBT = "Debt"
    GRANT = "Grant"


# =============================================================================
# Date window
# =============================================================================

def years_before(day: datetime.date, years: int) -> datetime.date:
    """Same calendar day `years` earlier (Feb 29 falls back to Feb 28)."""
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        return day.replace(year=day.year - years, day=28)


def check_ledger_date(
    value: datetime.date,
    today: datetime.date,
    max_age_years: int = DEFAULT_MAX_RECORD_AGE_YEARS,
) -> datetime.date:
    """Validate that a ledger date lies within [today - max_age_years, today].

    Raises:
        ValueError: If the date is in the future or too far in the past
    """
    if value > today:
        raise ValueError("date cannot be in the future")
    if value < years_before(today, max_age_years):
        raise ValueError(f"date cannot be more than {max_age_years} years in the past")
    return value


# =============================================================================
# Investment Draft
# =============================================================================

class InvestmentDraft(DomainModel):
    """Caller-supplied investment data before it is stored.

    Validation context (optional, passed via ``model_validate(..., context=...)``):
        - today: reference date for the date window (default: date.today())
        - max_age_years: oldest accepted date in years (default: 50)
        - check_date: set False to skip the date window (default: True)

    Example:
        draft = InvestmentDraft(
            date=date(2024, 3, 1),
            investor_type="VC Firm",
            round_type="Equity",
            investor_name="SeedFund Ventures",
            amount=Decimal("100000"),
            equity_allocated_percent=Decimal("10"),
        )
        draft.post_money_valuation  # Decimal("1000000")
    """

    date: datetime.date = Field(
        description="Date of the financing event (not in the future)"
    )

    investor_type: InvestorType = Field(
        description="Kind of investor"
    )

    round_type: RoundType = Field(
        description="Equity, Debt or Grant"
    )

    investor_name: str = Field(
        description="Display name of the investor"
    )

    investor_code: Optional[str] = Field(
        default=None,
        description="Cross-reference to an investor identity owned by another subsystem"
    )

    amount: PositiveMoney = Field(
        description="Amount invested, lent or granted"
    )

    equity_allocated_percent: EquityPercent = Field(
        description="Equity allocated to this entry (0-100, also for converting debt/grants)"
    )

    post_money_valuation: Optional[Decimal] = Field(
        default=None,
        description="Post-money valuation; derived from amount and equity when omitted"
    )

    proof_url: Optional[str] = Field(
        default=None,
        description="Reference to an uploaded proof document"
    )

    @field_validator("investor_name")
    @classmethod
    def validate_investor_name(cls, v: str) -> str:
        """Investor name must contain something other than whitespace."""
        v = v.strip()
        if not v:
            raise ValueError("investor name is required")
        return v

    @field_validator("investor_code")
    @classmethod
    def normalize_investor_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("date")
    @classmethod
    def validate_date_window(cls, v: datetime.date, info: ValidationInfo) -> datetime.date:
        context = info.context or {}
        if not context.get("check_date", True):
            return v
        today = context.get("today") or datetime.date.today()
        max_age = context.get("max_age_years", DEFAULT_MAX_RECORD_AGE_YEARS)
        return check_ledger_date(v, today, max_age)

    @model_validator(mode="after")
    def fill_post_money(self):
        """Derive post-money valuation when absent and require it to be positive."""
        if self.post_money_valuation is None:
            derived = (
                self.amount * HUNDRED / self.equity_allocated_percent
                if self.equity_allocated_percent > 0
                else ZERO
            )
            if derived <= 0:
                raise PydanticCustomError(
                    "post_money_underivable",
                    "post-money valuation is required when equity allocated is 0",
                    {"field": "post_money_valuation"},
                )
            # Bypass validate_assignment to avoid re-running this validator
            object.__setattr__(self, "post_money_valuation", derived)
        elif self.post_money_valuation <= 0:
            raise PydanticCustomError(
                "post_money_not_positive",
                "post-money valuation must be positive",
                {"field": "post_money_valuation"},
            )
        return self


class InvestmentUpdate(DomainModel):
    """Partial edit of a stored investment record. Unset fields are left unchanged."""

    date: Optional[datetime.date] = None
    investor_type: Optional[InvestorType] = None
    round_type: Optional[RoundType] = None
    investor_name: Optional[str] = None
    investor_code: Optional[str] = None
    amount: Optional[Decimal] = None
    equity_allocated_percent: Optional[Decimal] = None
    post_money_valuation: Optional[Decimal] = None
    proof_url: Optional[str] = None

    def changes(self) -> dict:
        """Fields explicitly set by the caller."""
        return self.model_dump(exclude_unset=True)


# =============================================================================
# Investment Record
# =============================================================================

class InvestmentRecord(DomainModel):
    """A stored ledger entry.

    Stored records are not re-checked against the date window: a record that
    was valid when inserted stays readable as it ages.
    """

    id: RecordId
    company_id: CompanyId
    date: datetime.date
    investor_type: InvestorType
    round_type: RoundType
    investor_name: str
    investor_code: Optional[str] = None
    amount: PositiveMoney
    equity_allocated_percent: EquityPercent
    post_money_valuation: PositiveMoney
    proof_url: Optional[str] = None

    def as_draft_data(self) -> dict[str, Any]:
        """Editable fields of this record, suitable for building an InvestmentDraft."""
        return self.model_dump(exclude={"id", "company_id"})


class InvestmentFilters(DomainModel):
    """Optional filters for listing investment records."""

    investor_type: Optional[InvestorType] = None
    round_type: Optional[RoundType] = None
    date_from: Optional[datetime.date] = None
    date_to: Optional[datetime.date] = None

    def matches(self, record: InvestmentRecord) -> bool:
        if self.investor_type is not None and record.investor_type != self.investor_type:
            return False
        if self.round_type is not None and record.round_type != self.round_type:
            return False
        if self.date_from is not None and record.date < self.date_from:
            return False
        if self.date_to is not None and record.date > self.date_to:
            return False
        return True


# =============================================================================
# Founders and Employees
# =============================================================================

class Founder(DomainModel):
    """A company founder. Founder equity is never stored; it is the ledger residual."""

    name: str = Field(description="Founder full name")

    email: str = Field(
        pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$",
        description="Contact email"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("founder name is required")
        return v


class EmployeeAllocation(DomainModel):
    """ESOP allocation of one employee, read from the employee subsystem."""

    name: str
    esop_allocation_value: MoneyAmount = Field(
        default=Decimal("0"),
        description="Monetary value of the options allocated to this employee"
    )

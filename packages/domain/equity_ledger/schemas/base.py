"""Base classes and type system for equity ledger models.

This module provides the foundational types and the base model used throughout
the ledger schema system.
"""

from decimal import Decimal
from typing import Annotated
from pydantic import BaseModel, Field, ConfigDict

# =============================================================================
# Base Model
# =============================================================================

class DomainModel(BaseModel):
    """Base class for all ledger models.

    Provides common configuration for all Pydantic models in the domain layer:
    - Validation on assignment for runtime safety
    - Support for Decimal and date types
    - Enum value serialization
    """

    model_config = ConfigDict(
        frozen=False,
        validate_assignment=True,
        use_enum_values=True,
        arbitrary_types_allowed=True,
    )


# =============================================================================
# Type Aliases - Numeric
# =============================================================================

MoneyAmount = Annotated[
    Decimal,
    Field(ge=0, description="Currency amount (non-negative)")
]

PositiveMoney = Annotated[
    Decimal,
    Field(gt=0, description="Currency amount (strictly positive)")
]

EquityPercent = Annotated[
    Decimal,
    Field(ge=0, le=100, description="Equity percentage on a 0-100 scale")
]

ShareCount = Annotated[
    int,
    Field(ge=0, description="Whole number of shares (non-negative)")
]

Ratio = Annotated[
    Decimal,
    Field(ge=0, le=1, description="Fraction between 0.0 and 1.0")
]


# =============================================================================
# ID Conventions
# =============================================================================

CompanyId = Annotated[
    int,
    Field(ge=1, description="Company (startup) identifier owned by the host platform")
]

RecordId = Annotated[
    int,
    Field(ge=1, description="Identifier assigned by persistence on insert")
]

ZERO = Decimal("0")
HUNDRED = Decimal("100")

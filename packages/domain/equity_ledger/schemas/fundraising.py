"""Fundraising round metadata.

A company has at most one fundraising round record; saving a new draft
replaces the previous one (last write wins).

State:
    Inactive <-> Active, toggled by ``active`` on save. ``validation_requested``
    is an orthogonal flag, not a separate state, and there is no terminal state.
"""

from enum import Enum
from decimal import Decimal
from typing import Optional
from pydantic import Field

from .base import DomainModel, CompanyId, PositiveMoney


class RoundStage(str, Enum):
    """Stage of the round being raised."""

    PRE_SEED = "Pre-Seed"
    SEED = "Seed"
    SERIES_A = "Series A"
    SERIES_B = "Series B"
    BRIDGE = "Bridge"


class FundraisingStatus(str, Enum):
    INACTIVE = "Inactive"
    ACTIVE = "Active"


class FundraisingDraft(DomainModel):
    """Caller-supplied fundraising round."""

    active: bool = Field(
        default=False,
        description="Whether the round is open"
    )

    round_stage: RoundStage = Field(
        description="Stage of the round"
    )

    target_value: PositiveMoney = Field(
        description="Amount the company wants to raise"
    )

    target_equity_percent: Decimal = Field(
        gt=0,
        le=100,
        description="Equity offered for the target value (0 < x <= 100)"
    )

    validation_requested: bool = Field(
        default=False,
        description="Ask the platform to validate this round (external workflow)"
    )

    pitch_deck_url: Optional[str] = None

    pitch_video_url: Optional[str] = None


class FundraisingRound(FundraisingDraft):
    """Stored fundraising round of a company."""

    company_id: CompanyId

    @property
    def status(self) -> FundraisingStatus:
        return FundraisingStatus.ACTIVE if self.active else FundraisingStatus.INACTIVE

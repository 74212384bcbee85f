"""Row mapping between persistence rows and ledger models.

This is the single translation point between storage column names and model
field names. One pair of functions per entity; nothing else in the package
reads or writes raw column names.

Rows carry money as strings and dates as ISO strings so that a row survives a
JSON round-trip through any backend without losing Decimal precision.
"""

import datetime
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from ..schemas import (
    InvestmentDraft,
    InvestmentRecord,
    Founder,
    ShareConfiguration,
    EsopPool,
    FundraisingDraft,
    FundraisingRound,
    CompanyLedgerAccount,
)

Row = Dict[str, Any]

# Tables
INVESTMENT_RECORDS = "investment_records"
FOUNDERS = "founders"
SHARE_CONFIGURATIONS = "share_configurations"
ESOP_POOLS = "esop_pools"
FUNDRAISING_DETAILS = "fundraising_details"
COMPANIES = "companies"

# Column holding the company id in every ledger table
COMPANY_COLUMN = "startup_id"


def _money(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


def _decimal(value: Any) -> Optional[Decimal]:
    return None if value is None else Decimal(str(value))


def _iso(value: datetime.date) -> str:
    return value.isoformat()


def _date(value: Any) -> datetime.date:
    if isinstance(value, datetime.date):
        return value
    return datetime.date.fromisoformat(str(value)[:10])


def company_filter(company_id: int) -> Row:
    return {COMPANY_COLUMN: company_id}


# =============================================================================
# Investment records
# =============================================================================

_INVESTMENT_COLUMNS = {
    "date": "date",
    "investor_type": "investor_type",
    "round_type": "investment_type",
    "investor_name": "investor_name",
    "investor_code": "investor_code",
    "amount": "amount",
    "equity_allocated_percent": "equity_allocated",
    "post_money_valuation": "post_money_valuation",
    "proof_url": "proof_url",
}


def investment_to_row(company_id: int, draft: InvestmentDraft) -> Row:
    return {
        COMPANY_COLUMN: company_id,
        **investment_fields_to_columns(draft.model_dump()),
    }


def investment_fields_to_columns(fields: Mapping[str, Any]) -> Row:
    """Translate (a subset of) investment model fields to storage columns."""
    row: Row = {}
    for field, value in fields.items():
        column = _INVESTMENT_COLUMNS[field]
        if field == "date" and value is not None:
            value = _iso(value)
        elif field in ("amount", "equity_allocated_percent", "post_money_valuation"):
            value = _money(value)
        elif hasattr(value, "value"):
            value = value.value
        row[column] = value
    return row


def row_to_investment(row: Mapping[str, Any]) -> InvestmentRecord:
    return InvestmentRecord(
        id=row["id"],
        company_id=row[COMPANY_COLUMN],
        date=_date(row["date"]),
        investor_type=row["investor_type"],
        round_type=row["investment_type"],
        investor_name=row["investor_name"],
        investor_code=row.get("investor_code"),
        amount=_decimal(row["amount"]),
        equity_allocated_percent=_decimal(row["equity_allocated"]),
        post_money_valuation=_decimal(row["post_money_valuation"]),
        proof_url=row.get("proof_url"),
    )


# =============================================================================
# Founders
# =============================================================================

def founder_to_row(company_id: int, founder: Founder) -> Row:
    return {COMPANY_COLUMN: company_id, "name": founder.name, "email": founder.email}


def row_to_founder(row: Mapping[str, Any]) -> Founder:
    return Founder(name=row["name"], email=row["email"])


# =============================================================================
# Share configuration and ESOP
# =============================================================================

def share_configuration_to_row(config: ShareConfiguration) -> Row:
    return {COMPANY_COLUMN: config.company_id, "total_shares": config.total_shares}


def row_to_share_configuration(row: Mapping[str, Any]) -> ShareConfiguration:
    return ShareConfiguration(company_id=row[COMPANY_COLUMN], total_shares=int(row["total_shares"]))


def esop_pool_to_row(pool: EsopPool) -> Row:
    return {COMPANY_COLUMN: pool.company_id, "esop_reserved_shares": pool.reserved_shares}


def row_to_esop_pool(row: Mapping[str, Any]) -> EsopPool:
    return EsopPool(company_id=row[COMPANY_COLUMN], reserved_shares=int(row["esop_reserved_shares"]))


# =============================================================================
# Fundraising
# =============================================================================

def fundraising_to_row(company_id: int, draft: FundraisingDraft) -> Row:
    return {
        COMPANY_COLUMN: company_id,
        "active": draft.active,
        "type": draft.round_stage,
        "value": _money(draft.target_value),
        "equity": _money(draft.target_equity_percent),
        "validation_requested": draft.validation_requested,
        "pitch_deck_url": draft.pitch_deck_url,
        "pitch_video_url": draft.pitch_video_url,
    }


def row_to_fundraising(row: Mapping[str, Any]) -> FundraisingRound:
    return FundraisingRound(
        company_id=row[COMPANY_COLUMN],
        active=bool(row["active"]),
        round_stage=row["type"],
        target_value=_decimal(row["value"]),
        target_equity_percent=_decimal(row["equity"]),
        validation_requested=bool(row.get("validation_requested", False)),
        pitch_deck_url=row.get("pitch_deck_url"),
        pitch_video_url=row.get("pitch_video_url"),
    )


# =============================================================================
# Company account
# =============================================================================

def account_to_row(account: CompanyLedgerAccount) -> Row:
    return {
        "id": account.company_id,
        "total_funding": _money(account.total_funding),
        "current_valuation": _money(account.current_valuation),
        "applied_compensations": list(account.applied_compensations),
    }


def row_to_account(row: Mapping[str, Any]) -> CompanyLedgerAccount:
    return CompanyLedgerAccount(
        company_id=row["id"],
        total_funding=_decimal(row.get("total_funding")) or Decimal("0"),
        current_valuation=_decimal(row.get("current_valuation")),
        applied_compensations=list(row.get("applied_compensations") or []),
    )

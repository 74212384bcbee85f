"""Shared fixtures for the equity ledger tests."""

import datetime
from decimal import Decimal
from typing import Optional

import pytest

from equity_ledger.changes import ChangeFeed
from equity_ledger.config import LedgerSettings
from equity_ledger.schemas import EmployeeAllocation, InvestmentRecord
from equity_ledger.store import (
    InMemoryBackend,
    InMemoryFileStorage,
    InMemoryInvestorLinks,
    InMemoryValidationWorkflow,
    LedgerStore,
    StaticEmployeeDirectory,
)

TODAY = datetime.date(2025, 6, 30)
COMPANY_ID = 1


@pytest.fixture
def today() -> datetime.date:
    return TODAY


@pytest.fixture
def settings() -> LedgerSettings:
    return LedgerSettings(ENVIRONMENT="test", MAX_RECORD_AGE_YEARS=50, COMPENSATION_MAX_ATTEMPTS=3)


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def feed() -> ChangeFeed:
    return ChangeFeed()


@pytest.fixture
def storage() -> InMemoryFileStorage:
    return InMemoryFileStorage()


@pytest.fixture
def workflow() -> InMemoryValidationWorkflow:
    return InMemoryValidationWorkflow()


@pytest.fixture
def links() -> InMemoryInvestorLinks:
    return InMemoryInvestorLinks()


@pytest.fixture
def employees() -> StaticEmployeeDirectory:
    return StaticEmployeeDirectory({
        COMPANY_ID: [
            EmployeeAllocation(name="Ana", esop_allocation_value=Decimal("60000")),
            EmployeeAllocation(name="Ben", esop_allocation_value=Decimal("40000")),
        ]
    })


@pytest.fixture
def store(backend, storage, employees, workflow, links, feed, settings) -> LedgerStore:
    return LedgerStore(
        backend,
        file_storage=storage,
        employees=employees,
        validation_workflow=workflow,
        investor_links=links,
        changes=feed,
        settings=settings,
        today=lambda: TODAY,
    )


@pytest.fixture
def company(store):
    """Company 1 with a recorded total funding of 250,000."""
    return store.open_company_account(COMPANY_ID, total_funding=Decimal("250000"))


@pytest.fixture
def draft():
    """Factory for investment draft payloads (dicts, as a form would submit)."""

    def make(**overrides) -> dict:
        data = {
            "date": datetime.date(2024, 3, 1),
            "investor_type": "VC Firm",
            "round_type": "Equity",
            "investor_name": "SeedFund Ventures",
            "amount": Decimal("100000"),
            "equity_allocated_percent": Decimal("10"),
        }
        data.update(overrides)
        return data

    return make


@pytest.fixture
def make_record():
    """Factory for stored InvestmentRecords used by the pure calculation tests."""

    def make(
        record_id: int,
        date: datetime.date,
        amount: str = "100000",
        equity: str = "10",
        post_money: Optional[str] = None,
        round_type: str = "Equity",
        investor_name: Optional[str] = None,
    ) -> InvestmentRecord:
        amount_d = Decimal(amount)
        equity_d = Decimal(equity)
        if post_money is None:
            post_money_d = amount_d * 100 / equity_d
        else:
            post_money_d = Decimal(post_money)
        return InvestmentRecord(
            id=record_id,
            company_id=COMPANY_ID,
            date=date,
            investor_type="VC Firm",
            round_type=round_type,
            investor_name=investor_name or f"Investor {record_id}",
            amount=amount_d,
            equity_allocated_percent=equity_d,
            post_money_valuation=post_money_d,
        )

    return make

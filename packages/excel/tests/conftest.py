"""Fixtures for workbook report tests."""

import datetime
from decimal import Decimal

import pytest

from equity_ledger.config import LedgerSettings
from equity_ledger.schemas import EmployeeAllocation
from equity_ledger.store import InMemoryBackend, LedgerStore, StaticEmployeeDirectory


@pytest.fixture
def ledger_store() -> LedgerStore:
    employees = StaticEmployeeDirectory({
        1: [EmployeeAllocation(name="Ana", esop_allocation_value=Decimal("150000"))],
    })
    return LedgerStore(
        InMemoryBackend(),
        employees=employees,
        settings=LedgerSettings(_env_file=None),
        today=lambda: datetime.date(2025, 6, 30),
    )


@pytest.fixture
def snapshot(ledger_store):
    """Seed + Series A, one grant, two founders, 10,000 shares with 1,000 reserved."""
    ledger_store.open_company_account(1, total_funding=Decimal("1650000"))
    for data in [
        {"date": datetime.date(2022, 4, 1), "investor_type": "Angel", "round_type": "Equity",
         "investor_name": "Early Angel", "amount": Decimal("150000"), "equity_allocated_percent": Decimal("10")},
        {"date": datetime.date(2023, 8, 15), "investor_type": "Government", "round_type": "Grant",
         "investor_name": "Innovation Agency", "amount": Decimal("500000"),
         "equity_allocated_percent": Decimal("0"), "post_money_valuation": Decimal("2000000")},
        {"date": datetime.date(2024, 11, 1), "investor_type": "VC Firm", "round_type": "Equity",
         "investor_name": "Growth Partners", "amount": Decimal("1000000"), "equity_allocated_percent": Decimal("20")},
    ]:
        ledger_store.add_investment_record(1, data).unwrap()

    ledger_store.upsert_share_configuration(1, 10000).unwrap()
    ledger_store.upsert_esop_reserved_shares(1, 1000).unwrap()
    ledger_store.replace_founders(1, [
        {"name": "Maya Chen", "email": "maya@example.com"},
        {"name": "Tom Reed", "email": "tom@example.com"},
    ]).unwrap()
    ledger_store.set_fundraising_round(1, {
        "active": True,
        "round_stage": "Series B",
        "target_value": Decimal("8000000"),
        "target_equity_percent": Decimal("15"),
    }).unwrap()

    return ledger_store.load_snapshot(1)

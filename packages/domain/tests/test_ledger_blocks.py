"""Tests for ledger computation blocks.

Tests cover:
- BlockContext get/set/has
- Topological sort and dependency resolution
- BlockExecutor validation
- Valuation, Equity, Esop and Summary blocks over a stored ledger
"""

import datetime
from decimal import Decimal

import pandas as pd
import pytest

from equity_ledger.blocks import (
    Block,
    BlockContext,
    BlockExecutor,
    EquityBlock,
    EsopBlock,
    SummaryBlock,
    ValuationBlock,
    default_blocks,
)
from equity_ledger.blocks.base import CircularDependencyError, topological_sort


# =============================================================================
# BlockContext
# =============================================================================

def test_block_context_get_set_has():
    context = BlockContext()
    assert not context.has("key")
    context.set("key", 1)
    assert context.get("key") == 1
    assert context.keys() == ["key"]


def test_block_context_missing_key():
    with pytest.raises(KeyError, match="Key 'missing' not found"):
        BlockContext().get("missing")


# =============================================================================
# Dependency resolution
# =============================================================================

class StubBlock(Block):

    def __init__(self, name, inputs, outputs, write=True):
        self.name = name
        self._inputs = inputs
        self._outputs = outputs
        self._write = write

    def inputs(self):
        return self._inputs

    def outputs(self):
        return self._outputs

    def execute(self, context):
        if self._write:
            for key in self._outputs:
                context.set(key, self.name)


def test_topological_sort_orders_producers_first():
    a = StubBlock("a", [], ["A"])
    b = StubBlock("b", ["A"], ["B"])
    c = StubBlock("c", ["B"], ["C"])

    assert topological_sort([c, a, b]) == [a, b, c]


def test_topological_sort_keeps_order_of_independent_blocks():
    a = StubBlock("a", ["seed"], ["A"])
    b = StubBlock("b", ["seed"], ["B"])
    assert topological_sort([b, a]) == [b, a]


def test_circular_dependency():
    a = StubBlock("a", ["B"], ["A"])
    b = StubBlock("b", ["A"], ["B"])
    with pytest.raises(CircularDependencyError):
        topological_sort([a, b])


def test_duplicate_output():
    with pytest.raises(ValueError, match="Multiple blocks produce 'A'"):
        topological_sort([StubBlock("a", [], ["A"]), StubBlock("b", [], ["A"])])


def test_executor_missing_input():
    with pytest.raises(KeyError, match="requires inputs"):
        BlockExecutor([StubBlock("a", ["absent"], ["A"])]).execute(BlockContext())


def test_executor_missing_output():
    with pytest.raises(ValueError, match="didn't write it"):
        BlockExecutor([StubBlock("a", [], ["A"], write=False)]).execute(BlockContext())


def test_esop_block_runs_after_valuation_block():
    order = topological_sort(default_blocks())
    names = [type(block).__name__ for block in order]
    assert names.index("ValuationBlock") < names.index("EsopBlock")


# =============================================================================
# Ledger blocks
# =============================================================================

@pytest.fixture
def ledger_context(store, company, draft):
    store.add_investment_record(1, draft(date=datetime.date(2024, 6, 1), investor_name="Series A Fund",
                                         amount=Decimal("400000"), equity_allocated_percent=Decimal("20")))
    store.add_investment_record(1, draft(date=datetime.date(2023, 2, 1), investor_name="Angel One",
                                         investor_type="Angel", amount=Decimal("50000")))
    store.add_investment_record(1, draft(date=datetime.date(2023, 9, 1), investor_name="Bank Loan",
                                         investor_type="Corporate", round_type="Debt",
                                         amount=Decimal("75000"), equity_allocated_percent=Decimal("0"),
                                         post_money_valuation=Decimal("900000")))
    store.upsert_share_configuration(1, 1000)
    store.upsert_esop_reserved_shares(1, 100)
    store.replace_founders(1, [
        {"name": "Maya", "email": "maya@example.com"},
        {"name": "Tom", "email": "tom@example.com"},
    ])

    context = BlockContext()
    context.set("ledger_snapshot", store.load_snapshot(1))
    return context


def test_valuation_block(ledger_context):
    ValuationBlock().execute(ledger_context)

    history = ledger_context.get("valuation_history")
    assert isinstance(history, pd.DataFrame)
    assert list(history["investor_name"]) == ["Angel One", "Bank Loan", "Series A Fund"]
    assert history["valuation"].iloc[-1] == 2000000.0
    assert ledger_context.get("current_valuation") == Decimal("2000000")


def test_equity_block(ledger_context):
    EquityBlock().execute(ledger_context)

    slices = ledger_context.get("equity_distribution")
    assert list(slices["holder_name"]) == ["Maya", "Tom", "Series A Fund", "Angel One"]
    assert list(slices["equity_percent"]) == [35.0, 35.0, 20.0, 10.0]

    totals = ledger_context.get("equity_totals").iloc[0]
    assert totals["founder_residual"] == 70.0
    assert not totals["over_allocated"]


def test_esop_block_needs_current_valuation(ledger_context):
    with pytest.raises(KeyError):
        EsopBlock().execute(ledger_context)


def test_summary_block(ledger_context):
    SummaryBlock().execute(ledger_context)

    records = ledger_context.get("investment_records")
    assert list(records["record_id"]) == [1, 2, 3]

    summary = ledger_context.get("funding_summary").iloc[0]
    assert summary["total_equity_funding"] == 450000.0
    assert summary["total_debt_funding"] == 75000.0
    assert summary["total_funding"] == 525000.0
    assert summary["investment_count"] == 3
    assert summary["recorded_total_funding"] == 250000.0


def test_default_blocks_end_to_end(ledger_context):
    BlockExecutor(default_blocks()).execute(ledger_context)

    esop = ledger_context.get("esop_status").iloc[0]
    assert esop["price_per_share"] == 2000.0
    assert esop["reserved_value"] == 200000.0
    assert esop["allocated_value"] == 100000.0
    assert esop["utilization"] == 0.5


def test_blocks_on_empty_ledger(store):
    context = BlockContext()
    context.set("ledger_snapshot", store.load_snapshot(5))

    BlockExecutor(default_blocks()).execute(context)

    assert context.get("valuation_history").empty
    assert context.get("investment_records").empty
    assert context.get("current_valuation") == Decimal("0")
    assert context.get("esop_status").iloc[0]["price_per_share"] == 0.0

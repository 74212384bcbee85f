"""Tests for funding summary aggregation."""

import datetime
from decimal import Decimal

from equity_ledger.calculations import summarize, total_for
from equity_ledger.schemas import RoundType

DAY = datetime.date(2024, 5, 1)


def test_totals_per_category(make_record):
    records = [
        make_record(1, DAY, amount="100000", equity="10"),
        make_record(2, DAY, amount="50000", equity="5"),
        make_record(3, DAY, amount="200000", equity="0", post_money="4000000", round_type="Debt"),
        make_record(4, DAY, amount="25000", equity="0", post_money="4000000", round_type="Grant"),
    ]

    summary = summarize(records)

    assert summary.total_equity_funding == Decimal("150000")
    assert summary.total_debt_funding == Decimal("200000")
    assert summary.total_grant_funding == Decimal("25000")
    assert summary.total_funding == Decimal("375000")
    assert summary.investment_count == 4
    assert summary.avg_equity_allocated == Decimal("3.75")


def test_total_for_single_category(make_record):
    records = [make_record(1, DAY, round_type="Debt"), make_record(2, DAY)]
    assert total_for(records, RoundType.DEBT) == Decimal("100000")
    assert total_for(records, RoundType.GRANT) == Decimal("0")


def test_empty_ledger_summary():
    summary = summarize([])

    assert summary.total_funding == Decimal("0")
    assert summary.investment_count == 0
    assert summary.avg_equity_allocated == Decimal("0")


def test_summary_recomputed_from_current_records(make_record):
    records = [make_record(1, DAY), make_record(2, DAY, amount="300000")]
    assert summarize(records).total_equity_funding == Decimal("400000")
    assert summarize(records[:1]).total_equity_funding == Decimal("100000")

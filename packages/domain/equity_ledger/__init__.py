"""Equity Ledger - a company's cap table as a ledger of financing events.

This package provides:
- Investment records (equity, debt, grants), founders, share configuration,
  ESOP reserve and fundraising round, validated with Pydantic
- Pure derivations: post-money valuation, valuation history, current
  valuation, founder/investor equity split, ESOP utilization, funding totals
- A ledger store over a pluggable row backend with typed results,
  categorized persistence errors and compensated (non-atomic) side effects
- A change feed so readers re-read the ledger after every write
- Computation blocks producing pandas DataFrames for reporting

The domain layer is designed to be:
- Framework-agnostic (no web dependencies)
- Testable (in-memory backend and collaborators included)
"""

from .schemas import *  # noqa: F403, F401

__version__ = "0.1.0"

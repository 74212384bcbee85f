"""Ledger store: persistence boundary, row mapping, compensations and collaborators.

Usage:
    from equity_ledger.store import LedgerStore, InMemoryBackend

    store = LedgerStore(InMemoryBackend())
    result = store.add_investment_record(company_id, draft)
"""

from .backend import BackendError, InMemoryBackend, LedgerBackend
from .collaborators import (
    EmployeeDirectory,
    FileStorage,
    InMemoryFileStorage,
    InMemoryInvestorLinks,
    InMemoryValidationWorkflow,
    InvestorLinkRegistry,
    StaticEmployeeDirectory,
    StorageError,
    UploadedFile,
    ValidationRequestWorkflow,
    document_path,
    extract_storage_path,
)
from .compensation import CompensatingAction, CompensationQueue, FundingRollback
from .ledger_store import LedgerStore, coerce_share_count, to_validation_error
from .results import OperationResult

__all__ = [
    # Backend
    "BackendError",
    "InMemoryBackend",
    "LedgerBackend",
    # Collaborators
    "EmployeeDirectory",
    "FileStorage",
    "InMemoryFileStorage",
    "InMemoryInvestorLinks",
    "InMemoryValidationWorkflow",
    "InvestorLinkRegistry",
    "StaticEmployeeDirectory",
    "StorageError",
    "UploadedFile",
    "ValidationRequestWorkflow",
    "document_path",
    "extract_storage_path",
    # Compensations
    "CompensatingAction",
    "CompensationQueue",
    "FundingRollback",
    # Store
    "LedgerStore",
    "OperationResult",
    "coerce_share_count",
    "to_validation_error",
]

"""Tests for errors, settings and logging setup."""

import json
import logging

import pytest

from equity_ledger.config import LedgerSettings
from equity_ledger.errors import (
    DependentOperationWarning,
    LedgerError,
    PersistenceError,
    PersistenceErrorKind,
    UploadError,
    ValidationError,
)
from equity_ledger.logging_config import DetailedFormatter, JSONFormatter, setup_logging


# =============================================================================
# Errors
# =============================================================================

def test_validation_error_fields():
    error = ValidationError("amount", "must be positive")
    assert isinstance(error, LedgerError)
    assert error.code == "VALIDATION_ERROR"
    assert error.message == "amount: must be positive"


@pytest.mark.parametrize(
    "code,kind",
    [
        ("42501", PersistenceErrorKind.PERMISSION_DENIED),
        ("23503", PersistenceErrorKind.FOREIGN_KEY_VIOLATION),
        ("23505", PersistenceErrorKind.UNIQUE_VIOLATION),
        ("23502", PersistenceErrorKind.NOT_NULL_VIOLATION),
        ("08006", PersistenceErrorKind.UNKNOWN),
    ],
)
def test_persistence_error_from_code(code, kind):
    error = PersistenceError.from_code(code, operation="insert founders", message="backend said no")

    assert error.kind == kind
    assert error.code == f"PERSISTENCE_{kind.name}"
    assert error.details == {"sqlstate": code}
    assert error.backend_message == "backend said no"
    assert error.user_message == str(error)


def test_upload_error_message():
    error = UploadError("deck.pdf", "bucket full")
    assert str(error) == "Upload of deck.pdf failed: bucket full"


def test_dependent_warning_is_a_user_warning():
    warning = DependentOperationWarning("funding_rollback", "timeout", idempotency_key="funding-rollback:3")
    assert isinstance(warning, UserWarning)
    assert str(warning) == "funding_rollback: timeout"


# =============================================================================
# Settings
# =============================================================================

def test_settings_defaults():
    settings = LedgerSettings(_env_file=None)
    assert settings.DOCUMENT_BUCKET == "cap-table-documents"
    assert settings.MAX_RECORD_AGE_YEARS == 50
    assert settings.COMPENSATION_MAX_ATTEMPTS == 3
    assert settings.BASE_CURRENCY == "USD"


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("LEDGER_MAX_RECORD_AGE_YEARS", "10")
    monkeypatch.setenv("LEDGER_LOG_JSON", "true")

    settings = LedgerSettings(_env_file=None)

    assert settings.MAX_RECORD_AGE_YEARS == 10
    assert settings.LOG_JSON is True


# =============================================================================
# Logging
# =============================================================================

@pytest.fixture
def restore_ledger_logger():
    logger = logging.getLogger("equity_ledger")
    saved = (logger.level, list(logger.handlers), logger.propagate)
    yield logger
    logger.setLevel(saved[0])
    logger.handlers[:] = saved[1]
    logger.propagate = saved[2]


def test_json_formatter_includes_company_id():
    record = logging.LogRecord("equity_ledger.store", logging.INFO, __file__, 10, "saved %s", ("round",), None)
    record.company_id = 7

    payload = json.loads(JSONFormatter().format(record))

    assert payload["message"] == "saved round"
    assert payload["level"] == "INFO"
    assert payload["company_id"] == 7


def test_setup_logging_json(restore_ledger_logger):
    logger = setup_logging(level="debug", enable_json=True)

    assert logger is restore_ledger_logger
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, JSONFormatter)


def test_setup_logging_text(restore_ledger_logger):
    logger = setup_logging(level="WARNING", enable_json=False)
    assert isinstance(logger.handlers[0].formatter, DetailedFormatter)

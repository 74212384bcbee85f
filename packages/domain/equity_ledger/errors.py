"""Error taxonomy of the equity ledger.

- ValidationError: input rejected before any write. Returned on
  OperationResult.error by the ledger store, never raised out of it.
- PersistenceError: failure reported by the persistence backend, categorized
  by kind and raised to the caller. Not retried.
- UploadError: proof/pitch document upload failed. Raised; the dependent save
  is never attempted.
- DependentOperationWarning: a side effect (funding rollback, validation
  request, investor link) failed after the primary operation succeeded.
  Logged and collected on OperationResult.warnings.
"""

from enum import Enum
from typing import Optional, Dict, Any


class LedgerError(Exception):
    """Base exception for all ledger errors."""

    def __init__(self, message: str, code: str = "LEDGER_ERROR", details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(LedgerError):
    """Raised when a draft or edit fails validation."""

    def __init__(self, field: str, reason: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"{field}: {reason}", "VALIDATION_ERROR", details)
        self.field = field
        self.reason = reason


class PersistenceErrorKind(str, Enum):
    PERMISSION_DENIED = "PermissionDenied"
    FOREIGN_KEY_VIOLATION = "ForeignKeyViolation"
    UNIQUE_VIOLATION = "UniqueViolation"
    NOT_NULL_VIOLATION = "NotNullViolation"
    UNKNOWN = "Unknown"


# SQLSTATE codes reported by the backend
SQLSTATE_KINDS: Dict[str, PersistenceErrorKind] = {
    "42501": PersistenceErrorKind.PERMISSION_DENIED,
    "23503": PersistenceErrorKind.FOREIGN_KEY_VIOLATION,
    "23505": PersistenceErrorKind.UNIQUE_VIOLATION,
    "23502": PersistenceErrorKind.NOT_NULL_VIOLATION,
}

USER_MESSAGES: Dict[PersistenceErrorKind, str] = {
    PersistenceErrorKind.PERMISSION_DENIED: "You do not have permission to change this company's cap table.",
    PersistenceErrorKind.FOREIGN_KEY_VIOLATION: "The company or a referenced entry no longer exists.",
    PersistenceErrorKind.UNIQUE_VIOLATION: "An entry with the same identity already exists.",
    PersistenceErrorKind.NOT_NULL_VIOLATION: "A required field was missing when saving.",
    PersistenceErrorKind.UNKNOWN: "The cap table could not be saved. Please try again.",
}


class PersistenceError(LedgerError):
    """Raised when the persistence backend rejects an operation."""

    def __init__(
        self,
        kind: PersistenceErrorKind,
        operation: Optional[str] = None,
        backend_message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(USER_MESSAGES[kind], f"PERSISTENCE_{kind.name}", details)
        self.kind = kind
        self.operation = operation
        self.backend_message = backend_message

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.kind]

    @classmethod
    def from_code(cls, code: Optional[str], operation: Optional[str] = None, message: Optional[str] = None) -> "PersistenceError":
        kind = SQLSTATE_KINDS.get(code or "", PersistenceErrorKind.UNKNOWN)
        return cls(kind, operation=operation, backend_message=message, details={"sqlstate": code})


class UploadError(LedgerError):
    """Raised when a document upload fails."""

    def __init__(self, filename: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"Upload of {filename} failed: {message}", "UPLOAD_ERROR", details)
        self.filename = filename


class DependentOperationWarning(UserWarning):
    """Non-fatal failure of a side effect after the primary operation succeeded."""

    def __init__(self, operation: str, reason: str, idempotency_key: Optional[str] = None):
        super().__init__(f"{operation}: {reason}")
        self.operation = operation
        self.reason = reason
        self.idempotency_key = idempotency_key

"""Typed outcome of a ledger store operation."""

from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

from ..errors import DependentOperationWarning, ValidationError

T = TypeVar("T")


@dataclass
class OperationResult(Generic[T]):
    """Outcome of a store write.

    ``ok`` reports the primary operation only. Side-effect failures are listed in
    ``warnings`` and never turn a successful result into a failed one.

    Example:
        result = store.add_investment_record(1, draft)
        if not result.ok:
            show_field_error(result.error.field, result.error.reason)
        for warning in result.warnings:
            show_soft_warning(str(warning))
    """

    value: Optional[T] = None
    error: Optional[ValidationError] = None
    warnings: List[DependentOperationWarning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Value of a successful result.

        Raises:
            ValidationError: If the operation was rejected
        """
        if self.error is not None:
            raise self.error
        return self.value

    @classmethod
    def success(cls, value: T = None, warnings: Optional[List[DependentOperationWarning]] = None) -> "OperationResult[T]":
        return cls(value=value, warnings=list(warnings or []))

    @classmethod
    def failure(cls, error: ValidationError) -> "OperationResult[T]":
        return cls(error=error)

"""Compensating actions for non-atomic ledger writes.

Deleting an investment record and subtracting its amount from the company's
total funding are two independent writes. The delete commits first; the
subtraction is queued here as a CompensatingAction with an idempotency key.

Idempotency:
    A FundingRollback records its key in the company row's
    ``applied_compensations`` list in the same update that changes
    ``total_funding``. Replaying an already-applied key is a no-op, so a
    queued action can be retried any number of times without subtracting twice.

Failure handling:
    A failed attempt stays queued and produces a DependentOperationWarning.
    After ``max_attempts`` failures the action is dropped from the queue and
    reported as abandoned.

    A full recompute of total funding supersedes pending rollbacks: it marks
    their keys applied and discards them from the queue.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from ..errors import DependentOperationWarning
from .backend import BackendError, LedgerBackend
from .mapping import COMPANIES, row_to_account

logger = logging.getLogger(__name__)


# =============================================================================
# Actions
# =============================================================================

class CompensatingAction(ABC):
    """A side effect that must eventually follow a committed primary write."""

    key: str
    operation: str
    company_id: int

    @abstractmethod
    def apply(self, backend: LedgerBackend) -> bool:
        """Apply the action.

        Returns:
            True if applied now, False if the key had already been applied

        Raises:
            BackendError: If the backend rejects the read or the update
        """
        pass


@dataclass
class FundingRollback(CompensatingAction):
    """Subtract a deleted record's amount from the company total funding."""

    company_id: int
    record_id: int
    amount: Decimal
    operation: str = "funding_rollback"

    @property
    def key(self) -> str:
        return f"funding-rollback:{self.record_id}"

    def apply(self, backend: LedgerBackend) -> bool:
        rows = backend.get(COMPANIES, {"id": self.company_id})
        if not rows:
            raise BackendError(f"company {self.company_id} not found", code="23503")

        account = row_to_account(rows[0])
        if self.key in account.applied_compensations:
            return False

        backend.update(
            COMPANIES,
            {"id": self.company_id},
            {
                "total_funding": str(account.total_funding - self.amount),
                "applied_compensations": account.applied_compensations + [self.key],
            },
        )
        return True


# =============================================================================
# Queue
# =============================================================================

@dataclass
class _Pending:
    action: CompensatingAction
    attempts: int = 0


@dataclass
class CompensationQueue:
    """Queue of compensating actions keyed by idempotency key.

    Enqueuing a key that is already pending keeps the existing entry.

    Example:
        queue = CompensationQueue(backend, max_attempts=3)
        queue.enqueue(FundingRollback(company_id=1, record_id=7, amount=Decimal("50000")))
        warnings = queue.drain()  # [] when the rollback was applied
    """

    backend: LedgerBackend
    max_attempts: int = 3
    _pending: Dict[str, _Pending] = field(default_factory=dict)

    def enqueue(self, action: CompensatingAction) -> None:
        if action.key not in self._pending:
            self._pending[action.key] = _Pending(action)

    @property
    def pending_keys(self) -> List[str]:
        return list(self._pending.keys())

    def __len__(self) -> int:
        return len(self._pending)

    def pending_for(self, company_id: int) -> List[str]:
        return [key for key, entry in self._pending.items() if entry.action.company_id == company_id]

    def discard(self, keys: List[str]) -> None:
        """Drop pending actions without applying them."""
        for key in keys:
            self._pending.pop(key, None)

    def drain(self, company_id: Optional[int] = None) -> List[DependentOperationWarning]:
        """Attempt pending actions once, in enqueue order.

        Args:
            company_id: Only attempt this company's actions (None = all)

        Returns:
            Warnings for actions that failed on this pass
        """
        warnings: List[DependentOperationWarning] = []

        keys = self.pending_keys if company_id is None else self.pending_for(company_id)
        for key in keys:
            entry = self._pending[key]
            entry.attempts += 1
            try:
                applied = entry.action.apply(self.backend)
            except BackendError as exc:
                abandoned = entry.attempts >= self.max_attempts
                reason = f"{exc.message} (attempt {entry.attempts}/{self.max_attempts}"
                reason += ", abandoned)" if abandoned else ", will retry)"
                logger.warning("Compensation %s failed: %s", key, reason)
                warnings.append(DependentOperationWarning(entry.action.operation, reason, idempotency_key=key))
                if abandoned:
                    del self._pending[key]
                continue

            if applied:
                logger.info("Compensation %s applied", key)
            else:
                logger.info("Compensation %s already applied, skipped", key)
            del self._pending[key]

        return warnings

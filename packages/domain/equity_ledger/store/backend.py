"""Persistence boundary of the ledger store.

The store talks to a row-level backend through LedgerBackend: named tables,
equality filters (company id, record id) and plain dict rows. Backend failures
surface as BackendError carrying a SQLSTATE code; the store maps them to
categorized PersistenceErrors.

InMemoryBackend is the reference implementation used by tests and local runs.
It keeps rows in insertion order, assigns integer ids on insert and can be
told to fail specific operations.
"""

import copy
import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


class BackendError(Exception):
    """Failure reported by a persistence backend."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class LedgerBackend(Protocol):
    """Row-level persistence used by the ledger store."""

    def get(self, table: str, filters: Mapping[str, Any]) -> List[Row]:
        ...

    def insert(self, table: str, rows: List[Row]) -> List[Row]:
        ...

    def update(self, table: str, filters: Mapping[str, Any], values: Mapping[str, Any]) -> List[Row]:
        ...

    def delete(self, table: str, filters: Mapping[str, Any]) -> List[Row]:
        ...


# =============================================================================
# In-memory backend
# =============================================================================

class InMemoryBackend:
    """Dict-backed LedgerBackend.

    Example:
        backend = InMemoryBackend()
        backend.insert("companies", [{"id": 1, "total_funding": "0"}])

        # Make the next two updates of "companies" fail with a permission error
        backend.fail_on("update", "companies", code="42501", times=2)
    """

    def __init__(self):
        self._tables: Dict[str, List[Row]] = {}
        self._next_id: Dict[str, int] = {}
        self._failures: Dict[Tuple[str, str], List[Optional[str]]] = {}

    # ------------------------------------------------------------------ #
    # Fault injection
    # ------------------------------------------------------------------ #

    def fail_on(self, operation: str, table: str, code: Optional[str] = None, times: int = 1) -> None:
        """Make the next `times` calls of `operation` on `table` raise BackendError."""
        self._failures.setdefault((operation, table), []).extend([code] * times)

    def _maybe_fail(self, operation: str, table: str) -> None:
        pending = self._failures.get((operation, table))
        if pending:
            code = pending.pop(0)
            raise BackendError(f"injected {operation} failure on {table}", code=code)

    # ------------------------------------------------------------------ #
    # LedgerBackend
    # ------------------------------------------------------------------ #

    def _rows(self, table: str) -> List[Row]:
        return self._tables.setdefault(table, [])

    @staticmethod
    def _matches(row: Row, filters: Mapping[str, Any]) -> bool:
        return all(row.get(key) == value for key, value in filters.items())

    def get(self, table: str, filters: Mapping[str, Any]) -> List[Row]:
        self._maybe_fail("get", table)
        return [copy.deepcopy(row) for row in self._rows(table) if self._matches(row, filters)]

    def insert(self, table: str, rows: List[Row]) -> List[Row]:
        self._maybe_fail("insert", table)
        stored = []
        for row in rows:
            row = copy.deepcopy(dict(row))
            if row.get("id") is None:
                next_id = self._next_id.get(table, 1)
                row["id"] = next_id
                self._next_id[table] = next_id + 1
            elif any(existing["id"] == row["id"] for existing in self._rows(table)):
                raise BackendError(f"duplicate key id={row['id']} in {table}", code="23505")
            self._rows(table).append(row)
            stored.append(copy.deepcopy(row))
        logger.debug("Inserted %d row(s) into %s", len(stored), table)
        return stored

    def update(self, table: str, filters: Mapping[str, Any], values: Mapping[str, Any]) -> List[Row]:
        self._maybe_fail("update", table)
        updated = []
        for row in self._rows(table):
            if self._matches(row, filters):
                row.update(copy.deepcopy(dict(values)))
                updated.append(copy.deepcopy(row))
        return updated

    def delete(self, table: str, filters: Mapping[str, Any]) -> List[Row]:
        self._maybe_fail("delete", table)
        rows = self._rows(table)
        removed = [row for row in rows if self._matches(row, filters)]
        self._tables[table] = [row for row in rows if not self._matches(row, filters)]
        return removed

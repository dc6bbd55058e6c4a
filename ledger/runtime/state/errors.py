"""Error taxonomy for the ledger runtime.

``EntityNotFoundError`` and ``LedgerValidationError`` reach the caller of the
violating operation. ``PersistenceWarning`` and ``CorruptStateError`` are
recovered inside the durability layer and only ever logged.
"""

from __future__ import annotations

from typing import Iterable, List


class LedgerError(Exception):
    """Base class for errors surfaced by ledger operations."""


class EntityNotFoundError(LedgerError, LookupError):
    """Raised when an operation references an entity id that does not exist."""

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class LedgerValidationError(LedgerError, ValueError):
    """Raised when a write operation receives malformed or out-of-range input."""

    def __init__(self, violations: Iterable[str]) -> None:
        self.violations: List[str] = list(violations) or ["invalid input"]
        super().__init__("; ".join(self.violations))


class PersistenceWarning(RuntimeWarning):
    """A flush attempt failed; the store stays dirty and is retried on the next tick."""


class CorruptStateError(LedgerError):
    """The persisted image could not be decoded into a ledger graph."""


__all__ = [
    "LedgerError",
    "EntityNotFoundError",
    "LedgerValidationError",
    "PersistenceWarning",
    "CorruptStateError",
]

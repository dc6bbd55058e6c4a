"""
Entity Store - In-memory ledger graph guarded by one mutex

WHAT: Single source of truth for every ledger collection while the process lives
WHERE: ledger/runtime/state/entity_store.py - state layer below operations
WHO: LedgerOperations (reads/writes), DurabilityManager (snapshots)
TIME: mutate/read O(work in fn); snapshot O(graph size)

The store never performs I/O. Mutations run under the lock, bump a version
counter and mark the store dirty; the durability layer copies the whole graph
under the same lock and writes it elsewhere, so a flush always observes a
committed graph and never a half-applied mutation.

Notes:
- ``dirty_since`` uses a monotonic seconds source (idle-threshold policy)
- ``last_activity`` uses the millisecond ledger clock (persisted)
- A mutation that raises leaves the version untouched
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar

from .clock import MonotonicClock
from .models import Blocker, Decision, LedgerGraph

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EntityStore:
    """Owns the LedgerGraph plus its dirty/version bookkeeping."""

    def __init__(
        self,
        graph: LedgerGraph,
        clock: Optional[MonotonicClock] = None,
        *,
        monotonic: Optional[Callable[[], float]] = None,
    ) -> None:
        self._graph = graph
        self._clock = clock or MonotonicClock()
        self._monotonic = monotonic or time.monotonic
        self._lock = threading.RLock()
        self._version = 0
        self._clean_version = 0
        self._dirty_since: Optional[float] = None

    # ------------------ clock -------------------
    @property
    def clock(self) -> MonotonicClock:
        return self._clock

    def now_ms(self) -> int:
        return self._clock.now_ms()

    # ------------------ access ------------------
    def read(self, fn: Callable[[LedgerGraph], T]) -> T:
        with self._lock:
            return fn(self._graph)

    def mutate(self, fn: Callable[[LedgerGraph], T]) -> T:
        """Apply ``fn`` to the graph under the lock and mark the store dirty."""

        with self._lock:
            result = fn(self._graph)
            self._graph.session_metadata.last_activity = self._clock.now_ms()
            self._version += 1
            if self._dirty_since is None:
                self._dirty_since = self._monotonic()
            return result

    # ------------------ durability hooks ------------------
    def snapshot(self) -> Tuple[int, Dict[str, Any]]:
        """Return ``(version, payload)``: a full JSON-ready copy taken under the lock."""

        with self._lock:
            return self._version, self._graph.model_dump(mode="json")

    def mark_clean(self, version: int) -> bool:
        """Clear the dirty flag if nothing changed since ``version`` was snapshotted."""

        with self._lock:
            if version < self._clean_version:
                return False
            self._clean_version = version
            if version == self._version:
                self._dirty_since = None
                return True
            return False

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    @property
    def dirty(self) -> bool:
        with self._lock:
            return self._version != self._clean_version

    @property
    def dirty_since(self) -> Optional[float]:
        with self._lock:
            return self._dirty_since

    @property
    def auto_save_enabled(self) -> bool:
        with self._lock:
            return self._graph.session_metadata.auto_save_enabled


def append_decision(graph: LedgerGraph, decision: Decision) -> Decision:
    """Shared decision-append path for manual, lifecycle and extracted decisions."""

    graph.decisions.append(decision)
    logger.info(
        f"Decision {decision.id} logged: {decision.decision_type} ({decision.outcome})"
    )
    return decision


def append_blocker(graph: LedgerGraph, blocker: Blocker) -> Blocker:
    graph.blockers.append(blocker)
    logger.info(f"Blocker {blocker.id} logged: {blocker.title} [{blocker.severity}]")
    return blocker


__all__ = [
    "EntityStore",
    "append_blocker",
    "append_decision",
]

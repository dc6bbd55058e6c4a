"""
Durability Manager - Whole-image persistence for the ledger graph

WHAT: Loads the ledger image at startup and flushes it on an idle timer and at shutdown
WHERE: ledger/runtime/state/durability.py - bridges EntityStore and the state file
WHO: LedgerSession (startup/shutdown), background scheduler thread
TIME: tick O(1) when clean; flush O(graph size) outside the store lock

Persisted layout: one self-describing JSON document (``LedgerGraph``) written
to a sibling temp file and atomically renamed over the previous image. A
missing file is a first run; a malformed one is logged and treated as absent.

Failure policy:
- Write failures are logged as PersistenceWarning and retried next tick
- Nothing here raises into a foreground operation
- ``shutdown`` flushes unconditionally (dirty or not, auto-save or not)
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from pydantic import ValidationError

from .clock import MonotonicClock
from .entity_store import EntityStore
from .errors import CorruptStateError, PersistenceWarning
from .models import SCHEMA_VERSION, LedgerGraph, SessionMetadata
from .telemetry import NoOpTelemetryClient, TelemetryClient

logger = logging.getLogger(__name__)


class StateFile:
    """Atomic JSON image on local disk."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> Optional[LedgerGraph]:
        """Return the persisted graph, ``None`` when absent; raise CorruptStateError when unreadable."""

        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise CorruptStateError(f"cannot read {self.path}: {exc}") from exc

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CorruptStateError(f"malformed JSON in {self.path}: {exc}") from exc

        if not isinstance(payload, dict):
            raise CorruptStateError(f"{self.path} does not hold a ledger document")
        version = payload.get("schema_version", SCHEMA_VERSION)
        if not isinstance(version, int) or version > SCHEMA_VERSION:
            raise CorruptStateError(f"unsupported schema_version {version!r} in {self.path}")

        try:
            return LedgerGraph.model_validate(payload)
        except ValidationError as exc:
            raise CorruptStateError(
                f"{self.path} failed validation ({exc.error_count()} errors)"
            ) from exc

    def write(self, payload: Mapping[str, Any]) -> int:
        """Write the whole image atomically; returns the number of bytes written."""

        data = json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_bytes(data)
        os.replace(tmp, self.path)
        return len(data)


def load_store(
    state_file: StateFile,
    clock: Optional[MonotonicClock] = None,
    *,
    auto_save_default: bool = True,
    monotonic: Optional[Callable[[], float]] = None,
) -> EntityStore:
    """Load the last image (or start empty) and open a fresh session on it."""

    clock = clock or MonotonicClock()
    try:
        graph = state_file.read()
    except CorruptStateError as exc:
        logger.warning(f"Ledger image unreadable, starting from empty state: {exc}")
        graph = None

    now = clock.now_ms()
    if graph is None:
        graph = LedgerGraph.empty(now, auto_save_enabled=auto_save_default)
        logger.info(f"Initialized empty ledger (session {graph.session_metadata.current_session_id})")
    else:
        previous = graph.session_metadata
        graph.session_metadata = SessionMetadata(
            session_start=now,
            last_activity=now,
            auto_save_enabled=previous.auto_save_enabled,
            previous_session_id=previous.current_session_id,
        )
        logger.info(
            f"Loaded ledger from {state_file.path}: {len(graph.services)} services, "
            f"{len(graph.transactions)} transactions, {len(graph.decisions)} decisions"
        )
    return EntityStore(graph, clock, monotonic=monotonic)


class DurabilityManager:
    """Idle-threshold flush scheduler with an explicit start/stop lifecycle."""

    def __init__(
        self,
        store: EntityStore,
        state_file: StateFile,
        *,
        check_interval: float = 10.0,
        idle_threshold: float = 30.0,
        telemetry: Optional[TelemetryClient] = None,
        monotonic: Optional[Callable[[], float]] = None,
    ) -> None:
        if check_interval <= 0:
            raise ValueError("check_interval must be positive")
        self.store = store
        self.state_file = state_file
        self.check_interval = check_interval
        self.idle_threshold = idle_threshold
        self.telemetry = telemetry or NoOpTelemetryClient()
        self._monotonic = monotonic or time.monotonic

        self._flush_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.flush_count = 0
        self.failed_flushes = 0
        self.last_error: Optional[PersistenceWarning] = None

    # ------------------ policy ------------------
    def should_flush(self) -> bool:
        if not self.store.dirty or not self.store.auto_save_enabled:
            return False
        dirty_since = self.store.dirty_since
        if dirty_since is None:
            return False
        return self._monotonic() - dirty_since >= self.idle_threshold

    def tick(self) -> bool:
        """One scheduler check; returns True when a flush happened and succeeded."""

        if not self.should_flush():
            logger.debug("Flush tick: nothing to do")
            return False
        return self.flush(reason="idle")

    def flush(self, *, reason: str = "manual") -> bool:
        """Snapshot under the store lock, write outside it. Never raises."""

        with self._flush_lock:
            with self.telemetry.span("ledger.flush", attributes={"reason": reason}) as span:
                try:
                    version, payload = self.store.snapshot()
                    span.set_attribute("version", version)
                    written = self.state_file.write(payload)
                except Exception as exc:
                    self.failed_flushes += 1
                    self.last_error = PersistenceWarning(
                        f"flush ({reason}) to {self.state_file.path} failed: {exc}"
                    )
                    span.set_attribute("success", False)
                    logger.warning(f"{self.last_error}; will retry on next tick")
                    return False

                span.set_attribute("bytes", written)
                self.store.mark_clean(version)
                self.flush_count += 1
                self.last_error = None
                logger.debug(f"Flushed ledger v{version} ({written} bytes, reason={reason})")
                return True

    # ------------------ lifecycle ------------------
    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        if self.is_running:
            logger.warning("Flush scheduler already running")
            return False
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="LedgerFlushScheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            f"Flush scheduler started (interval={self.check_interval}s, idle={self.idle_threshold}s)"
        )
        return True

    def _run(self) -> None:
        while not self._stop_event.wait(self.check_interval):
            try:
                self.tick()
            except Exception:
                logger.exception("Flush scheduler tick failed")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """Stop the scheduler and perform the final unconditional flush."""

        self.stop(timeout)
        ok = self.flush(reason="shutdown")
        if not ok:
            logger.error(f"Final flush failed; unsaved changes remain in memory: {self.last_error}")
        return ok

    def __enter__(self) -> "DurabilityManager":
        self.start()
        return self

    def __exit__(self, exc_type, exc, exc_tb) -> bool:
        self.shutdown()
        return False


__all__ = [
    "DurabilityManager",
    "StateFile",
    "load_store",
]

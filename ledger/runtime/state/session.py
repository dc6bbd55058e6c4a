"""
Ledger Session - Scoped startup and shutdown for the ledger runtime

WHAT: Wires config, store, operations and the flush scheduler into one owned object
WHERE: ledger/runtime/state/session.py - process entry point for hosts
WHO: Tool servers / agents embedding the ledger in-process
TIME: open O(image size); close = one final flush

Usage:
    with LedgerSession.open(LedgerConfig.from_env()) as session:
        session.operations.register_service(name="qr", type="api")

Leaving the block (or calling ``close``) stops the scheduler and flushes the
whole graph once more, whether or not it is dirty.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from ...config import LedgerConfig
from .clock import MonotonicClock
from .durability import DurabilityManager, StateFile, load_store
from .entity_store import EntityStore
from .lifecycle import LifecycleEngine
from .operations import LedgerOperations
from .telemetry import TelemetryClient, default_telemetry_client

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LedgerSession:
    config: LedgerConfig
    store: EntityStore
    operations: LedgerOperations
    durability: DurabilityManager

    @staticmethod
    def open(
        config: Optional[LedgerConfig] = None,
        *,
        telemetry: Optional[TelemetryClient] = None,
        clock: Optional[MonotonicClock] = None,
        monotonic: Optional[Callable[[], float]] = None,
        start_scheduler: bool = True,
    ) -> "LedgerSession":
        """Load the persisted image, build the operation surface and start flushing."""

        config = config or LedgerConfig.from_env()
        telemetry = telemetry or default_telemetry_client()
        state_file = StateFile(config.state_path)
        store = load_store(
            state_file,
            clock,
            auto_save_default=config.auto_save,
            monotonic=monotonic,
        )
        operations = LedgerOperations(
            store=store,
            config=config,
            engine=LifecycleEngine.from_config(config),
            telemetry=telemetry,
        )
        durability = DurabilityManager(
            store,
            state_file,
            check_interval=config.flush_interval_s,
            idle_threshold=config.idle_threshold_s,
            telemetry=telemetry,
            monotonic=monotonic,
        )
        if start_scheduler:
            durability.start()
        session = LedgerSession(
            config=config,
            store=store,
            operations=operations,
            durability=durability,
        )
        logger.info(f"Ledger session {session.session_id} opened on {config.state_path}")
        return session

    @property
    def session_id(self) -> str:
        return self.store.read(lambda graph: graph.session_metadata.current_session_id)

    def close(self) -> bool:
        """Stop the scheduler and run the final flush; returns flush success."""

        ok = self.durability.shutdown()
        logger.info(f"Ledger session {self.session_id} closed (final flush {'ok' if ok else 'failed'})")
        return ok

    def __enter__(self) -> "LedgerSession":
        return self

    def __exit__(self, exc_type, exc, exc_tb) -> bool:
        self.close()
        return False


__all__ = [
    "LedgerSession",
]

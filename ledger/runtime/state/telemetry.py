"""
Telemetry Collection - Ledger Runtime Spans

WHAT: Lightweight span telemetry for flushes and caller-facing operations
WHERE: ledger/runtime/state/telemetry.py - observability layer
WHO: DurabilityManager (ledger.flush) and LedgerOperations (ledger.operation)
TIME: Zero-overhead when disabled, <0.1ms overhead when enabled

Spans measure ``duration_ms`` and record ``success`` automatically; callers
attach extra attributes while the span is open.
"""

from __future__ import annotations

import logging
import time
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class TelemetrySpan(AbstractContextManager["TelemetrySpan"]):
    """Context manager capturing span metadata and duration."""

    def __init__(
        self,
        client: "TelemetryClient",
        name: str,
        attributes: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._client = client
        self.name = name
        self.attributes: Dict[str, Any] = dict(attributes or {})
        self._start: float = 0.0

    def __enter__(self) -> "TelemetrySpan":
        self._start = time.perf_counter()
        return self

    def set_attribute(self, key: str, value: Any) -> None:
        self.attributes[key] = value

    def __exit__(self, exc_type, exc, exc_tb) -> bool:
        duration_ms = (time.perf_counter() - self._start) * 1000.0
        self.attributes.setdefault("success", exc is None)
        self.attributes["duration_ms"] = duration_ms
        self._client.emit_span(self.name, self.attributes)
        return False


class TelemetryClient:
    """Base telemetry client; override `emit_span` for custom sinks."""

    def span(
        self,
        name: str,
        *,
        attributes: Optional[Dict[str, Any]] = None,
    ) -> TelemetrySpan:
        return TelemetrySpan(self, name, attributes)

    def emit_span(self, name: str, attributes: Dict[str, Any]) -> None:
        """Handle span completion. Subclasses override this hook."""

        raise NotImplementedError


@dataclass(slots=True)
class NoOpTelemetryClient(TelemetryClient):
    """Telemetry client that silently discards spans."""

    def emit_span(self, name: str, attributes: Dict[str, Any]) -> None:  # noqa: D401 - intentionally empty
        pass


class LoggingTelemetryClient(TelemetryClient):
    """Routes spans to the module logger at debug level."""

    def emit_span(self, name: str, attributes: Dict[str, Any]) -> None:
        payload = {k: attributes[k] for k in sorted(attributes)}
        logger.debug(f"[telemetry] {name}: {payload}")


def default_telemetry_client() -> TelemetryClient:
    """Span logging when this module logs at debug level, otherwise a no-op client."""

    if logger.isEnabledFor(logging.DEBUG):
        return LoggingTelemetryClient()
    return NoOpTelemetryClient()


__all__ = [
    "TelemetrySpan",
    "TelemetryClient",
    "NoOpTelemetryClient",
    "LoggingTelemetryClient",
    "default_telemetry_client",
]

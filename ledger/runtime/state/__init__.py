"""
Business-State Ledger - Durable memory for autonomous revenue services

WHAT: In-process ledger of services, money, decisions and session notes
WHERE: ledger/runtime/state/ - runtime subsystem
WHO: Stateless reasoning agents that need memory between invocations
TIME: Foreground operations never wait on disk; flush lag <= one idle threshold

Components (leaves first):
- EntityStore: in-memory LedgerGraph behind one mutex, dirty/version tracking
- DurabilityManager: whole-image JSON flushes on an idle timer and at shutdown
- analytics: pure revenue/portfolio/opportunity rollups
- LifecycleEngine: auto kill / auto scale on performance updates
- extraction: keyword heuristics turning conversation into records
- context: bounded session-handoff snapshot

Entry points:
- LedgerSession.open(config) for a scoped runtime with flush-on-exit
- LedgerOperations for the caller-facing operation surface
"""

from .analytics import (  # noqa: F401
    business_insights,
    portfolio_rollup,
    rank_opportunities,
    revenue_analytics,
    service_profitability,
)
from .clock import MonotonicClock  # noqa: F401
from .context import ContextSnapshot, assemble_context, render_context  # noqa: F401
from .durability import DurabilityManager, StateFile, load_store  # noqa: F401
from .entity_store import EntityStore  # noqa: F401
from .errors import (  # noqa: F401
    CorruptStateError,
    EntityNotFoundError,
    LedgerError,
    LedgerValidationError,
    PersistenceWarning,
)
from .extraction import InteractionInsights, extract_interaction  # noqa: F401
from .lifecycle import LifecycleEngine, LifecycleTransition  # noqa: F401
from .models import LedgerGraph  # noqa: F401
from .operations import OPERATION_NAMES, LedgerOperations, OperationResult  # noqa: F401
from .session import LedgerSession  # noqa: F401
from .telemetry import (  # noqa: F401
    LoggingTelemetryClient,
    NoOpTelemetryClient,
    TelemetryClient,
    TelemetrySpan,
)

__all__ = [
    "business_insights",
    "portfolio_rollup",
    "rank_opportunities",
    "revenue_analytics",
    "service_profitability",
    "MonotonicClock",
    "ContextSnapshot",
    "assemble_context",
    "render_context",
    "DurabilityManager",
    "StateFile",
    "load_store",
    "EntityStore",
    "CorruptStateError",
    "EntityNotFoundError",
    "LedgerError",
    "LedgerValidationError",
    "PersistenceWarning",
    "InteractionInsights",
    "extract_interaction",
    "LifecycleEngine",
    "LifecycleTransition",
    "LedgerGraph",
    "OPERATION_NAMES",
    "LedgerOperations",
    "OperationResult",
    "LedgerSession",
    "LoggingTelemetryClient",
    "NoOpTelemetryClient",
    "TelemetryClient",
    "TelemetrySpan",
]

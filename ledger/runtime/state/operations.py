"""
Ledger Operations - Caller-facing surface for the business-state ledger

WHAT: Validated read/write operations over the EntityStore, each returning data plus narrative
WHERE: ledger/runtime/state/operations.py - API layer (MCP-like request/response boundary)
WHO: External reasoning agents and collaborator adapters (payments, managed services)
TIME: Writes O(1) amortized plus daily-revenue recompute; reads O(collection size)

Every operation takes keyword arguments, validates them with a pydantic
argument model and returns an ``OperationResult``. Tracked side effects
(lifecycle Decisions, auto-created customers, extracted Decisions/Blockers)
are reported in ``side_effects`` so nothing happens behind the caller's back.

Operations:
- business state: save_business_state, get_current_business_state
- services: register_service, update_service_performance, set_service_status,
  get_all_services, get_service
- money: record_transaction, ingest_payment_event, get_transactions,
  get_revenue_analytics, get_portfolio_summary, get_business_insights
- decisions: log_decision, resolve_decision, get_pending_decisions, get_decisions
- market: record_market_opportunity, update_opportunity_status, get_market_opportunities
- customers: onboard_customer, update_customer, get_customers
- session memory: log_conversation_turn, auto_capture_context,
  log_technical_discovery, get_technical_discoveries, log_blocker,
  update_blocker_status, resolve_blocker, get_blockers,
  log_progress_milestone, get_progress_milestones, get_full_session_context
- durability: set_auto_save

Boundary Notes:
- NotFound and validation errors propagate to the caller unchanged
- The lifecycle engine runs only inside update_service_performance
- Extracted Decisions/Blockers re-enter log_decision / log_blocker
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from typing import Annotated, Any, Callable, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, ValidationError

from ...config import LedgerConfig
from .analytics import (
    business_insights,
    portfolio_rollup,
    rank_opportunities,
    revenue_analytics,
    service_profitability,
    service_revenue_today,
    total_revenue_today,
)
from .clock import MS_PER_DAY, window_start
from .context import assemble_context, render_context
from .entity_store import EntityStore, append_blocker, append_decision
from .errors import EntityNotFoundError, LedgerValidationError
from .extraction import extract_interaction
from .lifecycle import LifecycleEngine
from .models import (
    BLOCKER_TRANSITIONS,
    LIVE_SERVICE_STATUSES,
    OPPORTUNITY_ORDER,
    TERMINAL_BLOCKER_STATUSES,
    TERMINAL_OPPORTUNITY_STATUSES,
    Blocker,
    BlockerStatus,
    BlockerType,
    BusinessSnapshot,
    ContextType,
    Customer,
    Decision,
    DecisionOutcome,
    DiscoveryType,
    ExtractedEntities,
    ImpactLevel,
    ImpactMetrics,
    InteractionRecord,
    LedgerGraph,
    ManagedService,
    MarketOpportunity,
    MilestoneType,
    OpportunityStatus,
    ProgressMilestone,
    RiskLevel,
    RiskMetrics,
    ScalingConfig,
    ServiceStatus,
    ServiceUsage,
    TechnicalDiscovery,
    Transaction,
)
from .telemetry import NoOpTelemetryClient, TelemetryClient

logger = logging.getLogger(__name__)

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
CurrencyCode = Annotated[
    str,
    StringConstraints(strip_whitespace=True, to_upper=True, pattern=r"^[A-Za-z]{3}$"),
]
EmailText = Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^[^@\s]+@[^@\s]+$")]

AUTO_BLOCKER_STEPS = ["Investigate blocker", "Find solution", "Implement fix"]
COMPLAINT_SATISFACTION = 3.0
TOP_SERVICES = 5


# ============================================================
# Argument models
# ============================================================


class _Args(BaseModel):
    model_config = ConfigDict(extra="forbid")


class NoArgs(_Args):
    pass


class SaveBusinessStateArgs(_Args):
    session_summary: NonEmptyStr
    current_priorities: List[str] = Field(default_factory=list)
    pending_decisions: List[Any] = Field(default_factory=list)
    optimization_strategies: List[Any] = Field(default_factory=list)
    total_revenue: Optional[float] = Field(default=None, ge=0)
    active_services: Optional[int] = Field(default=None, ge=0)


class RegisterServiceArgs(_Args):
    name: NonEmptyStr
    type: NonEmptyStr
    auto_scale: bool = True
    max_daily_spend: Optional[float] = Field(default=None, ge=0)
    kill_threshold: Optional[float] = None
    scale_threshold: Optional[float] = None


class PerformanceMetricsArgs(_Args):
    uptime_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    response_time_ms: Optional[float] = Field(default=None, ge=0)
    error_rate: Optional[float] = Field(default=None, ge=0)
    customer_satisfaction: Optional[float] = Field(default=None, ge=0, le=5)


class UpdateServicePerformanceArgs(_Args):
    service_id: NonEmptyStr
    daily_revenue: Optional[float] = Field(default=None, ge=0)
    daily_costs: Optional[float] = Field(default=None, ge=0)
    customer_count: Optional[int] = Field(default=None, ge=0)
    performance_metrics: Optional[PerformanceMetricsArgs] = None


class SetServiceStatusArgs(_Args):
    service_id: NonEmptyStr
    status: ServiceStatus
    reason: str = ""


class GetAllServicesArgs(_Args):
    status_filter: Optional[ServiceStatus] = None


class ServiceIdArgs(_Args):
    service_id: NonEmptyStr


class RecordTransactionArgs(_Args):
    service_id: NonEmptyStr
    amount: float = Field(ge=0)
    currency: CurrencyCode = "USD"
    customer_id: Optional[NonEmptyStr] = None
    external_transaction_id: Optional[NonEmptyStr] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class PaymentEventArgs(_Args):
    event_type: Literal["payment_succeeded", "payment_failed"]
    service_id: NonEmptyStr
    amount: float = Field(ge=0)
    currency: CurrencyCode = "USD"
    customer_id: Optional[NonEmptyStr] = None
    external_transaction_id: Optional[NonEmptyStr] = None
    failure_reason: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class GetTransactionsArgs(_Args):
    service_id: Optional[NonEmptyStr] = None
    customer_id: Optional[NonEmptyStr] = None
    timeframe_days: Optional[float] = Field(default=None, gt=0)
    limit: int = Field(default=100, gt=0)


class RevenueAnalyticsArgs(_Args):
    timeframe_days: float = Field(default=30, gt=0)
    service_id: Optional[NonEmptyStr] = None


class LogDecisionArgs(_Args):
    decision_type: NonEmptyStr
    context: NonEmptyStr
    reasoning: NonEmptyStr
    outcome: DecisionOutcome = "pending"
    revenue_impact: float = 0.0
    risk_level: RiskLevel = "medium"
    confidence_score: float = Field(default=0.5, ge=0, le=1)
    related_entity_id: Optional[str] = None


class ResolveDecisionArgs(_Args):
    decision_id: NonEmptyStr
    outcome: Literal["approved", "denied", "auto_approved"]


class PendingDecisionsArgs(_Args):
    limit: Optional[int] = Field(default=None, gt=0)


class GetDecisionsArgs(_Args):
    decision_type: Optional[str] = None
    outcome: Optional[DecisionOutcome] = None
    related_entity_id: Optional[str] = None
    limit: int = Field(default=50, gt=0)


class RecordOpportunityArgs(_Args):
    opportunity_type: NonEmptyStr
    market_size: Optional[float] = Field(default=None, ge=0)
    competition_level: Optional[RiskLevel] = None
    profit_potential: Optional[float] = None
    implementation_effort: Optional[RiskLevel] = None
    discovery_source: Optional[str] = None
    analysis_data: Dict[str, Any] = Field(default_factory=dict)


class UpdateOpportunityStatusArgs(_Args):
    opportunity_id: NonEmptyStr
    status: OpportunityStatus


class GetOpportunitiesArgs(_Args):
    status: Optional[OpportunityStatus] = None
    limit: int = Field(default=10, gt=0)


class OnboardCustomerArgs(_Args):
    customer_id: Optional[NonEmptyStr] = None
    email: Optional[EmailText] = None
    satisfaction_score: float = Field(default=5.0, ge=0, le=5)
    churn_risk: float = Field(default=0.0, ge=0, le=1)


class UpdateCustomerArgs(_Args):
    customer_id: NonEmptyStr
    email: Optional[EmailText] = None
    satisfaction_score: Optional[float] = Field(default=None, ge=0, le=5)
    churn_risk: Optional[float] = Field(default=None, ge=0, le=1)


class GetCustomersArgs(_Args):
    min_churn_risk: Optional[float] = Field(default=None, ge=0, le=1)
    limit: int = Field(default=50, gt=0)


class BusinessInsightsArgs(_Args):
    focus_area: Literal["revenue", "services", "customers", "opportunities", "risks"] = "revenue"


class LogConversationTurnArgs(_Args):
    user_input: str
    ai_response: str
    context_type: Optional[ContextType] = None
    extracted_entities: Optional[ExtractedEntities] = None
    importance_score: Optional[float] = Field(default=None, ge=0, le=1)


class AutoCaptureArgs(_Args):
    trigger_type: Literal["decision_made", "blocker_found", "milestone_reached", "technical_discovery"]
    context_data: Dict[str, Any] = Field(default_factory=dict)


class LogDiscoveryArgs(_Args):
    discovery_type: DiscoveryType
    title: NonEmptyStr
    description: str = ""
    file_path: Optional[str] = None
    impact_level: ImpactLevel = "medium"
    actionable_insights: List[str] = Field(default_factory=list)
    related_interaction_id: Optional[str] = None


class GetDiscoveriesArgs(_Args):
    discovery_type: Optional[DiscoveryType] = None
    impact_level: Optional[ImpactLevel] = None
    limit: int = Field(default=20, gt=0)


class LogBlockerArgs(_Args):
    title: NonEmptyStr
    description: str = ""
    blocker_type: BlockerType
    severity: ImpactLevel = "medium"
    resolution_steps: List[str] = Field(default_factory=list)
    related_interaction_id: Optional[str] = None


class UpdateBlockerStatusArgs(_Args):
    blocker_id: NonEmptyStr
    status: BlockerStatus
    resolution_summary: Optional[str] = None


class ResolveBlockerArgs(_Args):
    blocker_id: NonEmptyStr
    resolution_summary: NonEmptyStr


class GetBlockersArgs(_Args):
    status: Optional[BlockerStatus] = None
    active_only: bool = False
    limit: int = Field(default=50, gt=0)


class LogMilestoneArgs(_Args):
    milestone_type: MilestoneType
    title: NonEmptyStr
    description: str = ""
    completion_percentage: float = Field(default=0.0, ge=0, le=100)
    next_steps: List[str] = Field(default_factory=list)


class GetMilestonesArgs(_Args):
    milestone_type: Optional[MilestoneType] = None
    limit: int = Field(default=20, gt=0)


class SessionContextArgs(_Args):
    max_conversation_turns: int = Field(default=50, ge=0)
    include_conversation_history: bool = True
    include_technical_discoveries: bool = True
    include_active_blockers: bool = True


class SetAutoSaveArgs(_Args):
    enabled: bool


# ============================================================
# Results and helpers
# ============================================================


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


@dataclass(slots=True)
class OperationResult:
    """Structured result plus a human-readable narrative."""

    operation: str
    data: Any
    narrative: str
    side_effects: List[BaseModel] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "data": _jsonable(self.data),
            "narrative": self.narrative,
            "side_effects": [
                {"kind": type(effect).__name__, "record": effect.model_dump(mode="json")}
                for effect in self.side_effects
            ],
        }


def violations_from(exc: ValidationError) -> List[str]:
    """Flatten pydantic errors into ``field: message`` strings."""

    out = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "arguments"
        out.append(f"{loc}: {err.get('msg', 'invalid value')}")
    return out


def parse_arguments(model: type[_Args], arguments: Mapping[str, Any]) -> _Args:
    try:
        return model.model_validate(dict(arguments))
    except ValidationError as exc:
        raise LedgerValidationError(violations_from(exc)) from exc


def ledger_operation(args_model: type[_Args]) -> Callable:
    """Mark a method as a caller-facing operation validated by ``args_model``."""

    def decorator(method: Callable) -> Callable:
        @functools.wraps(method)
        def wrapper(self: "LedgerOperations", **arguments: Any) -> OperationResult:
            with self.telemetry.span("ledger.operation", attributes={"operation": method.__name__}):
                args = parse_arguments(args_model, arguments)
                return method(self, args)

        wrapper.args_model = args_model  # type: ignore[attr-defined]
        return wrapper

    return decorator


def _require(found: Optional[Any], entity: str, entity_id: str) -> Any:
    if found is None:
        raise EntityNotFoundError(entity, entity_id)
    return found


def _copy(model: Any) -> Any:
    return model.model_copy(deep=True)


def _service_view(service: ManagedService) -> Dict[str, Any]:
    view = service.model_dump(mode="json")
    view["daily_profit"] = service.daily_profit
    return view


def _newest(items: List[Any], limit: Optional[int] = None) -> List[Any]:
    ordered = sorted(items, key=lambda item: item.timestamp, reverse=True)
    return ordered if limit is None else ordered[:limit]


def _opportunity_violation(current: str, new: str) -> Optional[str]:
    if new == current:
        return None
    if current in TERMINAL_OPPORTUNITY_STATUSES:
        return f"status: opportunity is {current}, which is terminal"
    if new == "failed":
        return None
    if OPPORTUNITY_ORDER.index(new) < OPPORTUNITY_ORDER.index(current):
        return f"status: cannot move back from {current} to {new}"
    return None


# ============================================================
# Operations
# ============================================================


@dataclass
class LedgerOperations:
    """
    Caller-facing ledger operations over one explicitly owned EntityStore.

    Each public operation is keyword-only and validated; ``dispatch`` routes a
    tool call by name for MCP-style callers.
    """

    store: EntityStore
    config: LedgerConfig = field(default_factory=LedgerConfig)
    engine: Optional[LifecycleEngine] = None
    telemetry: TelemetryClient = field(default_factory=NoOpTelemetryClient)

    def __post_init__(self) -> None:
        if self.engine is None:
            self.engine = LifecycleEngine.from_config(self.config)

    def dispatch(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> OperationResult:
        """Route a tool call; unknown tool names are validation errors."""

        if name not in OPERATION_NAMES:
            raise LedgerValidationError([f"tool: unknown operation '{name}'"])
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, Mapping):
            raise LedgerValidationError(["arguments: must be an object"])
        return getattr(self, name)(**dict(arguments))

    # ============================================================
    # Business state
    # ============================================================

    @ledger_operation(SaveBusinessStateArgs)
    def save_business_state(self, args: SaveBusinessStateArgs) -> OperationResult:
        def apply(graph: LedgerGraph) -> BusinessSnapshot:
            now = self.store.now_ms()
            live = [s for s in graph.services if s.status in LIVE_SERVICE_STATUSES]
            snapshot = BusinessSnapshot(
                timestamp=now,
                total_revenue=(
                    args.total_revenue
                    if args.total_revenue is not None
                    else total_revenue_today(graph, now)
                ),
                active_services=(
                    args.active_services
                    if args.active_services is not None
                    else sum(1 for s in graph.services if s.status == "active")
                ),
                pending_decisions=list(args.pending_decisions),
                current_priorities=list(args.current_priorities),
                session_summary=args.session_summary,
                optimization_strategies=list(args.optimization_strategies),
                risk_metrics=RiskMetrics(
                    daily_spend=sum(s.daily_costs for s in live),
                    service_failures=sum(1 for s in graph.services if s.status == "killed"),
                    customer_complaints=sum(
                        1 for c in graph.customers if c.satisfaction_score < COMPLAINT_SATISFACTION
                    ),
                ),
            )
            graph.business_states.append(snapshot)
            return _copy(snapshot)

        snapshot = self.store.mutate(apply)
        logger.info(f"Saved business state {snapshot.id}")
        narrative = (
            f"Business state saved ({snapshot.id}): revenue today ${snapshot.total_revenue:.2f}, "
            f"{snapshot.active_services} active service(s), "
            f"{len(snapshot.current_priorities)} priorit(ies)."
        )
        return OperationResult("save_business_state", snapshot, narrative)

    @ledger_operation(NoArgs)
    def get_current_business_state(self, args: NoArgs) -> OperationResult:
        now = self.store.now_ms()
        since = now - MS_PER_DAY

        def view(graph: LedgerGraph) -> Dict[str, Any]:
            latest = graph.latest_snapshot()
            recent_tx = [t for t in graph.transactions if t.timestamp >= since]
            top = sorted(
                (s for s in graph.services if s.status != "killed"),
                key=lambda s: (-s.daily_revenue, s.name),
            )[:TOP_SERVICES]
            return {
                "snapshot": _copy(latest) if latest else None,
                "recent_activity": {
                    "transactions": len(recent_tx),
                    "revenue": sum(t.amount for t in recent_tx),
                    "decisions": sum(1 for d in graph.decisions if d.timestamp >= since),
                    "interactions": sum(1 for t in graph.conversation_turns if t.timestamp >= since),
                },
                "pending_decisions": sum(1 for d in graph.decisions if d.outcome == "pending"),
                "top_services": [_service_view(s) for s in top],
            }

        data = self.store.read(view)
        activity = data["recent_activity"]
        if data["snapshot"] is None:
            head = "No business state saved yet."
        else:
            head = f"Latest state: {data['snapshot'].session_summary}"
        narrative = (
            f"{head} Last 24h: {activity['transactions']} transaction(s) "
            f"(${activity['revenue']:.2f}), {activity['decisions']} decision(s), "
            f"{activity['interactions']} interaction(s); "
            f"{data['pending_decisions']} decision(s) pending."
        )
        return OperationResult("get_current_business_state", data, narrative)

    # ============================================================
    # Services
    # ============================================================

    @ledger_operation(RegisterServiceArgs)
    def register_service(self, args: RegisterServiceArgs) -> OperationResult:
        scaling = ScalingConfig(
            auto_scale=args.auto_scale,
            max_daily_spend=(
                args.max_daily_spend if args.max_daily_spend is not None else self.config.max_daily_spend
            ),
            kill_threshold=(
                args.kill_threshold if args.kill_threshold is not None else self.config.kill_threshold
            ),
            scale_threshold=(
                args.scale_threshold if args.scale_threshold is not None else self.config.scale_threshold
            ),
        )
        if scaling.kill_threshold >= scaling.scale_threshold:
            raise LedgerValidationError(["kill_threshold: must be below scale_threshold"])

        def apply(graph: LedgerGraph) -> ManagedService:
            now = self.store.now_ms()
            service = ManagedService(
                name=args.name,
                type=args.type,
                created_at=now,
                updated_at=now,
                scaling_config=scaling,
            )
            graph.services.append(service)
            return _copy(service)

        service = self.store.mutate(apply)
        logger.info(f"Registered service {service.name} ({service.id})")
        narrative = (
            f"Service {service.name} registered ({service.id}), type {service.type}; "
            f"auto-scale {'on' if scaling.auto_scale else 'off'}, "
            f"kill below ${scaling.kill_threshold:.2f}/day, scale above ${scaling.scale_threshold:.2f}/day, "
            f"spend ceiling ${scaling.max_daily_spend:.2f}/day."
        )
        return OperationResult("register_service", service, narrative)

    @ledger_operation(UpdateServicePerformanceArgs)
    def update_service_performance(self, args: UpdateServicePerformanceArgs) -> OperationResult:
        def apply(graph: LedgerGraph):
            service = _require(graph.find_service(args.service_id), "ManagedService", args.service_id)
            now = self.store.now_ms()
            if args.daily_revenue is not None:
                service.daily_revenue = args.daily_revenue
            if args.daily_costs is not None:
                service.daily_costs = args.daily_costs
            if args.customer_count is not None:
                service.customer_count = args.customer_count
            if args.performance_metrics is not None:
                for key, value in args.performance_metrics.model_dump(exclude_none=True).items():
                    setattr(service.performance_metrics, key, value)
            service.updated_at = now
            transition = self.engine.evaluate(graph, service, now)
            return _copy(service), transition

        service, transition = self.store.mutate(apply)
        narrative = (
            f"Performance updated for {service.name}: revenue ${service.daily_revenue:.2f}, "
            f"costs ${service.daily_costs:.2f}, profit ${service.daily_profit:.2f}/day; "
            f"status {service.status}."
        )
        side_effects: List[BaseModel] = []
        if transition is not None:
            self.engine.write_audit(transition)
            decision = _copy(transition.decision)
            side_effects.append(decision)
            narrative += (
                f" Automatic transition {transition.previous_status} -> {transition.new_status}; "
                f"{decision.decision_type} decision {decision.id} logged "
                f"(impact ${decision.impact_metrics.revenue_impact:.2f})."
            )
        return OperationResult("update_service_performance", service, narrative, side_effects)

    @ledger_operation(SetServiceStatusArgs)
    def set_service_status(self, args: SetServiceStatusArgs) -> OperationResult:
        def apply(graph: LedgerGraph):
            service = _require(graph.find_service(args.service_id), "ManagedService", args.service_id)
            if service.status == "killed" and args.status != "killed":
                raise LedgerValidationError(["status: service is killed, which is terminal"])
            previous = service.status
            service.status = args.status
            service.updated_at = self.store.now_ms()
            return _copy(service), previous

        service, previous = self.store.mutate(apply)
        logger.info(f"Service {service.name} status {previous} -> {service.status} (manual)")
        reason = f" Reason: {args.reason}" if args.reason else ""
        narrative = f"Service {service.name} status changed {previous} -> {service.status}.{reason}"
        return OperationResult("set_service_status", service, narrative)

    @ledger_operation(GetAllServicesArgs)
    def get_all_services(self, args: GetAllServicesArgs) -> OperationResult:
        def view(graph: LedgerGraph) -> List[Dict[str, Any]]:
            services = [
                s for s in graph.services
                if args.status_filter is None or s.status == args.status_filter
            ]
            services.sort(key=lambda s: (-s.daily_revenue, s.name, s.id))
            return [_service_view(s) for s in services]

        services = self.store.read(view)
        if not services:
            narrative = "No services registered."
        else:
            lines = [f"{len(services)} service(s):"]
            for s in services:
                lines.append(
                    f"- {s['name']} [{s['status']}] revenue ${s['daily_revenue']:.2f}, "
                    f"costs ${s['daily_costs']:.2f}, profit ${s['daily_profit']:.2f}/day"
                )
            narrative = "\n".join(lines)
        return OperationResult("get_all_services", services, narrative)

    @ledger_operation(ServiceIdArgs)
    def get_service(self, args: ServiceIdArgs) -> OperationResult:
        def view(graph: LedgerGraph) -> ManagedService:
            return _copy(_require(graph.find_service(args.service_id), "ManagedService", args.service_id))

        service = self.store.read(view)
        narrative = (
            f"{service.name} [{service.status}]: profit ${service.daily_profit:.2f}/day, "
            f"{service.customer_count} customer(s)."
        )
        return OperationResult("get_service", service, narrative)

    # ============================================================
    # Transactions and analytics
    # ============================================================

    def _credit_customer(
        self,
        graph: LedgerGraph,
        service: ManagedService,
        tx: Transaction,
    ) -> tuple[Customer, bool]:
        customer = graph.find_customer(tx.customer_id)
        created = customer is None
        if customer is None:
            customer = Customer(
                id=tx.customer_id,
                first_transaction=tx.timestamp,
                created_at=tx.timestamp,
                updated_at=tx.timestamp,
            )
            graph.customers.append(customer)
        if customer.first_transaction is None:
            customer.first_transaction = tx.timestamp
        customer.total_spent += tx.amount
        usage = customer.service_usage.setdefault(service.id, ServiceUsage())
        usage.transactions += 1
        usage.revenue += tx.amount
        customer.updated_at = tx.timestamp
        # Distinct paying customers replace any reported count.
        service.customer_count = sum(1 for c in graph.customers if service.id in c.service_usage)
        return customer, created

    def _append_transaction(self, graph: LedgerGraph, args: RecordTransactionArgs):
        """Append one transaction and recompute today's revenue; call inside ``mutate``."""

        service = _require(graph.find_service(args.service_id), "ManagedService", args.service_id)
        if args.external_transaction_id and any(
            t.external_transaction_id == args.external_transaction_id for t in graph.transactions
        ):
            raise LedgerValidationError(
                [f"external_transaction_id: {args.external_transaction_id} already recorded"]
            )
        now = self.store.now_ms()
        tx = Transaction(
            service_id=service.id,
            amount=args.amount,
            currency=args.currency,
            customer_id=args.customer_id,
            external_transaction_id=args.external_transaction_id,
            timestamp=now,
            metadata=dict(args.metadata),
        )
        graph.transactions.append(tx)
        service.daily_revenue = service_revenue_today(graph, service.id, now)
        service.updated_at = now
        customer, created = None, False
        if tx.customer_id:
            customer, created = self._credit_customer(graph, service, tx)
        return _copy(tx), _copy(service), (_copy(customer) if created else None)

    @staticmethod
    def _transaction_narrative(tx: Transaction, service: ManagedService, new_customer: Optional[Customer]):
        logger.info(f"Recorded transaction {tx.id}: {tx.amount:.2f} {tx.currency} for {service.name}")
        narrative = (
            f"Recorded {tx.amount:.2f} {tx.currency} for {service.name}; "
            f"revenue today ${service.daily_revenue:.2f}."
        )
        side_effects: List[BaseModel] = []
        if new_customer is not None:
            side_effects.append(new_customer)
            narrative += f" New customer {new_customer.id} created."
        return narrative, side_effects

    @ledger_operation(RecordTransactionArgs)
    def record_transaction(self, args: RecordTransactionArgs) -> OperationResult:
        tx, service, new_customer = self.store.mutate(lambda graph: self._append_transaction(graph, args))
        narrative, side_effects = self._transaction_narrative(tx, service, new_customer)
        return OperationResult("record_transaction", tx, narrative, side_effects)

    @ledger_operation(PaymentEventArgs)
    def ingest_payment_event(self, args: PaymentEventArgs) -> OperationResult:
        """Payment collaborator hook: succeeded events append a Transaction."""

        if args.event_type == "payment_failed":
            service = self.store.read(
                lambda graph: _copy(
                    _require(graph.find_service(args.service_id), "ManagedService", args.service_id)
                )
            )
            logger.warning(
                f"Payment failed for {service.name}: {args.amount:.2f} {args.currency} "
                f"({args.failure_reason or 'no reason given'})"
            )
            narrative = f"Failed payment for {service.name} noted; no transaction recorded."
            return OperationResult(
                "ingest_payment_event",
                {"recorded": False, "duplicate": False, "transaction": None},
                narrative,
            )

        metadata = dict(args.metadata)
        metadata.setdefault("source", "payment_event")
        tx_args = RecordTransactionArgs(
            service_id=args.service_id,
            amount=args.amount,
            currency=args.currency,
            customer_id=args.customer_id,
            external_transaction_id=args.external_transaction_id,
            metadata=metadata,
        )

        def apply(graph: LedgerGraph):
            # Redelivery check and append share one lock hold.
            if args.external_transaction_id:
                for existing in graph.transactions:
                    if existing.external_transaction_id == args.external_transaction_id:
                        return _copy(existing), None
            return None, self._append_transaction(graph, tx_args)

        existing, appended = self.store.mutate(apply)
        if existing is not None:
            narrative = f"Payment {args.external_transaction_id} already recorded as {existing.id}."
            return OperationResult(
                "ingest_payment_event",
                {"recorded": False, "duplicate": True, "transaction": existing},
                narrative,
            )

        tx, service, new_customer = appended
        narrative, side_effects = self._transaction_narrative(tx, service, new_customer)
        return OperationResult(
            "ingest_payment_event",
            {"recorded": True, "duplicate": False, "transaction": tx},
            narrative,
            side_effects,
        )

    @ledger_operation(GetTransactionsArgs)
    def get_transactions(self, args: GetTransactionsArgs) -> OperationResult:
        now = self.store.now_ms()
        start = window_start(now, args.timeframe_days) if args.timeframe_days else None

        def view(graph: LedgerGraph) -> List[Transaction]:
            rows = [
                t for t in graph.transactions
                if (args.service_id is None or t.service_id == args.service_id)
                and (args.customer_id is None or t.customer_id == args.customer_id)
                and (start is None or t.timestamp >= start)
            ]
            return [_copy(t) for t in _newest(rows, args.limit)]

        rows = self.store.read(view)
        total = sum(t.amount for t in rows)
        narrative = f"{len(rows)} transaction(s) totaling ${total:.2f}."
        return OperationResult("get_transactions", rows, narrative)

    @ledger_operation(RevenueAnalyticsArgs)
    def get_revenue_analytics(self, args: RevenueAnalyticsArgs) -> OperationResult:
        now = self.store.now_ms()

        def view(graph: LedgerGraph) -> Dict[str, Any]:
            if args.service_id is not None:
                _require(graph.find_service(args.service_id), "ManagedService", args.service_id)
            return revenue_analytics(graph, now, args.timeframe_days, args.service_id)

        data = self.store.read(view)
        lines = [
            f"Revenue over {args.timeframe_days:g} day(s): ${data['total_revenue']:.2f} from "
            f"{data['transaction_count']} transaction(s); average ${data['average_transaction']:.2f}, "
            f"daily ${data['daily_average']:.2f}."
        ]
        for row in data["services"]:
            lines.append(
                f"- {row['service_name']}: ${row['revenue']:.2f} ({row['transactions']} tx, "
                f"avg ${row['average_transaction']:.2f})"
            )
        return OperationResult("get_revenue_analytics", data, "\n".join(lines))

    @ledger_operation(NoArgs)
    def get_portfolio_summary(self, args: NoArgs) -> OperationResult:
        now = self.store.now_ms()

        def view(graph: LedgerGraph) -> Dict[str, Any]:
            rollup = portfolio_rollup(graph, now)
            rollup["services"] = service_profitability(graph)
            return rollup

        data = self.store.read(view)
        lines = [
            f"Portfolio {data['health']}: ${data['daily_profit']:.2f}/day profit across "
            f"{data['live_services']} live service(s). {data['health_note']}."
        ]
        lines.extend(f"- {rec}" for rec in data["recommendations"])
        return OperationResult("get_portfolio_summary", data, "\n".join(lines))

    @ledger_operation(BusinessInsightsArgs)
    def get_business_insights(self, args: BusinessInsightsArgs) -> OperationResult:
        now = self.store.now_ms()
        data = self.store.read(lambda graph: business_insights(graph, now, args.focus_area))
        narrative = "\n".join([f"Insights ({args.focus_area}):"] + [f"- {i}" for i in data["insights"]])
        return OperationResult("get_business_insights", data, narrative)

    # ============================================================
    # Decisions
    # ============================================================

    @ledger_operation(LogDecisionArgs)
    def log_decision(self, args: LogDecisionArgs) -> OperationResult:
        def apply(graph: LedgerGraph) -> Decision:
            now = self.store.now_ms()
            decision = Decision(
                timestamp=now,
                decision_type=args.decision_type,
                context=args.context,
                reasoning=args.reasoning,
                outcome=args.outcome,
                impact_metrics=ImpactMetrics(
                    revenue_impact=args.revenue_impact,
                    risk_level=args.risk_level,
                    confidence_score=args.confidence_score,
                ),
                related_entity_id=args.related_entity_id,
                resolved_at=None if args.outcome == "pending" else now,
            )
            return _copy(append_decision(graph, decision))

        decision = self.store.mutate(apply)
        narrative = (
            f"Decision {decision.id} logged: {decision.decision_type} ({decision.outcome}), "
            f"expected impact ${decision.impact_metrics.revenue_impact:.2f}, "
            f"risk {decision.impact_metrics.risk_level}."
        )
        return OperationResult("log_decision", decision, narrative)

    @ledger_operation(ResolveDecisionArgs)
    def resolve_decision(self, args: ResolveDecisionArgs) -> OperationResult:
        def apply(graph: LedgerGraph) -> Decision:
            decision = _require(graph.find_decision(args.decision_id), "Decision", args.decision_id)
            if decision.outcome != "pending":
                raise LedgerValidationError(
                    [f"outcome: decision already resolved as {decision.outcome}"]
                )
            decision.outcome = args.outcome
            decision.resolved_at = self.store.now_ms()
            return _copy(decision)

        decision = self.store.mutate(apply)
        logger.info(f"Decision {decision.id} resolved as {decision.outcome}")
        narrative = f"Decision {decision.id} ({decision.decision_type}) resolved as {decision.outcome}."
        return OperationResult("resolve_decision", decision, narrative)

    @ledger_operation(PendingDecisionsArgs)
    def get_pending_decisions(self, args: PendingDecisionsArgs) -> OperationResult:
        def view(graph: LedgerGraph) -> List[Decision]:
            pending = [d for d in graph.decisions if d.outcome == "pending"]
            return [_copy(d) for d in _newest(pending, args.limit)]

        decisions = self.store.read(view)
        if not decisions:
            narrative = "No pending decisions."
        else:
            lines = [f"{len(decisions)} pending decision(s):"]
            for d in decisions:
                lines.append(
                    f"- {d.decision_type} [{d.impact_metrics.risk_level} risk] {d.context}"
                )
            narrative = "\n".join(lines)
        return OperationResult("get_pending_decisions", decisions, narrative)

    @ledger_operation(GetDecisionsArgs)
    def get_decisions(self, args: GetDecisionsArgs) -> OperationResult:
        def view(graph: LedgerGraph) -> List[Decision]:
            rows = [
                d for d in graph.decisions
                if (args.decision_type is None or d.decision_type == args.decision_type)
                and (args.outcome is None or d.outcome == args.outcome)
                and (args.related_entity_id is None or d.related_entity_id == args.related_entity_id)
            ]
            return [_copy(d) for d in _newest(rows, args.limit)]

        decisions = self.store.read(view)
        return OperationResult("get_decisions", decisions, f"{len(decisions)} decision(s) found.")

    # ============================================================
    # Market opportunities
    # ============================================================

    @ledger_operation(RecordOpportunityArgs)
    def record_market_opportunity(self, args: RecordOpportunityArgs) -> OperationResult:
        def apply(graph: LedgerGraph) -> MarketOpportunity:
            now = self.store.now_ms()
            opportunity = MarketOpportunity(
                opportunity_type=args.opportunity_type,
                market_size=args.market_size,
                competition_level=args.competition_level,
                profit_potential=args.profit_potential,
                implementation_effort=args.implementation_effort,
                discovery_source=args.discovery_source,
                analysis_data=dict(args.analysis_data),
                created_at=now,
                updated_at=now,
            )
            graph.market_opportunities.append(opportunity)
            return _copy(opportunity)

        opportunity = self.store.mutate(apply)
        logger.info(f"Recorded market opportunity {opportunity.id} ({opportunity.opportunity_type})")
        potential = (
            "unknown" if opportunity.profit_potential is None else f"${opportunity.profit_potential:.2f}"
        )
        narrative = (
            f"Opportunity {opportunity.opportunity_type} recorded ({opportunity.id}), "
            f"profit potential {potential}."
        )
        return OperationResult("record_market_opportunity", opportunity, narrative)

    @ledger_operation(UpdateOpportunityStatusArgs)
    def update_opportunity_status(self, args: UpdateOpportunityStatusArgs) -> OperationResult:
        def apply(graph: LedgerGraph):
            opportunity = _require(
                graph.find_opportunity(args.opportunity_id), "MarketOpportunity", args.opportunity_id
            )
            violation = _opportunity_violation(opportunity.status, args.status)
            if violation:
                raise LedgerValidationError([violation])
            previous = opportunity.status
            if previous != args.status:
                opportunity.status = args.status
                opportunity.updated_at = self.store.now_ms()
            return _copy(opportunity), previous

        opportunity, previous = self.store.mutate(apply)
        narrative = f"Opportunity {opportunity.opportunity_type} {previous} -> {opportunity.status}."
        return OperationResult("update_opportunity_status", opportunity, narrative)

    @ledger_operation(GetOpportunitiesArgs)
    def get_market_opportunities(self, args: GetOpportunitiesArgs) -> OperationResult:
        opportunities = self.store.read(
            lambda graph: [_copy(o) for o in rank_opportunities(graph, args.status, args.limit)]
        )
        if not opportunities:
            narrative = "No market opportunities recorded."
        else:
            lines = [f"{len(opportunities)} opportunit(ies), best first:"]
            for o in opportunities:
                potential = "unknown" if o.profit_potential is None else f"${o.profit_potential:.2f}"
                lines.append(f"- {o.opportunity_type} [{o.status}] potential {potential}")
            narrative = "\n".join(lines)
        return OperationResult("get_market_opportunities", opportunities, narrative)

    # ============================================================
    # Customers
    # ============================================================

    @ledger_operation(OnboardCustomerArgs)
    def onboard_customer(self, args: OnboardCustomerArgs) -> OperationResult:
        def apply(graph: LedgerGraph) -> Customer:
            if args.customer_id and graph.find_customer(args.customer_id) is not None:
                raise LedgerValidationError([f"customer_id: {args.customer_id} already exists"])
            now = self.store.now_ms()
            extra = {"id": args.customer_id} if args.customer_id else {}
            customer = Customer(
                email=args.email,
                satisfaction_score=args.satisfaction_score,
                churn_risk=args.churn_risk,
                created_at=now,
                updated_at=now,
                **extra,
            )
            graph.customers.append(customer)
            return _copy(customer)

        customer = self.store.mutate(apply)
        logger.info(f"Onboarded customer {customer.id}")
        return OperationResult("onboard_customer", customer, f"Customer {customer.id} onboarded.")

    @ledger_operation(UpdateCustomerArgs)
    def update_customer(self, args: UpdateCustomerArgs) -> OperationResult:
        def apply(graph: LedgerGraph) -> Customer:
            customer = _require(graph.find_customer(args.customer_id), "Customer", args.customer_id)
            if args.email is not None:
                customer.email = args.email
            if args.satisfaction_score is not None:
                customer.satisfaction_score = args.satisfaction_score
            if args.churn_risk is not None:
                customer.churn_risk = args.churn_risk
            customer.updated_at = self.store.now_ms()
            return _copy(customer)

        customer = self.store.mutate(apply)
        narrative = (
            f"Customer {customer.id} updated: satisfaction {customer.satisfaction_score:.1f}/5, "
            f"churn risk {customer.churn_risk:.0%}."
        )
        return OperationResult("update_customer", customer, narrative)

    @ledger_operation(GetCustomersArgs)
    def get_customers(self, args: GetCustomersArgs) -> OperationResult:
        def view(graph: LedgerGraph) -> List[Customer]:
            rows = [
                c for c in graph.customers
                if args.min_churn_risk is None or c.churn_risk >= args.min_churn_risk
            ]
            rows.sort(key=lambda c: (-c.total_spent, c.id))
            return [_copy(c) for c in rows[: args.limit]]

        customers = self.store.read(view)
        total = sum(c.total_spent for c in customers)
        narrative = f"{len(customers)} customer(s), combined spend ${total:.2f}."
        return OperationResult("get_customers", customers, narrative)

    # ============================================================
    # Conversation capture
    # ============================================================

    def _capture(
        self,
        trigger_type: str,
        entities: ExtractedEntities,
        interaction_id: Optional[str],
    ) -> List[BaseModel]:
        """Materialize extracted terms through the same operations direct callers use."""

        captured: List[BaseModel] = []
        if trigger_type == "decision_made":
            for term in entities.decisions_made:
                result = self.log_decision(
                    decision_type="conversation_decision",
                    context=f"Decision made in conversation: {term}",
                    reasoning="Auto-detected from conversation analysis",
                    outcome="auto_approved",
                    confidence_score=0.8,
                    related_entity_id=interaction_id,
                )
                captured.append(result.data)
        elif trigger_type == "blocker_found":
            for term in entities.blockers_identified:
                result = self.log_blocker(
                    title=term,
                    description="Auto-detected blocker from conversation",
                    blocker_type="technical",
                    severity="medium",
                    resolution_steps=list(AUTO_BLOCKER_STEPS),
                    related_interaction_id=interaction_id,
                )
                captured.append(result.data)
        elif trigger_type == "technical_discovery":
            for tech in entities.technologies_discussed:
                result = self.log_technical_discovery(
                    discovery_type="dependency_ready",
                    title=f"{tech} technology discussed",
                    description=f"Technical discussion about {tech} in conversation",
                    impact_level="medium",
                    actionable_insights=[f"Review {tech} implementation", f"Consider {tech} integration"],
                    related_interaction_id=interaction_id,
                )
                captured.append(result.data)
        return captured

    @ledger_operation(LogConversationTurnArgs)
    def log_conversation_turn(self, args: LogConversationTurnArgs) -> OperationResult:
        insights = extract_interaction(args.user_input, args.ai_response)
        entities = args.extracted_entities or insights.entities

        def apply(graph: LedgerGraph) -> InteractionRecord:
            record = InteractionRecord(
                session_id=graph.session_metadata.current_session_id,
                timestamp=self.store.now_ms(),
                user_input=args.user_input,
                ai_response=args.ai_response,
                context_type=args.context_type or insights.context_type,
                extracted_entities=entities,
                importance_score=(
                    args.importance_score
                    if args.importance_score is not None
                    else insights.importance_score
                ),
            )
            graph.conversation_turns.append(record)
            return _copy(record)

        record = self.store.mutate(apply)
        side_effects = self._capture("decision_made", record.extracted_entities, record.id)
        side_effects += self._capture("blocker_found", record.extracted_entities, record.id)

        found = record.extracted_entities
        narrative = (
            f"Conversation turn {record.id} logged: context {record.context_type}, "
            f"importance {record.importance_score:.0%}.\n"
            f"Tasks: {', '.join(found.tasks_mentioned) or 'none'}\n"
            f"Technologies: {', '.join(found.technologies_discussed) or 'none'}\n"
            f"Decisions: {', '.join(found.decisions_made) or 'none'}\n"
            f"Blockers: {', '.join(found.blockers_identified) or 'none'}"
        )
        if side_effects:
            narrative += f"\nAuto-logged {len(side_effects)} record(s) from this turn."
        return OperationResult("log_conversation_turn", record, narrative, side_effects)

    @ledger_operation(AutoCaptureArgs)
    def auto_capture_context(self, args: AutoCaptureArgs) -> OperationResult:
        data = args.context_data
        if args.trigger_type == "milestone_reached":
            fields = {
                key: data[key]
                for key in ("title", "description", "completion_percentage", "next_steps")
                if key in data
            }
            fields.setdefault("milestone_type", data.get("milestone_type", "checkpoint_reached"))
            captured: List[BaseModel] = [self.log_progress_milestone(**fields).data]
        else:
            if "extracted_entities" in data:
                try:
                    entities = ExtractedEntities.model_validate(data["extracted_entities"])
                except ValidationError as exc:
                    raise LedgerValidationError(
                        [f"context_data.{v}" for v in violations_from(exc)]
                    ) from exc
            elif "user_input" in data or "ai_response" in data:
                entities = extract_interaction(
                    str(data.get("user_input", "")), str(data.get("ai_response", ""))
                ).entities
            else:
                entities = ExtractedEntities()
            interaction_id = data.get("interaction_id") or data.get("id")
            captured = self._capture(args.trigger_type, entities, interaction_id)

        narrative = f"Auto-captured context ({args.trigger_type}): {len(captured)} record(s) logged."
        return OperationResult(
            "auto_capture_context",
            {"trigger_type": args.trigger_type, "captured": captured},
            narrative,
            list(captured),
        )

    # ============================================================
    # Technical discoveries, blockers, milestones
    # ============================================================

    @ledger_operation(LogDiscoveryArgs)
    def log_technical_discovery(self, args: LogDiscoveryArgs) -> OperationResult:
        def apply(graph: LedgerGraph) -> TechnicalDiscovery:
            discovery = TechnicalDiscovery(
                timestamp=self.store.now_ms(),
                discovery_type=args.discovery_type,
                title=args.title,
                description=args.description,
                file_path=args.file_path,
                impact_level=args.impact_level,
                actionable_insights=list(args.actionable_insights),
                related_interaction_id=args.related_interaction_id,
            )
            graph.technical_discoveries.append(discovery)
            return _copy(discovery)

        discovery = self.store.mutate(apply)
        lines = [f"Discovery {discovery.title} logged ({discovery.discovery_type}, impact {discovery.impact_level})."]
        lines.extend(f"- {insight}" for insight in discovery.actionable_insights)
        return OperationResult("log_technical_discovery", discovery, "\n".join(lines))

    @ledger_operation(GetDiscoveriesArgs)
    def get_technical_discoveries(self, args: GetDiscoveriesArgs) -> OperationResult:
        def view(graph: LedgerGraph) -> List[TechnicalDiscovery]:
            rows = [
                d for d in graph.technical_discoveries
                if (args.discovery_type is None or d.discovery_type == args.discovery_type)
                and (args.impact_level is None or d.impact_level == args.impact_level)
            ]
            return [_copy(d) for d in _newest(rows, args.limit)]

        rows = self.store.read(view)
        return OperationResult("get_technical_discoveries", rows, f"{len(rows)} discovery(ies).")

    @ledger_operation(LogBlockerArgs)
    def log_blocker(self, args: LogBlockerArgs) -> OperationResult:
        def apply(graph: LedgerGraph) -> Blocker:
            now = self.store.now_ms()
            blocker = Blocker(
                timestamp=now,
                title=args.title,
                description=args.description,
                blocker_type=args.blocker_type,
                severity=args.severity,
                resolution_steps=list(args.resolution_steps),
                related_interaction_id=args.related_interaction_id,
                updated_at=now,
            )
            return _copy(append_blocker(graph, blocker))

        blocker = self.store.mutate(apply)
        lines = [f"Blocker {blocker.title} logged ({blocker.blocker_type}, severity {blocker.severity})."]
        lines.extend(f"- {step}" for step in blocker.resolution_steps)
        return OperationResult("log_blocker", blocker, "\n".join(lines))

    def _transition_blocker(
        self,
        blocker_id: str,
        status: str,
        resolution_summary: Optional[str],
    ) -> tuple[Blocker, str]:
        def apply(graph: LedgerGraph):
            blocker = _require(graph.find_blocker(blocker_id), "Blocker", blocker_id)
            previous = blocker.status
            if previous in TERMINAL_BLOCKER_STATUSES:
                raise LedgerValidationError([f"status: blocker is already {previous}"])
            if status != previous:
                if status not in BLOCKER_TRANSITIONS[previous]:
                    raise LedgerValidationError([f"status: cannot move from {previous} to {status}"])
                blocker.status = status
            if resolution_summary:
                blocker.resolution_summary = resolution_summary
            blocker.updated_at = self.store.now_ms()
            return _copy(blocker), previous

        blocker, previous = self.store.mutate(apply)
        logger.info(f"Blocker {blocker.id} {previous} -> {blocker.status}")
        return blocker, previous

    @ledger_operation(UpdateBlockerStatusArgs)
    def update_blocker_status(self, args: UpdateBlockerStatusArgs) -> OperationResult:
        blocker, previous = self._transition_blocker(args.blocker_id, args.status, args.resolution_summary)
        narrative = f"Blocker {blocker.title}: {previous} -> {blocker.status}."
        return OperationResult("update_blocker_status", blocker, narrative)

    @ledger_operation(ResolveBlockerArgs)
    def resolve_blocker(self, args: ResolveBlockerArgs) -> OperationResult:
        blocker, _ = self._transition_blocker(args.blocker_id, "resolved", args.resolution_summary)
        narrative = f"Blocker {blocker.title} resolved: {blocker.resolution_summary}"
        return OperationResult("resolve_blocker", blocker, narrative)

    @ledger_operation(GetBlockersArgs)
    def get_blockers(self, args: GetBlockersArgs) -> OperationResult:
        def view(graph: LedgerGraph) -> List[Blocker]:
            rows = [
                b for b in graph.blockers
                if (args.status is None or b.status == args.status)
                and (not args.active_only or b.status != "resolved")
            ]
            return [_copy(b) for b in _newest(rows, args.limit)]

        rows = self.store.read(view)
        return OperationResult("get_blockers", rows, f"{len(rows)} blocker(s).")

    @ledger_operation(LogMilestoneArgs)
    def log_progress_milestone(self, args: LogMilestoneArgs) -> OperationResult:
        def apply(graph: LedgerGraph) -> ProgressMilestone:
            milestone = ProgressMilestone(
                timestamp=self.store.now_ms(),
                milestone_type=args.milestone_type,
                title=args.title,
                description=args.description,
                completion_percentage=args.completion_percentage,
                next_steps=list(args.next_steps),
            )
            graph.progress_milestones.append(milestone)
            return _copy(milestone)

        milestone = self.store.mutate(apply)
        lines = [
            f"Milestone {milestone.title} logged ({milestone.milestone_type}, "
            f"{milestone.completion_percentage:g}% complete)."
        ]
        lines.extend(f"- {step}" for step in milestone.next_steps)
        return OperationResult("log_progress_milestone", milestone, "\n".join(lines))

    @ledger_operation(GetMilestonesArgs)
    def get_progress_milestones(self, args: GetMilestonesArgs) -> OperationResult:
        def view(graph: LedgerGraph) -> List[ProgressMilestone]:
            rows = [
                m for m in graph.progress_milestones
                if args.milestone_type is None or m.milestone_type == args.milestone_type
            ]
            return [_copy(m) for m in _newest(rows, args.limit)]

        rows = self.store.read(view)
        return OperationResult("get_progress_milestones", rows, f"{len(rows)} milestone(s).")

    @ledger_operation(SessionContextArgs)
    def get_full_session_context(self, args: SessionContextArgs) -> OperationResult:
        snapshot = self.store.read(
            lambda graph: assemble_context(
                graph,
                args.max_conversation_turns,
                include_conversation=args.include_conversation_history,
                include_discoveries=args.include_technical_discoveries,
                include_blockers=args.include_active_blockers,
            )
        )
        return OperationResult("get_full_session_context", snapshot.to_dict(), render_context(snapshot))

    # ============================================================
    # Durability
    # ============================================================

    @ledger_operation(SetAutoSaveArgs)
    def set_auto_save(self, args: SetAutoSaveArgs) -> OperationResult:
        def apply(graph: LedgerGraph) -> bool:
            graph.session_metadata.auto_save_enabled = args.enabled
            return args.enabled

        enabled = self.store.mutate(apply)
        logger.info(f"Auto-save {'enabled' if enabled else 'disabled'}")
        return OperationResult(
            "set_auto_save",
            {"auto_save_enabled": enabled},
            f"Auto-save {'enabled' if enabled else 'disabled'}.",
        )


OPERATION_NAMES = tuple(
    name for name, member in vars(LedgerOperations).items() if hasattr(member, "args_model")
)


__all__ = [
    "LedgerOperations",
    "OPERATION_NAMES",
    "OperationResult",
    "ledger_operation",
    "parse_arguments",
    "violations_from",
]

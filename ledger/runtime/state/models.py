"""
Ledger Models - Type-safe records for the business-state ledger

WHAT: Pydantic models for every ledger collection and the persisted document
WHERE: ledger/runtime/state/models.py - data layer
WHO: Entity store, engines and operations creating/validating records
TIME: Model validation <1ms

Every collection is append-mostly. Only ManagedService.status,
Blocker.status, MarketOpportunity.status and Decision.outcome change in
place after creation (plus the running counters of services and customers).

The LedgerGraph is the single persisted image: one self-describing JSON
document holding every collection and the session metadata.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

SCHEMA_VERSION = 1

ServiceStatus = Literal["active", "scaling", "paused", "killed"]
DecisionOutcome = Literal["approved", "denied", "pending", "auto_approved"]
RiskLevel = Literal["low", "medium", "high"]
OpportunityStatus = Literal["discovered", "analyzing", "implementing", "deployed", "failed"]
ContextType = Literal["planning", "implementation", "debugging", "decision", "analysis"]
ImpactLevel = Literal["low", "medium", "high", "critical"]
DiscoveryType = Literal[
    "code_exists",
    "configuration_needed",
    "dependency_ready",
    "service_built",
    "blocker_found",
]
BlockerType = Literal["technical", "dependency", "configuration", "access", "knowledge_gap"]
BlockerStatus = Literal["identified", "investigating", "resolved", "escalated"]
MilestoneType = Literal["task_started", "task_completed", "checkpoint_reached", "goal_achieved"]

TERMINAL_SERVICE_STATUSES = frozenset({"killed"})
TERMINAL_BLOCKER_STATUSES = frozenset({"resolved", "escalated"})
TERMINAL_OPPORTUNITY_STATUSES = frozenset({"deployed", "failed"})
LIVE_SERVICE_STATUSES = frozenset({"active", "scaling"})

OPPORTUNITY_ORDER = ("discovered", "analyzing", "implementing", "deployed")

BLOCKER_TRANSITIONS: Dict[str, frozenset] = {
    "identified": frozenset({"investigating", "resolved", "escalated"}),
    "investigating": frozenset({"resolved", "escalated"}),
    "resolved": frozenset(),
    "escalated": frozenset(),
}


def new_id() -> str:
    return str(uuid.uuid4())


class RiskMetrics(BaseModel):
    daily_spend: float = 0.0
    service_failures: int = 0
    customer_complaints: int = 0


class BusinessSnapshot(BaseModel):
    """Point-in-time summary of the whole portfolio; immutable once created."""

    id: str = Field(default_factory=new_id)
    timestamp: int
    total_revenue: float = 0.0
    active_services: int = 0
    pending_decisions: List[Any] = Field(default_factory=list)
    current_priorities: List[str] = Field(default_factory=list)
    session_summary: str
    optimization_strategies: List[Any] = Field(default_factory=list)
    risk_metrics: RiskMetrics = Field(default_factory=RiskMetrics)


class PerformanceMetrics(BaseModel):
    uptime_percentage: float = 100.0
    response_time_ms: float = 0.0
    error_rate: float = 0.0
    customer_satisfaction: float = 5.0


class ScalingConfig(BaseModel):
    auto_scale: bool = True
    max_daily_spend: float = 100.0
    kill_threshold: float = -10.0
    scale_threshold: float = 50.0


class ManagedService(BaseModel):
    """One autonomous revenue-generating unit. ``killed`` is terminal but retained."""

    id: str = Field(default_factory=new_id)
    name: str
    type: str
    status: ServiceStatus = "active"
    created_at: int
    updated_at: int
    daily_revenue: float = 0.0
    daily_costs: float = 0.0
    customer_count: int = 0
    performance_metrics: PerformanceMetrics = Field(default_factory=PerformanceMetrics)
    scaling_config: ScalingConfig = Field(default_factory=ScalingConfig)

    @property
    def daily_profit(self) -> float:
        return self.daily_revenue - self.daily_costs


class Transaction(BaseModel):
    """A single recorded monetary event tied to a service."""

    id: str = Field(default_factory=new_id)
    service_id: str
    amount: float
    currency: str = "USD"
    customer_id: Optional[str] = None
    external_transaction_id: Optional[str] = None
    timestamp: int
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ImpactMetrics(BaseModel):
    revenue_impact: float = 0.0
    risk_level: RiskLevel = "medium"
    confidence_score: float = Field(default=0.5, ge=0.0, le=1.0)


class Decision(BaseModel):
    """Audit entry capturing a choice, its justification and estimated impact."""

    id: str = Field(default_factory=new_id)
    timestamp: int
    decision_type: str
    context: str
    reasoning: str
    outcome: DecisionOutcome = "pending"
    impact_metrics: ImpactMetrics = Field(default_factory=ImpactMetrics)
    related_entity_id: Optional[str] = None
    resolved_at: Optional[int] = None


class MarketOpportunity(BaseModel):
    """Candidate revenue idea; status only moves forward (or to ``failed``)."""

    id: str = Field(default_factory=new_id)
    opportunity_type: str
    market_size: Optional[float] = None
    competition_level: Optional[RiskLevel] = None
    profit_potential: Optional[float] = None
    implementation_effort: Optional[RiskLevel] = None
    discovery_source: Optional[str] = None
    analysis_data: Dict[str, Any] = Field(default_factory=dict)
    status: OpportunityStatus = "discovered"
    created_at: int
    updated_at: int


class ServiceUsage(BaseModel):
    transactions: int = 0
    revenue: float = 0.0


class Customer(BaseModel):
    id: str = Field(default_factory=new_id)
    email: Optional[str] = None
    first_transaction: Optional[int] = None
    total_spent: float = 0.0
    service_usage: Dict[str, ServiceUsage] = Field(default_factory=dict)
    satisfaction_score: float = Field(default=5.0, ge=0.0, le=5.0)
    churn_risk: float = Field(default=0.0, ge=0.0, le=1.0)
    created_at: int
    updated_at: int


class ExtractedEntities(BaseModel):
    tasks_mentioned: List[str] = Field(default_factory=list)
    technologies_discussed: List[str] = Field(default_factory=list)
    decisions_made: List[str] = Field(default_factory=list)
    blockers_identified: List[str] = Field(default_factory=list)


class InteractionRecord(BaseModel):
    """One logged exchange between the caller and the reasoning agent."""

    id: str = Field(default_factory=new_id)
    session_id: str
    timestamp: int
    user_input: str
    ai_response: str
    context_type: ContextType = "analysis"
    extracted_entities: ExtractedEntities = Field(default_factory=ExtractedEntities)
    importance_score: float = Field(default=0.3, ge=0.0, le=1.0)


class TechnicalDiscovery(BaseModel):
    id: str = Field(default_factory=new_id)
    timestamp: int
    discovery_type: DiscoveryType
    title: str
    description: str
    file_path: Optional[str] = None
    impact_level: ImpactLevel = "medium"
    actionable_insights: List[str] = Field(default_factory=list)
    related_interaction_id: Optional[str] = None


class Blocker(BaseModel):
    id: str = Field(default_factory=new_id)
    timestamp: int
    title: str
    description: str
    blocker_type: BlockerType
    severity: ImpactLevel = "medium"
    status: BlockerStatus = "identified"
    resolution_steps: List[str] = Field(default_factory=list)
    resolution_summary: Optional[str] = None
    related_interaction_id: Optional[str] = None
    updated_at: Optional[int] = None


class ProgressMilestone(BaseModel):
    id: str = Field(default_factory=new_id)
    timestamp: int
    milestone_type: MilestoneType
    title: str
    description: str
    completion_percentage: float = Field(default=0.0, ge=0.0, le=100.0)
    next_steps: List[str] = Field(default_factory=list)


class SessionMetadata(BaseModel):
    """Process-wide run state; rides inside the persisted image."""

    current_session_id: str = Field(default_factory=new_id)
    session_start: int
    last_activity: int
    auto_save_enabled: bool = True
    previous_session_id: Optional[str] = None


class LedgerGraph(BaseModel):
    """The whole entity store: one consistency domain, persisted as a single document."""

    schema_version: int = SCHEMA_VERSION
    business_states: List[BusinessSnapshot] = Field(default_factory=list)
    services: List[ManagedService] = Field(default_factory=list)
    transactions: List[Transaction] = Field(default_factory=list)
    decisions: List[Decision] = Field(default_factory=list)
    market_opportunities: List[MarketOpportunity] = Field(default_factory=list)
    customers: List[Customer] = Field(default_factory=list)
    conversation_turns: List[InteractionRecord] = Field(default_factory=list)
    technical_discoveries: List[TechnicalDiscovery] = Field(default_factory=list)
    blockers: List[Blocker] = Field(default_factory=list)
    progress_milestones: List[ProgressMilestone] = Field(default_factory=list)
    session_metadata: SessionMetadata

    @classmethod
    def empty(cls, now_ms: int, *, auto_save_enabled: bool = True) -> LedgerGraph:
        return cls(
            session_metadata=SessionMetadata(
                session_start=now_ms,
                last_activity=now_ms,
                auto_save_enabled=auto_save_enabled,
            )
        )

    def find_service(self, service_id: str) -> Optional[ManagedService]:
        return next((s for s in self.services if s.id == service_id), None)

    def find_decision(self, decision_id: str) -> Optional[Decision]:
        return next((d for d in self.decisions if d.id == decision_id), None)

    def find_blocker(self, blocker_id: str) -> Optional[Blocker]:
        return next((b for b in self.blockers if b.id == blocker_id), None)

    def find_opportunity(self, opportunity_id: str) -> Optional[MarketOpportunity]:
        return next((o for o in self.market_opportunities if o.id == opportunity_id), None)

    def find_customer(self, customer_id: str) -> Optional[Customer]:
        return next((c for c in self.customers if c.id == customer_id), None)

    def latest_snapshot(self) -> Optional[BusinessSnapshot]:
        if not self.business_states:
            return None
        return max(self.business_states, key=lambda s: s.timestamp)


__all__ = [
    "SCHEMA_VERSION",
    "BusinessSnapshot",
    "RiskMetrics",
    "ManagedService",
    "PerformanceMetrics",
    "ScalingConfig",
    "Transaction",
    "Decision",
    "ImpactMetrics",
    "MarketOpportunity",
    "Customer",
    "ServiceUsage",
    "InteractionRecord",
    "ExtractedEntities",
    "TechnicalDiscovery",
    "Blocker",
    "ProgressMilestone",
    "SessionMetadata",
    "LedgerGraph",
    "new_id",
]

import pytest

from ledger.config import LedgerConfig
from ledger.runtime.state.clock import MonotonicClock
from ledger.runtime.state.entity_store import EntityStore
from ledger.runtime.state.errors import EntityNotFoundError, LedgerValidationError
from ledger.runtime.state.models import LedgerGraph, Transaction
from ledger.runtime.state.operations import OPERATION_NAMES, LedgerOperations
from ledger.runtime.state.telemetry import TelemetryClient
from ledger.runtime.state.templates import TOOL_DESCRIPTIONS


class FakeTime:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CaptureTelemetryClient(TelemetryClient):
    def __init__(self) -> None:
        self.spans: list[tuple[str, dict]] = []

    def emit_span(self, name: str, attributes: dict) -> None:
        self.spans.append((name, attributes))


class InterleavingStore(EntityStore):
    """Runs one queued mutation just before the next caller-issued mutation."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.interleaved = None

    def mutate(self, fn):
        queued, self.interleaved = self.interleaved, None
        if queued is not None:
            super().mutate(queued)
        return super().mutate(fn)


def make_ops(telemetry=None, store_class=EntityStore, **config):
    clock = MonotonicClock(source=FakeTime())
    store = store_class(LedgerGraph.empty(clock.now_ms()), clock)
    kwargs = {"store": store, "config": LedgerConfig(**config)}
    if telemetry is not None:
        kwargs["telemetry"] = telemetry
    return LedgerOperations(**kwargs)


def decisions_of_type(ops, decision_type):
    return ops.get_decisions(decision_type=decision_type).data


# ------------------------------------------------------------------
# lifecycle scenarios
# ------------------------------------------------------------------


def test_losing_service_is_killed_with_one_decision():
    ops = make_ops()
    service = ops.register_service(name="qr", type="api", max_daily_spend=100, auto_scale=True).data
    ops.record_transaction(service_id=service.id, amount=2.0)
    ops.record_transaction(service_id=service.id, amount=3.0)

    result = ops.update_service_performance(service_id=service.id, daily_costs=20.0)

    assert result.data.status == "killed"
    assert result.data.daily_revenue == 5.0
    assert len(result.side_effects) == 1
    decision = result.side_effects[0]
    assert decision.decision_type == "auto_kill_service"
    assert decision.outcome == "auto_approved"
    assert decision.impact_metrics.revenue_impact == -15.0
    assert "killed" in result.narrative

    again = ops.update_service_performance(service_id=service.id, daily_costs=20.0)

    assert again.side_effects == []
    assert len(decisions_of_type(ops, "auto_kill_service")) == 1


def test_profitable_service_starts_scaling():
    ops = make_ops()
    service = ops.register_service(name="pdf", type="api").data

    result = ops.update_service_performance(service_id=service.id, daily_revenue=80.0, daily_costs=10.0)

    assert result.data.status == "scaling"
    assert result.side_effects[0].decision_type == "auto_scale_service"
    assert result.side_effects[0].impact_metrics.revenue_impact == 140.0


def test_scale_multiplier_comes_from_config():
    ops = make_ops(scale_multiplier=3.0)
    service = ops.register_service(name="pdf", type="api").data

    result = ops.update_service_performance(service_id=service.id, daily_revenue=60.0)

    assert result.side_effects[0].impact_metrics.revenue_impact == 180.0


def test_transactions_alone_never_trigger_lifecycle():
    ops = make_ops()
    service = ops.register_service(name="pdf", type="api").data

    ops.record_transaction(service_id=service.id, amount=500.0)

    assert ops.get_service(service_id=service.id).data.status == "active"
    assert ops.get_decisions().data == []


def test_unknown_service_is_not_found():
    ops = make_ops()

    with pytest.raises(EntityNotFoundError) as excinfo:
        ops.update_service_performance(service_id="missing", daily_costs=1.0)
    assert excinfo.value.entity_id == "missing"

    with pytest.raises(EntityNotFoundError):
        ops.record_transaction(service_id="missing", amount=1.0)


def test_register_service_applies_config_defaults_and_overrides():
    ops = make_ops(kill_threshold=-5.0, max_daily_spend=30.0)

    default = ops.register_service(name="a", type="api").data
    custom = ops.register_service(name="b", type="api", kill_threshold=-50, scale_threshold=10).data

    assert default.scaling_config.kill_threshold == -5.0
    assert default.scaling_config.max_daily_spend == 30.0
    assert default.scaling_config.auto_scale is True
    assert custom.scaling_config.kill_threshold == -50.0
    assert custom.scaling_config.scale_threshold == 10.0


def test_register_service_rejects_inverted_thresholds():
    ops = make_ops()

    with pytest.raises(LedgerValidationError) as excinfo:
        ops.register_service(name="a", type="api", kill_threshold=60, scale_threshold=50)
    assert "kill_threshold" in excinfo.value.violations[0]


def test_killed_is_terminal_for_manual_status_changes():
    ops = make_ops()
    service = ops.register_service(name="a", type="api").data

    paused = ops.set_service_status(service_id=service.id, status="paused").data
    assert paused.status == "paused"

    ops.set_service_status(service_id=service.id, status="killed")
    with pytest.raises(LedgerValidationError):
        ops.set_service_status(service_id=service.id, status="active")


# ------------------------------------------------------------------
# transactions and customers
# ------------------------------------------------------------------


def test_daily_revenue_is_recomputed_from_todays_transactions():
    ops = make_ops()
    service = ops.register_service(name="qr", type="api").data
    amounts = [1.25, 7.0, 0.5, 10.0]

    for amount in amounts:
        ops.record_transaction(service_id=service.id, amount=amount)

    assert ops.get_service(service_id=service.id).data.daily_revenue == sum(amounts)


def test_performance_override_is_replaced_by_next_recompute():
    ops = make_ops()
    service = ops.register_service(name="qr", type="api").data
    ops.update_service_performance(service_id=service.id, daily_revenue=42.0)

    ops.record_transaction(service_id=service.id, amount=4.0)

    assert ops.get_service(service_id=service.id).data.daily_revenue == 4.0


def test_transaction_validation_reports_each_violation():
    ops = make_ops()
    service = ops.register_service(name="qr", type="api").data

    with pytest.raises(LedgerValidationError) as excinfo:
        ops.record_transaction(service_id=service.id, amount=-1, currency="dollars")

    fields = sorted(v.split(":")[0] for v in excinfo.value.violations)
    assert fields == ["amount", "currency"]


def test_currency_is_normalized():
    ops = make_ops()
    service = ops.register_service(name="qr", type="api").data

    tx = ops.record_transaction(service_id=service.id, amount=1.0, currency="eur").data

    assert tx.currency == "EUR"


def test_unknown_customer_is_created_and_credited():
    ops = make_ops()
    service = ops.register_service(name="qr", type="api").data

    first = ops.record_transaction(service_id=service.id, amount=9.0, customer_id="cus_1")
    second = ops.record_transaction(service_id=service.id, amount=1.0, customer_id="cus_1")

    assert [type(e).__name__ for e in first.side_effects] == ["Customer"]
    assert second.side_effects == []
    customer = ops.get_customers().data[0]
    assert customer.id == "cus_1"
    assert customer.total_spent == 10.0
    assert customer.first_transaction == first.data.timestamp
    assert customer.service_usage[service.id].transactions == 2
    assert ops.get_service(service_id=service.id).data.customer_count == 1


def test_duplicate_external_transaction_rejected():
    ops = make_ops()
    service = ops.register_service(name="qr", type="api").data
    ops.record_transaction(service_id=service.id, amount=1.0, external_transaction_id="pi_1")

    with pytest.raises(LedgerValidationError):
        ops.record_transaction(service_id=service.id, amount=1.0, external_transaction_id="pi_1")


def test_payment_events_from_collaborator():
    ops = make_ops()
    service = ops.register_service(name="qr", type="api").data
    event = {
        "event_type": "payment_succeeded",
        "service_id": service.id,
        "amount": 4.99,
        "external_transaction_id": "pi_9",
    }

    recorded = ops.ingest_payment_event(**event)
    duplicate = ops.ingest_payment_event(**event)
    failed = ops.ingest_payment_event(
        event_type="payment_failed", service_id=service.id, amount=4.99, failure_reason="card declined"
    )

    assert recorded.data["recorded"] is True
    assert recorded.data["transaction"].metadata["source"] == "payment_event"
    assert duplicate.data["duplicate"] is True
    assert failed.data["recorded"] is False
    assert len(ops.get_transactions().data) == 1


def test_concurrent_redelivery_is_reported_as_duplicate():
    ops = make_ops(store_class=InterleavingStore)
    service = ops.register_service(name="qr", type="api").data

    def other_delivery(graph):
        graph.transactions.append(
            Transaction(service_id=service.id, amount=4.99, external_transaction_id="pi_race", timestamp=1)
        )

    ops.store.interleaved = other_delivery
    result = ops.ingest_payment_event(
        event_type="payment_succeeded",
        service_id=service.id,
        amount=4.99,
        external_transaction_id="pi_race",
    )

    assert result.data["duplicate"] is True
    assert result.data["recorded"] is False
    assert len(ops.get_transactions().data) == 1


def test_customer_count_tracks_distinct_paying_customers():
    ops = make_ops()
    service = ops.register_service(name="qr", type="api").data
    ops.update_service_performance(service_id=service.id, customer_count=10)
    assert ops.get_service(service_id=service.id).data.customer_count == 10

    ops.record_transaction(service_id=service.id, amount=1.0, customer_id="cus_1")
    ops.record_transaction(service_id=service.id, amount=1.0, customer_id="cus_2")
    ops.record_transaction(service_id=service.id, amount=1.0, customer_id="cus_1")

    assert ops.get_service(service_id=service.id).data.customer_count == 2


def test_customer_onboarding_and_updates():
    ops = make_ops()
    customer = ops.onboard_customer(customer_id="cus_7", email="a@example.com").data

    updated = ops.update_customer(customer_id=customer.id, satisfaction_score=2.0, churn_risk=0.8).data

    assert updated.satisfaction_score == 2.0
    assert ops.get_customers(min_churn_risk=0.5).data[0].id == "cus_7"
    with pytest.raises(LedgerValidationError):
        ops.onboard_customer(customer_id="cus_7")
    with pytest.raises(LedgerValidationError):
        ops.update_customer(customer_id="cus_7", churn_risk=1.5)


# ------------------------------------------------------------------
# decisions, opportunities, blockers
# ------------------------------------------------------------------


def test_pending_decision_resolves_once():
    ops = make_ops()
    decision = ops.log_decision(
        decision_type="pricing", context="raise price", reasoning="demand", risk_level="high"
    ).data
    assert decision.outcome == "pending"
    assert [d.id for d in ops.get_pending_decisions().data] == [decision.id]

    resolved = ops.resolve_decision(decision_id=decision.id, outcome="approved").data

    assert resolved.outcome == "approved"
    assert resolved.resolved_at is not None
    assert ops.get_pending_decisions().data == []
    with pytest.raises(LedgerValidationError):
        ops.resolve_decision(decision_id=decision.id, outcome="denied")


def test_decision_confidence_must_be_a_probability():
    ops = make_ops()

    with pytest.raises(LedgerValidationError) as excinfo:
        ops.log_decision(decision_type="x", context="c", reasoning="r", confidence_score=1.5)
    assert excinfo.value.violations[0].startswith("confidence_score:")


def test_opportunity_status_only_moves_forward():
    ops = make_ops()
    opp = ops.record_market_opportunity(opportunity_type="pdf", profit_potential=30.0).data
    assert opp.status == "discovered"

    assert ops.update_opportunity_status(opportunity_id=opp.id, status="implementing").data.status == "implementing"
    with pytest.raises(LedgerValidationError):
        ops.update_opportunity_status(opportunity_id=opp.id, status="analyzing")

    assert ops.update_opportunity_status(opportunity_id=opp.id, status="failed").data.status == "failed"
    with pytest.raises(LedgerValidationError):
        ops.update_opportunity_status(opportunity_id=opp.id, status="deployed")


def test_blocker_transitions():
    ops = make_ops()
    blocker = ops.log_blocker(title="no api key", blocker_type="access").data
    assert blocker.status == "identified"

    investigating = ops.update_blocker_status(blocker_id=blocker.id, status="investigating").data
    assert investigating.status == "investigating"
    with pytest.raises(LedgerValidationError):
        ops.update_blocker_status(blocker_id=blocker.id, status="identified")

    resolved = ops.resolve_blocker(blocker_id=blocker.id, resolution_summary="key issued").data
    assert resolved.status == "resolved"
    assert resolved.resolution_summary == "key issued"
    with pytest.raises(LedgerValidationError):
        ops.update_blocker_status(blocker_id=blocker.id, status="escalated")
    assert ops.get_blockers(active_only=True).data == []


def test_unknown_blocker_is_not_found():
    ops = make_ops()

    with pytest.raises(EntityNotFoundError):
        ops.resolve_blocker(blocker_id="nope", resolution_summary="x")


# ------------------------------------------------------------------
# conversation capture
# ------------------------------------------------------------------


def test_conversation_turn_materializes_one_blocker_and_one_decision():
    ops = make_ops()

    result = ops.log_conversation_turn(
        user_input="The checkout page shows an error",
        ai_response="We decided to retry later",
    )

    record = result.data
    assert record.context_type == "debugging"
    assert record.extracted_entities.blockers_identified == ["error"]
    assert record.extracted_entities.decisions_made == ["decided"]
    assert record.importance_score == 0.5
    assert sorted(type(e).__name__ for e in result.side_effects) == ["Blocker", "Decision"]

    decisions = decisions_of_type(ops, "conversation_decision")
    blockers = ops.get_blockers().data
    assert len(decisions) == 1 and len(blockers) == 1
    assert decisions[0].outcome == "auto_approved"
    assert decisions[0].impact_metrics.confidence_score == 0.8
    assert decisions[0].related_entity_id == record.id
    assert blockers[0].title == "error"
    assert blockers[0].blocker_type == "technical"
    assert blockers[0].related_interaction_id == record.id


def test_conversation_overrides_are_respected():
    ops = make_ops()

    result = ops.log_conversation_turn(
        user_input="error everywhere",
        ai_response="ok",
        context_type="analysis",
        extracted_entities={"tasks_mentioned": ["triage"]},
        importance_score=0.9,
    )

    assert result.data.context_type == "analysis"
    assert result.data.importance_score == 0.9
    assert result.data.extracted_entities.tasks_mentioned == ["triage"]
    assert result.side_effects == []


def test_auto_capture_technologies_and_milestones():
    ops = make_ops()

    tech = ops.auto_capture_context(
        trigger_type="technical_discovery",
        context_data={"user_input": "wire the stripe webhook", "ai_response": "done"},
    )
    milestone = ops.auto_capture_context(
        trigger_type="milestone_reached",
        context_data={"title": "Checkout live", "completion_percentage": 80},
    )

    titles = sorted(d.title for d in tech.data["captured"])
    assert titles == ["stripe technology discussed", "webhook technology discussed"]
    assert tech.data["captured"][0].discovery_type == "dependency_ready"
    assert milestone.data["captured"][0].milestone_type == "checkpoint_reached"
    assert len(ops.get_progress_milestones().data) == 1

    with pytest.raises(LedgerValidationError):
        ops.auto_capture_context(trigger_type="milestone_reached", context_data={})


# ------------------------------------------------------------------
# business state and surface
# ------------------------------------------------------------------


def test_business_state_snapshot_derives_risk_metrics():
    ops = make_ops()
    live = ops.register_service(name="live", type="api").data
    dead = ops.register_service(name="dead", type="api").data
    ops.update_service_performance(service_id=live.id, daily_revenue=30.0, daily_costs=8.0)
    ops.update_service_performance(service_id=dead.id, daily_costs=40.0)
    ops.record_transaction(service_id=live.id, amount=3.0)
    ops.onboard_customer(customer_id="grumpy", satisfaction_score=1.0)

    snapshot = ops.save_business_state(session_summary="day one", current_priorities=["grow"]).data

    assert snapshot.total_revenue == 3.0
    assert snapshot.active_services == 1
    assert snapshot.risk_metrics.daily_spend == 8.0
    assert snapshot.risk_metrics.service_failures == 1
    assert snapshot.risk_metrics.customer_complaints == 1

    current = ops.get_current_business_state().data
    assert current["snapshot"].id == snapshot.id
    assert current["recent_activity"]["transactions"] == 1


def test_save_business_state_requires_summary():
    ops = make_ops()

    with pytest.raises(LedgerValidationError):
        ops.save_business_state(session_summary="   ")


def test_dispatch_routes_by_name_and_rejects_unknown_tools():
    ops = make_ops()

    result = ops.dispatch("register_service", {"name": "qr", "type": "api"})
    listed = ops.dispatch("get_all_services")

    assert result.operation == "register_service"
    assert listed.to_dict()["data"][0]["name"] == "qr"
    with pytest.raises(LedgerValidationError):
        ops.dispatch("drop_database", {})
    with pytest.raises(LedgerValidationError):
        ops.dispatch("register_service", {"name": "qr", "type": "api", "color": "red"})


def test_result_serializes_side_effects():
    ops = make_ops()
    service = ops.register_service(name="qr", type="api").data

    payload = ops.update_service_performance(service_id=service.id, daily_costs=50.0).to_dict()

    assert payload["data"]["status"] == "killed"
    assert payload["side_effects"][0]["kind"] == "Decision"
    assert payload["side_effects"][0]["record"]["decision_type"] == "auto_kill_service"


def test_operations_emit_telemetry_spans():
    telemetry = CaptureTelemetryClient()
    ops = make_ops(telemetry=telemetry)

    ops.get_all_services()
    with pytest.raises(LedgerValidationError):
        ops.register_service(name="")

    (ok_name, ok_attrs), (bad_name, bad_attrs) = telemetry.spans
    assert ok_name == bad_name == "ledger.operation"
    assert ok_attrs["operation"] == "get_all_services" and ok_attrs["success"] is True
    assert bad_attrs["operation"] == "register_service" and bad_attrs["success"] is False


def test_every_operation_has_a_tool_description():
    assert set(TOOL_DESCRIPTIONS) == set(OPERATION_NAMES)
    params = TOOL_DESCRIPTIONS["get_revenue_analytics"]["parameters"]
    assert params["timeframe_days"]["required"] is False
    assert "default: 30" in params["timeframe_days"]["description"]
    assert TOOL_DESCRIPTIONS["register_service"]["parameters"]["name"]["required"] is True


def test_repeated_analytics_reads_are_identical():
    ops = make_ops()
    service = ops.register_service(name="qr", type="api").data
    ops.record_transaction(service_id=service.id, amount=12.0)

    first = ops.get_revenue_analytics(timeframe_days=7).to_dict()
    second = ops.get_revenue_analytics(timeframe_days=7).to_dict()
    assert first == second

    first = ops.get_business_insights(focus_area="revenue").to_dict()
    second = ops.get_business_insights(focus_area="revenue").to_dict()
    assert first == second
    assert ops.get_portfolio_summary().to_dict() == ops.get_portfolio_summary().to_dict()

from ledger.logging.audit import read_records
from ledger.runtime.state.lifecycle import LifecycleEngine
from ledger.runtime.state.models import LedgerGraph, ManagedService, ScalingConfig

NOW = 1_700_000_000_000


def make_graph(**service_fields):
    graph = LedgerGraph.empty(NOW)
    service = ManagedService(name="qr", type="api", created_at=NOW, updated_at=NOW, **service_fields)
    graph.services.append(service)
    return graph, service


def test_kill_rule_logs_auto_approved_decision():
    graph, service = make_graph(daily_revenue=5.0, daily_costs=20.0)

    transition = LifecycleEngine().evaluate(graph, service, NOW + 1)

    assert service.status == "killed"
    assert transition.previous_status == "active"
    decision = transition.decision
    assert decision.decision_type == "auto_kill_service"
    assert decision.outcome == "auto_approved"
    assert decision.impact_metrics.risk_level == "low"
    assert decision.impact_metrics.confidence_score == 0.9
    assert decision.impact_metrics.revenue_impact == -15.0
    assert graph.decisions == [decision]


def test_killed_service_is_not_killed_twice():
    graph, service = make_graph(daily_revenue=0.0, daily_costs=50.0)
    engine = LifecycleEngine()

    engine.evaluate(graph, service, NOW + 1)
    again = engine.evaluate(graph, service, NOW + 2)

    assert again is None
    assert len(graph.decisions) == 1


def test_scale_rule_uses_multiplier():
    graph, service = make_graph(daily_revenue=80.0, daily_costs=10.0)

    transition = LifecycleEngine(scale_multiplier=2.0).evaluate(graph, service, NOW + 1)

    assert service.status == "scaling"
    assert transition.decision.decision_type == "auto_scale_service"
    assert transition.decision.impact_metrics.revenue_impact == 140.0
    assert transition.decision.impact_metrics.risk_level == "medium"
    assert transition.decision.impact_metrics.confidence_score == 0.7


def test_scaling_service_does_not_retrigger():
    graph, service = make_graph(daily_revenue=80.0, daily_costs=10.0)
    engine = LifecycleEngine()
    engine.evaluate(graph, service, NOW + 1)

    service.daily_revenue = 200.0
    assert engine.evaluate(graph, service, NOW + 2) is None
    assert service.status == "scaling"


def test_scaling_service_can_still_be_killed():
    graph, service = make_graph(status="scaling", daily_revenue=0.0, daily_costs=30.0)

    transition = LifecycleEngine().evaluate(graph, service, NOW + 1)

    assert transition.previous_status == "scaling"
    assert service.status == "killed"


def test_auto_scale_disabled_means_no_transition():
    graph, service = make_graph(
        daily_revenue=0.0,
        daily_costs=100.0,
        scaling_config=ScalingConfig(auto_scale=False),
    )

    assert LifecycleEngine().evaluate(graph, service, NOW + 1) is None
    assert service.status == "active"
    assert graph.decisions == []


def test_profit_between_thresholds_is_left_alone():
    graph, service = make_graph(daily_revenue=30.0, daily_costs=30.0)

    assert LifecycleEngine().evaluate(graph, service, NOW + 1) is None


def test_per_service_thresholds_override_defaults():
    graph, service = make_graph(
        daily_revenue=25.0,
        daily_costs=0.0,
        scaling_config=ScalingConfig(scale_threshold=20.0),
    )

    transition = LifecycleEngine().evaluate(graph, service, NOW + 1)

    assert transition.new_status == "scaling"
    assert transition.threshold == 20.0


def test_transition_audit_record_is_appended(tmp_path):
    audit = tmp_path / "audit" / "transitions.jsonl"
    engine = LifecycleEngine(audit_path=audit)
    graph, service = make_graph(daily_revenue=0.0, daily_costs=40.0)

    transition = engine.evaluate(graph, service, NOW + 1)
    engine.write_audit(transition)

    records = read_records(audit)
    assert len(records) == 1
    assert records[0]["event"] == "auto_kill_service"
    assert records[0]["service_id"] == service.id
    assert records[0]["new_status"] == "killed"
    assert records[0]["decision_id"] == transition.decision.id

"""
Analytics Engine - Read-side rollups over the ledger graph

WHAT: Revenue analytics, per-service profitability, portfolio rollup, opportunity ranking
WHERE: ledger/runtime/state/analytics.py - pure read path
WHO: LedgerOperations getters (called under EntityStore.read)
TIME: O(transactions + services) per call

Every function takes the graph plus an explicit ``now_ms`` and returns plain
dicts/lists. Nothing here mutates the graph or reads the clock, so two calls
over unchanged data return identical results.

Portfolio health tiers on aggregate daily profit:
- < 0    urgent
- < 10   caution
- > 100  strong
- else   steady
"""

from __future__ import annotations

from collections import Counter, OrderedDict
from typing import Any, Dict, List, Optional

from .clock import MS_PER_DAY, local_date, local_day_bounds, window_start
from .errors import LedgerValidationError
from .models import (
    LIVE_SERVICE_STATUSES,
    LedgerGraph,
    MarketOpportunity,
    Transaction,
)

SERVICE_STATUSES = ("active", "scaling", "paused", "killed")
OPPORTUNITY_STATUSES = ("discovered", "analyzing", "implementing", "deployed", "failed")
FOCUS_AREAS = ("revenue", "services", "customers", "opportunities", "risks")

MIN_ACTIVE_SERVICES = 3
LOW_SATISFACTION = 3.5
HIGH_SATISFACTION = 4.5
OPPORTUNITY_LOOKBACK_DAYS = 30
CHURN_RISK_ALERT = 0.5
COMPLAINT_SATISFACTION = 3.0


def _average(total: float, count: int) -> float:
    return total / count if count else 0.0


def service_revenue_today(graph: LedgerGraph, service_id: str, now_ms: int) -> float:
    """Sum of the service's transactions inside the local calendar day containing now_ms."""

    start, end = local_day_bounds(now_ms)
    return sum(
        t.amount
        for t in graph.transactions
        if t.service_id == service_id and start <= t.timestamp < end
    )


def total_revenue_today(graph: LedgerGraph, now_ms: int) -> float:
    start, end = local_day_bounds(now_ms)
    return sum(t.amount for t in graph.transactions if start <= t.timestamp < end)


def window_transactions(
    graph: LedgerGraph,
    now_ms: int,
    timeframe_days: float,
    service_id: Optional[str] = None,
) -> List[Transaction]:
    start = window_start(now_ms, timeframe_days)
    return [
        t
        for t in graph.transactions
        if t.timestamp >= start and (service_id is None or t.service_id == service_id)
    ]


def revenue_analytics(
    graph: LedgerGraph,
    now_ms: int,
    timeframe_days: float = 30,
    service_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Window totals, per-service breakdown and a per-local-day trend series."""

    if timeframe_days <= 0:
        raise LedgerValidationError(["timeframe_days: must be greater than 0"])

    transactions = window_transactions(graph, now_ms, timeframe_days, service_id)
    names = {s.id: s.name for s in graph.services}

    total = sum(t.amount for t in transactions)
    count = len(transactions)

    per_service: Dict[str, Dict[str, Any]] = {}
    for tx in transactions:
        row = per_service.setdefault(tx.service_id, {"transactions": 0, "revenue": 0.0})
        row["transactions"] += 1
        row["revenue"] += tx.amount

    services = []
    for sid, row in per_service.items():
        services.append(
            {
                "service_id": sid,
                "service_name": names.get(sid, "unknown"),
                "transactions": row["transactions"],
                "revenue": row["revenue"],
                "average_transaction": _average(row["revenue"], row["transactions"]),
                "daily_average": row["revenue"] / timeframe_days,
                "share_of_total": row["revenue"] / total if total else 0.0,
            }
        )
    services.sort(key=lambda r: (-r["revenue"], r["service_id"]))

    trend: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    for tx in sorted(transactions, key=lambda t: t.timestamp):
        day = local_date(tx.timestamp).isoformat()
        bucket = trend.setdefault(day, {"date": day, "revenue": 0.0, "transactions": 0})
        bucket["revenue"] += tx.amount
        bucket["transactions"] += 1

    return {
        "timeframe_days": timeframe_days,
        "service_id": service_id,
        "total_revenue": total,
        "transaction_count": count,
        "average_transaction": _average(total, count),
        "daily_average": total / timeframe_days,
        "services": services,
        "daily_trend": list(trend.values()),
    }


def service_profitability(graph: LedgerGraph) -> List[Dict[str, Any]]:
    rows = [
        {
            "service_id": s.id,
            "name": s.name,
            "status": s.status,
            "daily_revenue": s.daily_revenue,
            "daily_costs": s.daily_costs,
            "daily_profit": s.daily_profit,
            "customer_count": s.customer_count,
        }
        for s in graph.services
    ]
    rows.sort(key=lambda r: (-r["daily_profit"], r["service_id"]))
    return rows


def health_tier(daily_profit: float) -> str:
    if daily_profit < 0:
        return "urgent"
    if daily_profit < 10:
        return "caution"
    if daily_profit > 100:
        return "strong"
    return "steady"


_HEALTH_NOTES = {
    "urgent": "Portfolio is losing money; cut or fix unprofitable services now",
    "caution": "Portfolio is barely profitable; watch costs closely",
    "steady": "Portfolio is profitable",
    "strong": "Portfolio is strongly profitable; consider reinvesting in growth",
}


def portfolio_rollup(graph: LedgerGraph, now_ms: int) -> Dict[str, Any]:
    """Aggregate live (active or scaling) services into one health picture."""

    live = [s for s in graph.services if s.status in LIVE_SERVICE_STATUSES]
    revenue = sum(s.daily_revenue for s in live)
    costs = sum(s.daily_costs for s in live)
    profit = revenue - costs
    tier = health_tier(profit)

    status_counts = {status: 0 for status in SERVICE_STATUSES}
    for service in graph.services:
        status_counts[service.status] += 1

    recommendations: List[str] = []
    active = status_counts["active"]
    if active < MIN_ACTIVE_SERVICES:
        recommendations.append(
            f"Diversify: {active} active service(s); aim for at least {MIN_ACTIVE_SERVICES}"
        )

    scaling = sorted(s.name for s in live if s.status == "scaling")
    if scaling:
        recommendations.append(
            f"{len(scaling)} service(s) scaling and awaiting resources: {', '.join(scaling)}"
        )

    high_risk = [
        d for d in graph.decisions
        if d.outcome == "pending" and d.impact_metrics.risk_level == "high"
    ]
    if high_risk:
        recommendations.append(f"Review {len(high_risk)} high-risk pending decision(s)")

    recent_cutoff = now_ms - OPPORTUNITY_LOOKBACK_DAYS * MS_PER_DAY
    fresh = [
        o for o in graph.market_opportunities
        if o.status == "discovered" and o.created_at >= recent_cutoff
    ]
    if fresh:
        recommendations.append(
            f"{len(fresh)} opportunity(ies) discovered in the last "
            f"{OPPORTUNITY_LOOKBACK_DAYS} days awaiting analysis"
        )

    mean_satisfaction: Optional[float] = None
    if live:
        mean_satisfaction = sum(
            s.performance_metrics.customer_satisfaction for s in live
        ) / len(live)
        if mean_satisfaction < LOW_SATISFACTION:
            recommendations.append(
                f"Mean customer satisfaction {mean_satisfaction:.1f}/5 is low; improve service quality"
            )
        elif mean_satisfaction > HIGH_SATISFACTION:
            recommendations.append(
                f"Mean customer satisfaction {mean_satisfaction:.1f}/5 is excellent; leverage it for growth"
            )

    return {
        "live_services": len(live),
        "daily_revenue": revenue,
        "daily_costs": costs,
        "daily_profit": profit,
        "health": tier,
        "health_note": _HEALTH_NOTES[tier],
        "status_counts": status_counts,
        "mean_satisfaction": mean_satisfaction,
        "recommendations": recommendations,
    }


def rank_opportunities(
    graph: LedgerGraph,
    status: Optional[str] = None,
    limit: int = 10,
) -> List[MarketOpportunity]:
    """Descending profit potential (unknown last), then newest discovery first."""

    if limit <= 0:
        raise LedgerValidationError(["limit: must be greater than 0"])
    candidates = [
        o for o in graph.market_opportunities if status is None or o.status == status
    ]
    candidates.sort(
        key=lambda o: (
            o.profit_potential is None,
            -(o.profit_potential or 0.0),
            -o.created_at,
            o.id,
        )
    )
    return candidates[:limit]


def _revenue_insights(graph: LedgerGraph, now_ms: int) -> Dict[str, Any]:
    analytics = revenue_analytics(graph, now_ms, 30)
    insights = [
        f"30-day revenue ${analytics['total_revenue']:.2f} over "
        f"{analytics['transaction_count']} transaction(s)",
        f"Average daily revenue ${analytics['daily_average']:.2f}",
    ]
    if analytics["services"]:
        top = analytics["services"][0]
        insights.append(
            f"Top earner: {top['service_name']} (${top['revenue']:.2f}, "
            f"{top['share_of_total'] * 100:.0f}% of revenue)"
        )
    else:
        insights.append("No revenue recorded in the last 30 days")
    return {"insights": insights, "data": analytics}


def _service_insights(graph: LedgerGraph, now_ms: int) -> Dict[str, Any]:
    rows = service_profitability(graph)
    rollup = portfolio_rollup(graph, now_ms)
    counts = rollup["status_counts"]
    insights = [
        "Services: " + ", ".join(f"{counts[s]} {s}" for s in SERVICE_STATUSES),
        f"Live portfolio daily profit ${rollup['daily_profit']:.2f} ({rollup['health']})",
    ]
    live_rows = [r for r in rows if r["status"] in LIVE_SERVICE_STATUSES]
    if live_rows:
        insights.append(
            f"Most profitable: {live_rows[0]['name']} (${live_rows[0]['daily_profit']:.2f}/day)"
        )
        if len(live_rows) > 1:
            insights.append(
                f"Least profitable: {live_rows[-1]['name']} (${live_rows[-1]['daily_profit']:.2f}/day)"
            )
    insights.extend(rollup["recommendations"])
    return {"insights": insights, "data": {"services": rows, "portfolio": rollup}}


def _customer_insights(graph: LedgerGraph, now_ms: int) -> Dict[str, Any]:
    customers = graph.customers
    total = sum(c.total_spent for c in customers)
    at_risk = [c for c in customers if c.churn_risk >= CHURN_RISK_ALERT]
    unhappy = [c for c in customers if c.satisfaction_score < COMPLAINT_SATISFACTION]
    mean_satisfaction = _average(sum(c.satisfaction_score for c in customers), len(customers))
    insights = [
        f"{len(customers)} customer(s), lifetime spend ${total:.2f}",
        f"Average spend per customer ${_average(total, len(customers)):.2f}",
    ]
    if customers:
        insights.append(f"Mean satisfaction {mean_satisfaction:.1f}/5")
    if at_risk:
        insights.append(f"{len(at_risk)} customer(s) at churn risk")
    if unhappy:
        insights.append(f"{len(unhappy)} customer(s) with satisfaction below {COMPLAINT_SATISFACTION:g}")
    return {
        "insights": insights,
        "data": {
            "customer_count": len(customers),
            "total_spent": total,
            "average_spend": _average(total, len(customers)),
            "mean_satisfaction": mean_satisfaction if customers else None,
            "at_risk": [c.id for c in at_risk],
            "low_satisfaction": [c.id for c in unhappy],
        },
    }


def _opportunity_insights(graph: LedgerGraph, now_ms: int) -> Dict[str, Any]:
    counts = Counter(o.status for o in graph.market_opportunities)
    ranked = rank_opportunities(graph, limit=5)
    insights = [
        "Opportunities: " + ", ".join(f"{counts.get(s, 0)} {s}" for s in OPPORTUNITY_STATUSES),
    ]
    for opp in ranked:
        potential = "unknown" if opp.profit_potential is None else f"${opp.profit_potential:.2f}"
        insights.append(f"{opp.opportunity_type} [{opp.status}] profit potential {potential}")
    if not ranked:
        insights.append("No market opportunities recorded")
    return {
        "insights": insights,
        "data": {
            "status_counts": {s: counts.get(s, 0) for s in OPPORTUNITY_STATUSES},
            "top": [o.model_dump(mode="json") for o in ranked],
        },
    }


def _risk_insights(graph: LedgerGraph, now_ms: int) -> Dict[str, Any]:
    over_budget = [
        s for s in graph.services
        if s.status in LIVE_SERVICE_STATUSES and s.daily_costs > s.scaling_config.max_daily_spend
    ]
    losing = [
        s for s in graph.services if s.status in LIVE_SERVICE_STATUSES and s.daily_profit < 0
    ]
    high_risk = [
        d for d in graph.decisions
        if d.outcome == "pending" and d.impact_metrics.risk_level == "high"
    ]
    severe_blockers = [
        b for b in graph.blockers
        if b.status != "resolved" and b.severity in ("high", "critical")
    ]
    insights = []
    for service in over_budget:
        insights.append(
            f"{service.name} spends ${service.daily_costs:.2f}/day over its "
            f"${service.scaling_config.max_daily_spend:.2f} ceiling"
        )
    for service in losing:
        insights.append(f"{service.name} is losing ${-service.daily_profit:.2f}/day")
    if high_risk:
        insights.append(f"{len(high_risk)} high-risk decision(s) pending")
    if severe_blockers:
        insights.append(f"{len(severe_blockers)} high-severity blocker(s) open")
    if not insights:
        insights.append("No active risks detected")
    return {
        "insights": insights,
        "data": {
            "over_budget": [s.id for s in over_budget],
            "losing_money": [s.id for s in losing],
            "high_risk_decisions": [d.id for d in high_risk],
            "severe_blockers": [b.id for b in severe_blockers],
        },
    }


_FOCUS_HANDLERS = {
    "revenue": _revenue_insights,
    "services": _service_insights,
    "customers": _customer_insights,
    "opportunities": _opportunity_insights,
    "risks": _risk_insights,
}


def business_insights(graph: LedgerGraph, now_ms: int, focus_area: str = "revenue") -> Dict[str, Any]:
    handler = _FOCUS_HANDLERS.get(focus_area)
    if handler is None:
        raise LedgerValidationError(
            [f"focus_area: must be one of {', '.join(FOCUS_AREAS)}"]
        )
    result = handler(graph, now_ms)
    return {"focus_area": focus_area, **result}


__all__ = [
    "FOCUS_AREAS",
    "business_insights",
    "health_tier",
    "portfolio_rollup",
    "rank_opportunities",
    "revenue_analytics",
    "service_profitability",
    "service_revenue_today",
    "total_revenue_today",
    "window_transactions",
]

"""
Lifecycle Decision Engine - Threshold-driven service transitions

WHAT: Evaluates a managed service's daily profit and applies auto kill / auto scale
WHERE: ledger/runtime/state/lifecycle.py - runs inside the performance-update mutation
WHO: LedgerOperations.update_service_performance
TIME: O(1) per evaluation

Rules (first match wins, only when the service's ``auto_scale`` flag is on):
1. profit < kill_threshold and not already killed  -> killed   (auto_kill_service)
2. profit > scale_threshold and currently active   -> scaling  (auto_scale_service)
3. otherwise no transition

The lifecycle is one-way: nothing here moves ``scaling`` back to ``active``
or revives a ``killed`` service. The scale decision's revenue impact is a
placeholder heuristic (``scale_multiplier`` x profit), not a projection.

``evaluate`` mutates the graph and must run under the store lock. Audit
records are written afterwards by ``write_audit``, outside the lock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ...config import LedgerConfig
from ...logging.audit import append_record, build_record
from .entity_store import append_decision
from .models import Decision, ImpactMetrics, LedgerGraph, ManagedService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LifecycleTransition:
    """A status change applied by the engine plus the Decision it logged."""

    service_id: str
    service_name: str
    previous_status: str
    new_status: str
    daily_profit: float
    threshold: float
    decision: Decision


@dataclass(slots=True)
class LifecycleEngine:
    scale_multiplier: float = 2.0
    audit_path: Optional[Path] = None

    @staticmethod
    def from_config(config: LedgerConfig) -> "LifecycleEngine":
        return LifecycleEngine(
            scale_multiplier=config.scale_multiplier,
            audit_path=config.audit_log_path,
        )

    def evaluate(
        self,
        graph: LedgerGraph,
        service: ManagedService,
        now_ms: int,
    ) -> Optional[LifecycleTransition]:
        """Apply the first matching rule to ``service``; return the transition, if any."""

        scaling = service.scaling_config
        if not scaling.auto_scale:
            return None

        profit = service.daily_profit
        previous = service.status

        if previous != "killed" and profit < scaling.kill_threshold:
            decision = Decision(
                timestamp=now_ms,
                decision_type="auto_kill_service",
                context=(
                    f"Service {service.name} daily profit ${profit:.2f} below "
                    f"kill threshold ${scaling.kill_threshold:.2f}"
                ),
                reasoning="Automatic kill: service is losing money beyond the configured threshold",
                outcome="auto_approved",
                impact_metrics=ImpactMetrics(
                    revenue_impact=profit,
                    risk_level="low",
                    confidence_score=0.9,
                ),
                related_entity_id=service.id,
                resolved_at=now_ms,
            )
            service.status = "killed"
            threshold = scaling.kill_threshold
        elif previous == "active" and profit > scaling.scale_threshold:
            decision = Decision(
                timestamp=now_ms,
                decision_type="auto_scale_service",
                context=(
                    f"Service {service.name} daily profit ${profit:.2f} above "
                    f"scale threshold ${scaling.scale_threshold:.2f}"
                ),
                reasoning=(
                    f"Automatic scale: estimated impact uses a {self.scale_multiplier:g}x "
                    "profit multiplier"
                ),
                outcome="auto_approved",
                impact_metrics=ImpactMetrics(
                    revenue_impact=self.scale_multiplier * profit,
                    risk_level="medium",
                    confidence_score=0.7,
                ),
                related_entity_id=service.id,
                resolved_at=now_ms,
            )
            service.status = "scaling"
            threshold = scaling.scale_threshold
        else:
            return None

        service.updated_at = now_ms
        append_decision(graph, decision)
        logger.info(
            f"Lifecycle transition for {service.name} ({service.id}): "
            f"{previous} -> {service.status} at profit ${profit:.2f}"
        )
        return LifecycleTransition(
            service_id=service.id,
            service_name=service.name,
            previous_status=previous,
            new_status=service.status,
            daily_profit=profit,
            threshold=threshold,
            decision=decision,
        )

    def write_audit(self, transition: LifecycleTransition) -> None:
        if self.audit_path is None:
            return
        record = build_record(
            event=transition.decision.decision_type,
            service_id=transition.service_id,
            service_name=transition.service_name,
            previous_status=transition.previous_status,
            new_status=transition.new_status,
            daily_profit=transition.daily_profit,
            threshold=transition.threshold,
            decision_id=transition.decision.id,
            revenue_impact=transition.decision.impact_metrics.revenue_impact,
            timestamp=datetime.fromtimestamp(transition.decision.timestamp / 1000, tz=timezone.utc),
        )
        try:
            append_record(self.audit_path, record)
        except OSError as exc:
            logger.warning(f"Could not append audit record to {self.audit_path}: {exc}")


__all__ = [
    "LifecycleEngine",
    "LifecycleTransition",
]

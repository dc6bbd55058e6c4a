"""
Tool descriptions for the ledger operation surface.

These descriptions are meant for agent system prompts and MCP-style tool
listings. Parameter schemas are derived from each operation's argument
model so the listing never drifts from what the operation actually accepts.
"""

from __future__ import annotations

from typing import Any, Dict

from ..operations import OPERATION_NAMES, LedgerOperations

# Concise single-line descriptions for compact tool lists
TOOL_DESCRIPTIONS_COMPACT = {
    "save_business_state": "Save a point-in-time business snapshot with a session summary and priorities.",
    "get_current_business_state": "Show the latest snapshot, last-24h activity and top services.",
    "register_service": "Register a managed revenue service with its auto-scale and threshold settings.",
    "update_service_performance": "Report a service's revenue, costs and quality; may auto-kill or auto-scale it.",
    "set_service_status": "Manually pause, resume, scale or kill a service (killed is final).",
    "get_all_services": "List managed services by daily revenue, optionally filtered by status.",
    "get_service": "Fetch one managed service.",
    "record_transaction": "Record a payment for a service and recompute its revenue for today.",
    "ingest_payment_event": "Feed a payment succeeded/failed event from the billing integration.",
    "get_transactions": "List recent transactions filtered by service, customer or window.",
    "get_revenue_analytics": "Revenue totals, per-service breakdown and daily trend for a lookback window.",
    "get_portfolio_summary": "Portfolio profit, health tier and structural recommendations.",
    "get_business_insights": "Insights for one focus area: revenue, services, customers, opportunities or risks.",
    "log_decision": "Log a business decision with reasoning and expected impact.",
    "resolve_decision": "Resolve a pending decision as approved, denied or auto_approved.",
    "get_pending_decisions": "List decisions still awaiting an outcome, newest first.",
    "get_decisions": "Search logged decisions by type, outcome or related entity.",
    "record_market_opportunity": "Record a new revenue opportunity with its estimates.",
    "update_opportunity_status": "Advance an opportunity's status or mark it failed.",
    "get_market_opportunities": "List opportunities ranked by profit potential.",
    "onboard_customer": "Create a customer record ahead of their first transaction.",
    "update_customer": "Update a customer's email, satisfaction or churn risk.",
    "get_customers": "List customers by lifetime spend.",
    "log_conversation_turn": "Log an exchange; decisions and blockers found in it are logged automatically.",
    "auto_capture_context": "Capture decisions, blockers, technologies or a milestone from supplied context.",
    "log_technical_discovery": "Record a technical finding (existing code, needed config, ready dependency).",
    "get_technical_discoveries": "List technical discoveries, newest first.",
    "log_blocker": "Record something blocking progress, with resolution steps.",
    "update_blocker_status": "Move a blocker to investigating, resolved or escalated.",
    "resolve_blocker": "Mark a blocker resolved with a summary.",
    "get_blockers": "List blockers, optionally only unresolved ones.",
    "log_progress_milestone": "Record a progress milestone with completion and next steps.",
    "get_progress_milestones": "List progress milestones, newest first.",
    "get_full_session_context": "Restore the recent conversation, discoveries, blockers and milestones.",
    "set_auto_save": "Enable or disable the background flush of the ledger image.",
}

PARAMETER_NOTES = {
    "timeframe_days": "Lookback window in days.",
    "auto_scale": "Let the ledger kill or scale the service automatically.",
    "max_daily_spend": "Daily spend ceiling for the service.",
    "kill_threshold": "Daily profit below which the service is killed automatically.",
    "scale_threshold": "Daily profit above which an active service starts scaling.",
    "session_summary": "Free-text note describing the current state of the business.",
    "confidence_score": "Confidence in the decision, between 0 and 1.",
    "importance_score": "Override the computed importance, between 0 and 1.",
    "max_conversation_turns": "How many recent turns of the current session to include.",
    "context_data": "Conversation turn or milestone fields to capture from.",
    "currency": "Three-letter currency code.",
}

_JSON_TYPES = {"string", "number", "integer", "boolean", "array", "object"}


def _parameter_spec(name: str, schema: Dict[str, Any], required: bool) -> Dict[str, Any]:
    options = schema.get("anyOf", [schema])
    concrete = [opt for opt in options if opt.get("type") != "null"] or options
    first = concrete[0]

    spec: Dict[str, Any] = {}
    json_type = first.get("type")
    if json_type in _JSON_TYPES:
        spec["type"] = json_type
    elif "$ref" in first:
        spec["type"] = "object"
    else:
        spec["type"] = "string"
    if "enum" in first:
        spec["enum"] = list(first["enum"])

    note = PARAMETER_NOTES.get(name, "")
    if "default" in schema and schema["default"] not in (None, [], {}):
        note = f"{note} (default: {schema['default']})".strip()
    if note:
        spec["description"] = note
    spec["required"] = required
    return spec


def build_tool_descriptions() -> Dict[str, Dict[str, Any]]:
    descriptions: Dict[str, Dict[str, Any]] = {}
    for name in OPERATION_NAMES:
        model = getattr(LedgerOperations, name).args_model
        schema = model.model_json_schema()
        required = set(schema.get("required", []))
        descriptions[name] = {
            "name": name,
            "description": TOOL_DESCRIPTIONS_COMPACT[name],
            "parameters": {
                field: _parameter_spec(field, prop, field in required)
                for field, prop in schema.get("properties", {}).items()
            },
        }
    return descriptions


TOOL_DESCRIPTIONS = build_tool_descriptions()


# Guidelines for when to use ledger operations (for system prompt)
USAGE_GUIDELINES = """
Ledger Operation Guidelines:

AT SESSION START:
1. get_full_session_context to restore recent conversation and open blockers
2. get_current_business_state for the latest snapshot and activity
3. get_pending_decisions before committing to new work

WHILE WORKING:
- Report service numbers with update_service_performance; read its side effects,
  an automatic kill or scale is logged as a decision there
- Record every payment with record_transaction (or ingest_payment_event)
- Log conversation turns; decisions and blockers in the text are captured for you

BEFORE ENDING:
- save_business_state with a summary and the next priorities
- Resolve blockers and decisions that were settled during the session
"""


__all__ = [
    "TOOL_DESCRIPTIONS",
    "TOOL_DESCRIPTIONS_COMPACT",
    "USAGE_GUIDELINES",
    "build_tool_descriptions",
]

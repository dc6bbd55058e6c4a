"""
Runtime Module

WHAT: Runtime subsystem for the revenue ledger (entity store, durability, engines)
WHERE: ledger/runtime/ - execution layer between callers and the state file
WHO: Stateless reasoning agents that need durable business memory between calls
TIME: Foreground operations are in-memory; disk writes happen on a background timer

Provides the execution layer for the business-state ledger: the in-memory
entity graph, its periodic persistence, the lifecycle decision engine, read-side
analytics, interaction extraction and session-handoff context assembly.

Collections:
- business_states, services, transactions, decisions, market_opportunities
- customers, conversation_turns, technical_discoveries, blockers
- progress_milestones, session_metadata
"""

__all__ = ["state"]

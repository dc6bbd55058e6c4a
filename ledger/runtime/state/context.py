"""
Context Assembler - Bounded session handoff snapshot

WHAT: Read-time projection of recent conversation, discoveries, blockers and milestones
WHERE: ledger/runtime/state/context.py - pure read path, never persisted
WHO: LedgerOperations.get_full_session_context (new sessions restoring context)
TIME: O(collection sizes)

Sections that are requested but empty stay in the snapshot as empty lists
and keep their header in the rendered text. Sections that are switched off
are ``None`` and are left out of the rendering.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .clock import format_ms
from .errors import LedgerValidationError
from .models import (
    Blocker,
    InteractionRecord,
    LedgerGraph,
    ProgressMilestone,
    SessionMetadata,
    TechnicalDiscovery,
)

PREVIEW_CHARS = 100


@dataclass(slots=True)
class ContextSnapshot:
    session: SessionMetadata
    interactions: Optional[List[InteractionRecord]]
    discoveries: Optional[List[TechnicalDiscovery]]
    blockers: Optional[List[Blocker]]
    milestones: List[ProgressMilestone]

    def to_dict(self) -> Dict[str, Any]:
        def dump(items: Optional[List[Any]]) -> Optional[List[Dict[str, Any]]]:
            if items is None:
                return None
            return [item.model_dump(mode="json") for item in items]

        return {
            "session": self.session.model_dump(mode="json"),
            "interactions": dump(self.interactions),
            "discoveries": dump(self.discoveries),
            "blockers": dump(self.blockers),
            "milestones": dump(self.milestones),
        }


def _newest(items: List[Any], limit: int) -> List[Any]:
    return sorted(items, key=lambda item: item.timestamp, reverse=True)[:limit]


def assemble_context(
    graph: LedgerGraph,
    max_turns: int = 50,
    *,
    include_conversation: bool = True,
    include_discoveries: bool = True,
    include_blockers: bool = True,
    discovery_limit: int = 10,
    milestone_limit: int = 5,
) -> ContextSnapshot:
    """Copy the bounded recent view out of ``graph`` (call under the store lock)."""

    if max_turns < 0:
        raise LedgerValidationError(["max_turns: must be 0 or greater"])

    session = graph.session_metadata.model_copy(deep=True)

    interactions = None
    if include_conversation:
        current = [
            turn for turn in graph.conversation_turns
            if turn.session_id == session.current_session_id
        ]
        window = _newest(current, max_turns)
        interactions = [turn.model_copy(deep=True) for turn in reversed(window)]

    discoveries = None
    if include_discoveries:
        discoveries = [
            d.model_copy(deep=True) for d in _newest(graph.technical_discoveries, discovery_limit)
        ]

    blockers = None
    if include_blockers:
        open_blockers = [b for b in graph.blockers if b.status != "resolved"]
        blockers = [b.model_copy(deep=True) for b in _newest(open_blockers, len(open_blockers))]

    milestones = [
        m.model_copy(deep=True) for m in _newest(graph.progress_milestones, milestone_limit)
    ]

    return ContextSnapshot(
        session=session,
        interactions=interactions,
        discoveries=discoveries,
        blockers=blockers,
        milestones=milestones,
    )


def _preview(text: str) -> str:
    if len(text) <= PREVIEW_CHARS:
        return text
    return text[:PREVIEW_CHARS] + "..."


def render_context(snapshot: ContextSnapshot) -> str:
    session = snapshot.session
    lines = [
        "SESSION CONTEXT",
        f"Session ID: {session.current_session_id}",
        f"Started: {format_ms(session.session_start)}",
        f"Last activity: {format_ms(session.last_activity)}",
        f"Auto-save: {'enabled' if session.auto_save_enabled else 'disabled'}",
    ]
    if session.previous_session_id:
        lines.append(f"Previous session: {session.previous_session_id}")

    if snapshot.interactions is not None:
        lines.append("")
        lines.append(f"RECENT CONVERSATION ({len(snapshot.interactions)} turns)")
        if not snapshot.interactions:
            lines.append("(none)")
        for i, turn in enumerate(snapshot.interactions, start=1):
            lines.append(f"{i}. [{turn.context_type}] User: {_preview(turn.user_input)}")
            lines.append(f"   AI: {_preview(turn.ai_response)}")
            decisions = turn.extracted_entities.decisions_made
            if decisions:
                lines.append(f"   Decisions: {', '.join(decisions)}")

    if snapshot.discoveries is not None:
        lines.append("")
        lines.append(f"TECHNICAL DISCOVERIES ({len(snapshot.discoveries)})")
        if not snapshot.discoveries:
            lines.append("(none)")
        for i, discovery in enumerate(snapshot.discoveries, start=1):
            lines.append(f"{i}. [{discovery.impact_level}] {discovery.title}")
            lines.append(f"   {discovery.description}")
            if discovery.file_path:
                lines.append(f"   File: {discovery.file_path}")

    if snapshot.blockers is not None:
        lines.append("")
        lines.append(f"ACTIVE BLOCKERS ({len(snapshot.blockers)})")
        if not snapshot.blockers:
            lines.append("(none)")
        for i, blocker in enumerate(snapshot.blockers, start=1):
            lines.append(f"{i}. [{blocker.severity}/{blocker.status}] {blocker.title}")
            lines.append(f"   {blocker.description}")
            for step in blocker.resolution_steps:
                lines.append(f"   - {step}")

    lines.append("")
    lines.append(f"PROGRESS MILESTONES ({len(snapshot.milestones)})")
    if not snapshot.milestones:
        lines.append("(none)")
    for i, milestone in enumerate(snapshot.milestones, start=1):
        lines.append(
            f"{i}. [{milestone.milestone_type}] {milestone.title} "
            f"({milestone.completion_percentage:g}%)"
        )
        if milestone.next_steps:
            lines.append(f"   Next: {', '.join(milestone.next_steps)}")

    return "\n".join(lines)


__all__ = [
    "ContextSnapshot",
    "assemble_context",
    "render_context",
]

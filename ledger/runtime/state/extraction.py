"""
Interaction Extractor - Keyword heuristics over conversation pairs

WHAT: Classifies an (input, response) pair and pulls keyword hit-lists plus an importance score
WHERE: ledger/runtime/state/extraction.py - pure function, no storage access
WHO: LedgerOperations.log_conversation_turn / auto_capture_context
TIME: O(text length x vocabulary size)

Matching is case-insensitive substring search against small fixed
vocabularies, so "decided" also satisfies the decision family's "decide".
This is an indexing aid, not language understanding.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from .models import ExtractedEntities

# Evaluated in order; first family with any hit wins.
CONTEXT_FAMILIES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("planning", ("plan", "strategy", "roadmap")),
    ("implementation", ("build", "implement", "deploy")),
    ("debugging", ("error", "debug", "fix")),
    ("decision", ("decide", "choose", "approve")),
)
DEFAULT_CONTEXT = "analysis"

TASK_TERMS = ("implement", "build", "create", "deploy", "setup", "configure", "test", "fix")
TECHNOLOGY_TERMS = (
    "stripe",
    "mcp",
    "server",
    "api",
    "webhook",
    "payment",
    "revbot",
    "nodejs",
    "typescript",
    "python",
)
DECISION_TERMS = ("decided", "choose", "selected", "approved", "skip", "use", "go with")
BLOCKER_TERMS = ("error", "failed", "blocked", "issue", "problem", "cannot", "unable", "stuck")

BASE_IMPORTANCE = 0.3
IMPORTANCE_BOOSTS: Tuple[Tuple[float, Tuple[str, ...]], ...] = (
    (0.3, ("critical", "urgent")),
    (0.2, ("revenue", "payment", "money")),
    (0.2, ("decision", "approve")),
    (0.2, ("blocker", "error", "problem")),
    (0.1, ("complete", "finished", "done")),
)


@dataclass(slots=True)
class InteractionInsights:
    context_type: str
    entities: ExtractedEntities
    importance_score: float


def _combined(user_input: str, ai_response: str) -> str:
    return f"{user_input} {ai_response}".lower()


def match_terms(text: str, vocabulary: Sequence[str]) -> List[str]:
    """Vocabulary terms present in ``text`` (already lower-cased), in vocabulary order."""

    return [term for term in vocabulary if term in text]


def _any(text: str, terms: Iterable[str]) -> bool:
    return any(term in text for term in terms)


def infer_context_type(user_input: str, ai_response: str) -> str:
    text = _combined(user_input, ai_response)
    for category, terms in CONTEXT_FAMILIES:
        if _any(text, terms):
            return category
    return DEFAULT_CONTEXT


def extract_entities(user_input: str, ai_response: str) -> ExtractedEntities:
    text = _combined(user_input, ai_response)
    return ExtractedEntities(
        tasks_mentioned=match_terms(text, TASK_TERMS),
        technologies_discussed=match_terms(text, TECHNOLOGY_TERMS),
        decisions_made=match_terms(text, DECISION_TERMS),
        blockers_identified=match_terms(text, BLOCKER_TERMS),
    )


def importance_score(user_input: str, ai_response: str) -> float:
    text = _combined(user_input, ai_response)
    score = BASE_IMPORTANCE
    for boost, terms in IMPORTANCE_BOOSTS:
        if _any(text, terms):
            score += boost
    return round(min(score, 1.0), 2)


def extract_interaction(user_input: str, ai_response: str) -> InteractionInsights:
    """Category, four keyword hit-lists and importance for one exchange."""

    return InteractionInsights(
        context_type=infer_context_type(user_input, ai_response),
        entities=extract_entities(user_input, ai_response),
        importance_score=importance_score(user_input, ai_response),
    )


__all__ = [
    "BLOCKER_TERMS",
    "CONTEXT_FAMILIES",
    "DECISION_TERMS",
    "InteractionInsights",
    "TASK_TERMS",
    "TECHNOLOGY_TERMS",
    "extract_entities",
    "extract_interaction",
    "importance_score",
    "infer_context_type",
    "match_terms",
]

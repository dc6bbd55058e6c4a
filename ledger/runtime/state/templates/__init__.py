"""Prompt-facing templates for the ledger operation surface."""

from .tool_descriptions import (  # noqa: F401
    TOOL_DESCRIPTIONS,
    TOOL_DESCRIPTIONS_COMPACT,
    USAGE_GUIDELINES,
    build_tool_descriptions,
)

__all__ = [
    "TOOL_DESCRIPTIONS",
    "TOOL_DESCRIPTIONS_COMPACT",
    "USAGE_GUIDELINES",
    "build_tool_descriptions",
]

"""Logging utilities for the ledger.

Application logging goes through the standard library ``logging`` module
(one module-level logger per file). This package only holds the structured
JSONL audit trail for automatic lifecycle transitions.
"""

from __future__ import annotations

from .audit import (  # noqa: F401
    AUDIT_EVENTS,
    append_record,
    build_record,
    read_records,
)

__all__ = [
    "AUDIT_EVENTS",
    "append_record",
    "build_record",
    "read_records",
]

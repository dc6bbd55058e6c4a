"""Structured audit records for automatic ledger transitions.

Each lifecycle transition (auto kill, auto scale) is described by one flat
JSON record. Records can be appended to a JSONL file so transitions remain
reviewable outside the persisted ledger image.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping

AUDIT_EVENTS = ("auto_kill_service", "auto_scale_service")


def build_record(
    *,
    event: str,
    service_id: str,
    service_name: str,
    previous_status: str,
    new_status: str,
    daily_profit: float,
    threshold: float,
    decision_id: str,
    revenue_impact: float,
    notes: str = "",
    timestamp: datetime | None = None,
) -> Dict[str, Any]:
    """Construct a structured transition record."""

    if event not in AUDIT_EVENTS:
        raise ValueError(f"Unsupported audit event '{event}'")

    return {
        "event": event,
        "timestamp": (timestamp or datetime.now(timezone.utc)).isoformat(),
        "service_id": service_id,
        "service_name": service_name,
        "previous_status": previous_status,
        "new_status": new_status,
        "daily_profit": float(daily_profit),
        "threshold": float(threshold),
        "decision_id": decision_id,
        "revenue_impact": float(revenue_impact),
        "notes": notes,
    }


def append_record(output_path: Path, record: Mapping[str, Any]) -> None:
    """Append a record to a JSONL file."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("a", encoding="utf-8") as fh:
        json.dump(record, fh, ensure_ascii=False)
        fh.write("\n")


def read_records(path: Path) -> list[Dict[str, Any]]:
    """Load every record from a JSONL audit file (missing file -> empty list)."""

    if not path.exists():
        return []
    records = []
    with path.open("r", encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if line:
                records.append(json.loads(line))
    return records


__all__ = [
    "AUDIT_EVENTS",
    "append_record",
    "build_record",
    "read_records",
]

"""
Ledger Settings - Environment-driven runtime configuration

WHAT: Default thresholds, flush policy and file locations for the ledger
WHERE: ledger/config/settings.py - read once at session start
WHO: LedgerSession, DurabilityManager, LifecycleEngine and service registration
TIME: Parsed once per process

Thresholds here are defaults only. Every managed service carries its own
scaling configuration, seeded from these values at registration and
overridable per service.

Environment:
- LEDGER_STATE_PATH, LEDGER_AUDIT_LOG
- LEDGER_FLUSH_INTERVAL_S, LEDGER_IDLE_THRESHOLD_S, LEDGER_AUTO_SAVE
- LEDGER_KILL_THRESHOLD, LEDGER_SCALE_THRESHOLD, LEDGER_MAX_DAILY_SPEND,
  LEDGER_SCALE_MULTIPLIER
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_STATE_PATH = os.path.join("data", "ledger-state.json")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be numeric, got {raw!r}") from exc


def env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean flag, got {raw!r}")


@dataclass(slots=True)
class LedgerConfig:
    """Process-wide defaults for the ledger runtime."""

    state_path: Path = Path(DEFAULT_STATE_PATH)
    audit_log_path: Optional[Path] = None
    flush_interval_s: float = 10.0
    idle_threshold_s: float = 30.0
    auto_save: bool = True
    kill_threshold: float = -10.0
    scale_threshold: float = 50.0
    max_daily_spend: float = 100.0
    scale_multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.flush_interval_s <= 0:
            raise ValueError("flush_interval_s must be positive")
        if self.idle_threshold_s < 0:
            raise ValueError("idle_threshold_s must not be negative")
        if self.max_daily_spend < 0:
            raise ValueError("max_daily_spend must not be negative")

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> "LedgerConfig":
        source = os.environ if env is None else env
        audit = source.get("LEDGER_AUDIT_LOG", "").strip()
        return LedgerConfig(
            state_path=Path(source.get("LEDGER_STATE_PATH", "").strip() or DEFAULT_STATE_PATH),
            audit_log_path=Path(audit) if audit else None,
            flush_interval_s=env_float(source, "LEDGER_FLUSH_INTERVAL_S", 10.0),
            idle_threshold_s=env_float(source, "LEDGER_IDLE_THRESHOLD_S", 30.0),
            auto_save=env_bool(source, "LEDGER_AUTO_SAVE", True),
            kill_threshold=env_float(source, "LEDGER_KILL_THRESHOLD", -10.0),
            scale_threshold=env_float(source, "LEDGER_SCALE_THRESHOLD", 50.0),
            max_daily_spend=env_float(source, "LEDGER_MAX_DAILY_SPEND", 100.0),
            scale_multiplier=env_float(source, "LEDGER_SCALE_MULTIPLIER", 2.0),
        )


__all__ = [
    "DEFAULT_STATE_PATH",
    "LedgerConfig",
    "env_bool",
    "env_float",
]

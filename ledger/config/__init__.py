"""Configuration for the ledger runtime."""

from .settings import LedgerConfig, env_bool, env_float  # noqa: F401

__all__ = [
    "LedgerConfig",
    "env_bool",
    "env_float",
]

"""Revenue ledger runtime core package."""

__all__ = [
    "config",
    "logging",
    "runtime",
]

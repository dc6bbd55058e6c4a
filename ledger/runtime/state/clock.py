"""
Ledger Clock - Millisecond timestamps and local-day windows

WHAT: Strictly increasing epoch-millisecond clock plus calendar helpers
WHERE: ledger/runtime/state/clock.py - shared by store, engines and analytics
WHO: Every write path stamping records; analytics filtering by window
TIME: O(1)

Timestamps double as event order, so two records created in the same
millisecond still receive distinct, ordered stamps.
"""

from __future__ import annotations

import threading
import time
from datetime import date, datetime, timedelta
from typing import Callable, Optional

MS_PER_DAY = 24 * 60 * 60 * 1000


class MonotonicClock:
    """Wall-clock milliseconds that never repeat or go backwards."""

    def __init__(self, source: Optional[Callable[[], float]] = None) -> None:
        self._source = source or time.time
        self._last = 0
        self._lock = threading.Lock()

    def now_ms(self) -> int:
        with self._lock:
            current = int(self._source() * 1000)
            if current <= self._last:
                current = self._last + 1
            self._last = current
            return current


def local_day_bounds(now_ms: int) -> tuple[int, int]:
    """Return [start, end) epoch milliseconds of the local calendar day containing now_ms."""

    # Midnight resolved per date so DST days run 23h or 25h.
    day = local_date(now_ms)
    start = datetime.combine(day, datetime.min.time()).astimezone()
    end = datetime.combine(day + timedelta(days=1), datetime.min.time()).astimezone()
    return int(start.timestamp() * 1000), int(end.timestamp() * 1000)


def local_date(ts_ms: int) -> date:
    return datetime.fromtimestamp(ts_ms / 1000).astimezone().date()


def window_start(now_ms: int, days: float) -> int:
    return now_ms - int(days * MS_PER_DAY)


def format_ms(ts_ms: int) -> str:
    return datetime.fromtimestamp(ts_ms / 1000).astimezone().strftime("%Y-%m-%d %H:%M:%S")


__all__ = [
    "MS_PER_DAY",
    "MonotonicClock",
    "format_ms",
    "local_date",
    "local_day_bounds",
    "window_start",
]

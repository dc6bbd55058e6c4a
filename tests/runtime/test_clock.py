import os
import time

import pytest

from ledger.runtime.state.analytics import service_revenue_today
from ledger.runtime.state.clock import local_day_bounds
from ledger.runtime.state.models import LedgerGraph, ManagedService, Transaction

# 2024-03-10 is the US spring-forward day: 00:00 EST to 00:00 EDT is 23 hours.
NOON_DST_DAY = 1_710_086_400_000
MIDNIGHT_DST_DAY = 1_710_046_800_000
MIDNIGHT_NEXT_DAY = 1_710_129_600_000


@pytest.fixture
def new_york_tz():
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset unavailable on this platform")
    previous = os.environ.get("TZ")
    os.environ["TZ"] = "America/New_York"
    time.tzset()
    yield
    if previous is None:
        os.environ.pop("TZ", None)
    else:
        os.environ["TZ"] = previous
    time.tzset()


def test_day_bounds_follow_zone_rules_on_dst_change(new_york_tz):
    start, end = local_day_bounds(NOON_DST_DAY)

    assert start == MIDNIGHT_DST_DAY
    assert end == MIDNIGHT_NEXT_DAY
    assert end - start == 23 * 60 * 60 * 1000


def test_late_evening_of_previous_day_is_not_today(new_york_tz):
    graph = LedgerGraph.empty(NOON_DST_DAY)
    service = ManagedService(name="qr", type="api", created_at=NOON_DST_DAY, updated_at=NOON_DST_DAY)
    graph.services.append(service)
    # 23:30 EST on 2024-03-09
    graph.transactions.append(
        Transaction(service_id=service.id, amount=7.0, timestamp=MIDNIGHT_DST_DAY - 30 * 60 * 1000)
    )
    graph.transactions.append(Transaction(service_id=service.id, amount=2.0, timestamp=NOON_DST_DAY))

    assert service_revenue_today(graph, service.id, NOON_DST_DAY) == 2.0

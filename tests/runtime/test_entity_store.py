import pytest

from ledger.runtime.state.clock import MonotonicClock
from ledger.runtime.state.entity_store import EntityStore
from ledger.runtime.state.errors import LedgerValidationError
from ledger.runtime.state.models import LedgerGraph, ManagedService


class FakeTime:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_store():
    wall = FakeTime()
    mono = FakeTime(100.0)
    clock = MonotonicClock(source=wall)
    store = EntityStore(LedgerGraph.empty(clock.now_ms()), clock, monotonic=mono)
    return store, wall, mono


def add_service(graph):
    service = ManagedService(name="qr", type="api", created_at=1, updated_at=1)
    graph.services.append(service)
    return service.id


def test_clock_never_repeats_or_goes_backwards():
    wall = FakeTime()
    clock = MonotonicClock(source=wall)
    first = clock.now_ms()
    second = clock.now_ms()
    wall.advance(-5)
    third = clock.now_ms()

    assert first < second < third


def test_mutate_marks_dirty_and_touches_last_activity():
    store, wall, mono = make_store()
    before = store.read(lambda g: g.session_metadata.last_activity)
    assert not store.dirty

    wall.advance(1)
    store.mutate(add_service)

    assert store.dirty
    assert store.version == 1
    assert store.dirty_since == 100.0
    assert store.read(lambda g: g.session_metadata.last_activity) > before


def test_read_does_not_mark_dirty():
    store, _, _ = make_store()
    count = store.read(lambda g: len(g.services))

    assert count == 0
    assert not store.dirty


def test_failed_mutation_leaves_version_untouched():
    store, _, _ = make_store()

    def reject(graph):
        raise LedgerValidationError(["name: required"])

    with pytest.raises(LedgerValidationError):
        store.mutate(reject)

    assert store.version == 0
    assert not store.dirty


def test_snapshot_is_a_detached_copy():
    store, _, _ = make_store()
    store.mutate(add_service)
    version, payload = store.snapshot()

    store.mutate(add_service)

    assert version == 1
    assert len(payload["services"]) == 1
    assert store.read(lambda g: len(g.services)) == 2


def test_mark_clean_ignores_stale_snapshots():
    store, _, mono = make_store()
    store.mutate(add_service)
    version, _ = store.snapshot()
    mono.advance(5)
    store.mutate(add_service)

    assert store.mark_clean(version) is False
    assert store.dirty

    latest, _ = store.snapshot()
    assert store.mark_clean(latest) is True
    assert not store.dirty
    assert store.dirty_since is None

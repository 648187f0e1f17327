"""Global pytest configuration and fixtures."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from cronlock.distributed.lock import MemoryLocker, MemoryLockStore
from cronlock.jobs.engine import TriggerEngine


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _tick(engine: TriggerEngine) -> int:
    earliest = min(entry.next_run for entry in engine.entries())
    return engine.fire_due(earliest)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryLockStore:
    """Lock store shared by simulated instances."""
    return MemoryLockStore(clock=clock)


@pytest.fixture
def locker(store: MemoryLockStore) -> MemoryLocker:
    return MemoryLocker(store, instance_id="instance-a")


@pytest.fixture
def other_locker(store: MemoryLockStore) -> MemoryLocker:
    return MemoryLocker(store, instance_id="instance-b")


@pytest.fixture
def engine_clock() -> datetime:
    return datetime(2024, 1, 1, tzinfo=UTC)


@pytest.fixture
def engine_factory(engine_clock: datetime):
    """Build trigger engines evaluated against a fixed reference time."""

    def factory() -> TriggerEngine:
        return TriggerEngine(tz=UTC, clock=lambda: engine_clock)

    return factory


@pytest.fixture
def tick():
    """Fire an engine's earliest registration as if its time had come."""
    return _tick

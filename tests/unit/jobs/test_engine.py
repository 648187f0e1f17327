"""Tests for the trigger engine."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from cronlock.errors import InvalidScheduleSpec
from cronlock.jobs.engine import TriggerEngine

START = datetime(2024, 1, 1, 0, 0, tzinfo=UTC)


@pytest.fixture
def engine() -> TriggerEngine:
    return TriggerEngine(tz=UTC, clock=lambda: START)


class TestRegistration:
    """Tests for register_periodic."""

    def test_computes_first_occurrence(self, engine: TriggerEngine) -> None:
        entry = engine.register_periodic("*/5 * * * *", lambda: None)

        assert entry.next_run == datetime(2024, 1, 1, 0, 5, tzinfo=UTC)
        assert entry.prev_run is None
        assert engine.entries() == [entry]

    def test_rejects_bad_spec(self, engine: TriggerEngine) -> None:
        """Bad spec raises and registers nothing."""
        with pytest.raises(InvalidScheduleSpec):
            engine.register_periodic("every tuesday", lambda: None)

        assert engine.entries() == []

    def test_timezone_by_name(self) -> None:
        engine = TriggerEngine(tz="Europe/Berlin")

        assert str(engine.tz) == "Europe/Berlin"


class TestFireDue:
    """Tests for fire_due."""

    def test_fires_only_due_entries(self, engine: TriggerEngine) -> None:
        fired: list[str] = []
        engine.register_periodic("*/5 * * * *", lambda: fired.append("five"))
        engine.register_periodic("0 * * * *", lambda: fired.append("hourly"))

        count = engine.fire_due(datetime(2024, 1, 1, 0, 5, tzinfo=UTC))

        assert count == 1
        assert fired == ["five"]

    def test_fires_in_due_order(self, engine: TriggerEngine) -> None:
        fired: list[str] = []
        engine.register_periodic("0 * * * *", lambda: fired.append("hourly"))
        engine.register_periodic("*/5 * * * *", lambda: fired.append("five"))

        engine.fire_due(datetime(2024, 1, 1, 1, 0, tzinfo=UTC))

        assert fired == ["five", "hourly"]

    def test_missed_occurrences_are_coalesced(self, engine: TriggerEngine) -> None:
        """A late firing runs once and resumes from the current time."""
        fired: list[int] = []
        entry = engine.register_periodic("*/5 * * * *", lambda: fired.append(1))
        late = datetime(2024, 1, 1, 0, 27, tzinfo=UTC)

        engine.fire_due(late)

        assert fired == [1]
        assert entry.prev_run == datetime(2024, 1, 1, 0, 5, tzinfo=UTC)
        assert entry.next_run == datetime(2024, 1, 1, 0, 30, tzinfo=UTC)

    def test_callback_error_does_not_stop_others(self, engine: TriggerEngine) -> None:
        fired: list[str] = []

        def broken() -> None:
            raise RuntimeError("boom")

        engine.register_periodic("*/5 * * * *", broken)
        engine.register_periodic("*/5 * * * *", lambda: fired.append("ok"))

        assert engine.fire_due(datetime(2024, 1, 1, 0, 5, tzinfo=UTC)) == 2
        assert fired == ["ok"]
        assert all(e.next_run == datetime(2024, 1, 1, 0, 10, tzinfo=UTC) for e in engine.entries())


class TestTimerLoop:
    """Tests for the running engine."""

    @pytest.mark.asyncio
    async def test_fires_on_schedule(self) -> None:
        engine = TriggerEngine(tz=UTC)
        fired = asyncio.Event()
        engine.register_periodic("@every 50ms", fired.set)

        engine.start()
        try:
            await asyncio.wait_for(fired.wait(), timeout=2.0)
        finally:
            engine.stop()

        assert engine.running is False

    @pytest.mark.asyncio
    async def test_stop_halts_firings(self) -> None:
        engine = TriggerEngine(tz=UTC)
        fired: list[int] = []
        engine.register_periodic("@every 20ms", lambda: fired.append(1))

        engine.start()
        await asyncio.sleep(0.1)
        engine.stop()
        count = len(fired)
        await asyncio.sleep(0.1)

        assert count > 0
        assert len(fired) == count

    @pytest.mark.asyncio
    async def test_registration_wakes_running_engine(self) -> None:
        """Entries added after start are picked up."""
        engine = TriggerEngine(tz=UTC)
        engine.register_periodic("0 0 1 1 *", lambda: None)
        engine.start()
        fired = asyncio.Event()

        try:
            engine.register_periodic("@every 30ms", fired.set)
            await asyncio.wait_for(fired.wait(), timeout=2.0)
        finally:
            engine.stop()

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self) -> None:
        engine = TriggerEngine(tz=UTC)
        engine.register_periodic("0 0 1 1 *", lambda: None)

        engine.start()
        task = engine._task
        engine.start()

        assert engine._task is task
        engine.stop()


def test_interval_next_run_uses_reference(engine: TriggerEngine) -> None:
    entry = engine.register_periodic("@every 90s", lambda: None)

    assert entry.next_run == START + timedelta(seconds=90)

"""Trigger engine driving periodic schedules.

A single timer task sleeps until the earliest due registration, then fires
every due callback sequentially. Callbacks are expected to return quickly
(a schedule's callback only spawns a run task), so a slow handler or lock
backend never delays the next tick.

Missed occurrences are coalesced: after a firing, the next occurrence is
computed from the current time rather than from the previous occurrence.

Example:
    engine = TriggerEngine()
    engine.register_periodic("*/5 * * * *", lambda: print("tick"))
    engine.start()
    ...
    engine.stop()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, tzinfo
from itertools import count
from typing import Callable
from zoneinfo import ZoneInfo

from cronlock.config import settings
from cronlock.jobs.cron import TriggerSpec, parse_schedule

logger = logging.getLogger(__name__)

TriggerCallback = Callable[[], None]

_entry_ids = count(1)


@dataclass
class EngineEntry:
    """A registered callback and its schedule state."""

    id: int
    spec: str
    trigger: TriggerSpec
    callback: TriggerCallback
    next_run: datetime
    prev_run: datetime | None = None


class TriggerEngine:
    """Fires registered callbacks according to their schedule specs.

    Args:
        tz: Timezone used to evaluate cron fields (name or tzinfo,
            defaults to settings.timezone)
        clock: Returns the current time; replaceable in tests
    """

    def __init__(
        self,
        tz: tzinfo | str | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if tz is None:
            tz = settings.timezone
        self.tz: tzinfo = ZoneInfo(tz) if isinstance(tz, str) else tz
        self._clock = clock
        self._entries: list[EngineEntry] = []
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._wakeup = asyncio.Event()

    @property
    def running(self) -> bool:
        """Check if the timer task is active."""
        return self._running

    def _now(self) -> datetime:
        if self._clock is not None:
            return self._clock()
        return datetime.now(self.tz)

    def register_periodic(self, spec: str, callback: TriggerCallback) -> EngineEntry:
        """Register a callback against a schedule spec.

        Raises:
            InvalidScheduleSpec: If the spec is empty or malformed
        """
        trigger = parse_schedule(spec)
        entry = EngineEntry(
            id=next(_entry_ids),
            spec=spec,
            trigger=trigger,
            callback=callback,
            next_run=trigger.next_run(self._now()),
        )
        self._entries.append(entry)
        self._wakeup.set()

        logger.debug(f"Registered trigger {entry.id} ({spec}), next run: {entry.next_run}")
        return entry

    def entries(self) -> list[EngineEntry]:
        """List registered entries."""
        return list(self._entries)

    def start(self) -> None:
        """Start the timer task on the running event loop."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.get_running_loop().create_task(self._timer_loop())
        logger.debug(f"Trigger engine started with {len(self._entries)} registration(s)")

    def stop(self) -> None:
        """Halt all future firings.

        Callbacks that already fired (and the runs they spawned) are not
        touched.
        """
        self._running = False
        if self._task is not None:
            self._task.cancel()
            self._task = None
        logger.debug("Trigger engine stopped")

    def _seconds_until_next(self) -> float | None:
        if not self._entries:
            return None
        earliest = min(entry.next_run for entry in self._entries)
        return max(0.0, (earliest - self._now()).total_seconds())

    async def _timer_loop(self) -> None:
        """Main timer loop."""
        while self._running:
            delay = self._seconds_until_next()
            self._wakeup.clear()
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

            if self._running:
                self.fire_due()

    def fire_due(self, now: datetime | None = None) -> int:
        """Fire every registration whose next occurrence is due.

        Args:
            now: Reference time (defaults to the engine clock)

        Returns:
            Number of callbacks fired
        """
        now = now or self._now()
        due = sorted(
            (entry for entry in self._entries if entry.next_run <= now),
            key=lambda entry: entry.next_run,
        )

        for entry in due:
            entry.prev_run = entry.next_run
            entry.next_run = entry.trigger.next_run(now)
            try:
                entry.callback()
            except Exception:
                logger.exception(f"Trigger callback {entry.id} ({entry.spec}) raised")

        return len(due)

"""Application-level scheduler.

Holds every schedule of an application and serves them together. Each
schedule keeps its own lock key, so schedules never contend with each other.

Example:
    scheduler = Scheduler(locker=RedisLocker())
    scheduler.add_schedule(
        "cleanup",
        ScheduleConfig(mode=Mode.PERIODIC, spec="0 2 * * *", compete=True),
        periodic_handler=cleanup,
    )

    await scheduler.run()  # Blocks until SIGINT/SIGTERM
"""

from __future__ import annotations

import asyncio
import logging
import signal
from types import TracebackType

from cronlock.distributed.lock import Locker
from cronlock.errors import ScheduleConfigError
from cronlock.jobs.models import ScheduleConfig
from cronlock.jobs.options import create_schedule
from cronlock.jobs.schedule import EngineFactory, Handler, Schedule

logger = logging.getLogger(__name__)


class Scheduler:
    """Serves a set of schedules sharing one lock backend.

    Args:
        locker: Lock backend injected into schedules built by ``add_schedule``
        app_name: Default lock prefix for those schedules
        engine_factory: Trigger engine factory for those schedules
    """

    def __init__(
        self,
        locker: Locker | None = None,
        app_name: str | None = None,
        engine_factory: EngineFactory | None = None,
    ) -> None:
        self.locker = locker
        self.app_name = app_name
        self.engine_factory = engine_factory
        self._schedules: dict[str, Schedule] = {}
        self._running = False
        self._shutdown_event = asyncio.Event()

    @classmethod
    def from_configs(
        cls,
        configs: dict[str, ScheduleConfig],
        *,
        locker: Locker | None = None,
        app_name: str | None = None,
    ) -> Scheduler:
        """Build a scheduler from loaded configurations.

        Handlers are resolved from the import paths in each configuration.
        """
        scheduler = cls(locker=locker, app_name=app_name)
        for name, config in configs.items():
            scheduler.add_schedule(name, config)
        return scheduler

    @property
    def running(self) -> bool:
        return self._running

    def add(self, schedule: Schedule) -> Schedule:
        """Add a schedule.

        Raises:
            ScheduleConfigError: If the schedule is invalid or the name is taken
        """
        schedule.validate()
        if schedule.name in self._schedules:
            raise ScheduleConfigError(f"Schedule [{schedule.name}] is already registered")

        self._schedules[schedule.name] = schedule
        logger.info(
            f"Schedule added: {schedule.name} ({schedule.mode.name}, key={schedule.lock_key})"
        )
        return schedule

    def add_schedule(
        self,
        name: str,
        config: ScheduleConfig | None = None,
        *,
        once_handler: Handler | None = None,
        periodic_handler: Handler | None = None,
    ) -> Schedule:
        """Build a schedule with this scheduler's locker and add it."""
        schedule = create_schedule(
            name,
            config,
            locker=self.locker,
            once_handler=once_handler,
            periodic_handler=periodic_handler,
            app_name=self.app_name,
            engine_factory=self.engine_factory,
        )
        return self.add(schedule)

    async def remove(self, name: str) -> bool:
        """Stop and remove a schedule.

        Returns:
            True if removed, False if not found
        """
        schedule = self._schedules.pop(name, None)
        if schedule is None:
            return False

        await schedule.shutdown()
        logger.info(f"Schedule removed: {name}")
        return True

    def get(self, name: str) -> Schedule | None:
        return self._schedules.get(name)

    def list_schedules(self) -> list[Schedule]:
        """List all schedules."""
        return list(self._schedules.values())

    async def start(self) -> None:
        """Serve every schedule.

        If one schedule fails to start, the ones already started are shut
        down and the error is raised.
        """
        started: list[Schedule] = []
        for schedule in self._schedules.values():
            try:
                await schedule.serve()
            except Exception:
                for other in started:
                    await other.shutdown()
                raise
            started.append(schedule)

        self._running = True
        self._shutdown_event.clear()
        logger.info(f"Scheduler started with {len(started)} schedule(s)")

    async def stop(self, drain: bool = False, timeout: float | None = None) -> None:
        """Stop every schedule.

        Args:
            drain: Wait for in-flight runs
            timeout: Maximum time to wait per schedule when draining
        """
        self._running = False
        self._shutdown_event.set()

        for schedule in self._schedules.values():
            await schedule.shutdown(drain=drain, timeout=timeout)

        logger.info("Scheduler stopped")

    def _signal_handler(self) -> None:
        """Handle shutdown signals."""
        logger.info("Received shutdown signal")
        self._shutdown_event.set()

    async def run(self, drain_timeout: float | None = 30.0) -> None:
        """Serve until a shutdown signal or ``stop()``, then drain runs."""
        await self.start()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._signal_handler)

        try:
            await self._shutdown_event.wait()
        finally:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.remove_signal_handler(sig)
            await self.stop(drain=True, timeout=drain_timeout)

    async def __aenter__(self) -> "Scheduler":
        """Context manager entry."""
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Context manager exit."""
        await self.stop()

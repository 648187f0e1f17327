"""Leader-gated execution of one-shot and periodic tasks.

A ``Schedule`` owns one task's configuration and decides, for every
trigger, whether this instance may run the handler:

    trigger -> [overlap check] -> [leader election] -> handler -> [release]

Every trigger spawns an independent run task and returns immediately. A run
never lets an exception escape: lock failures end the run, handler errors
are logged, and crashes are logged with their traceback. The trigger engine
keeps firing regardless.

Runs of the same schedule may overlap (a slow handler is still running when
the next tick fires). With ``OverlapPolicy.ALLOW`` only the lock TTL keeps
other instances out, and once the TTL expires a second instance can win
while the first is still working. ``OverlapPolicy.SKIP`` drops new runs
while this process still has one in progress.

Example:
    async def cleanup(schedule: Schedule) -> None:
        await purge_older_than(schedule.args["days"])

    schedule = create_schedule(
        "cleanup",
        ScheduleConfig(mode=Mode.PERIODIC, spec="0 2 * * *", compete=True,
                       auto_release=True, args={"days": 30}),
        locker=RedisLocker(),
        periodic_handler=cleanup,
    )
    await schedule.serve()
    ...
    await schedule.shutdown(drain=True)
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
import traceback
from datetime import UTC, datetime
from typing import Any, Callable
from uuid import uuid4

from cronlock.config import settings
from cronlock.distributed.leader import LeaderElection
from cronlock.distributed.lock import Locker
from cronlock.errors import HandlerError, ScheduleConfigError
from cronlock.jobs.engine import TriggerEngine
from cronlock.jobs.models import (
    Mode,
    OverlapPolicy,
    RunOutcome,
    RunResult,
    ScheduleConfig,
    ScheduleStats,
)
from cronlock.observability.logging import LogContext
from cronlock.observability.metrics import record_run, track_in_progress

logger = logging.getLogger(__name__)

# Handlers receive the schedule; coroutine functions are awaited, plain
# functions run in a worker thread. Returning an exception marks the run failed.
Handler = Callable[["Schedule"], Any]
EngineFactory = Callable[[], TriggerEngine]

TRIGGER_ONCE = "once"
TRIGGER_PERIODIC = "periodic"


def _is_async_handler(handler: Handler) -> bool:
    if inspect.iscoroutinefunction(handler):
        return True
    return inspect.iscoroutinefunction(getattr(handler, "__call__", None))


class Schedule:
    """One schedulable task and its execution controller.

    Args:
        name: Schedule name, unique within the application
        config: Schedule configuration
        locker: Lock backend, required when ``config.compete`` is set
        once_handler: Handler for the one-shot run
        periodic_handler: Handler for periodic runs
        app_name: Default lock prefix (defaults to settings.app_name)
        engine_factory: Builds the trigger engine used by ``serve``
    """

    def __init__(
        self,
        name: str,
        config: ScheduleConfig | None = None,
        *,
        locker: Locker | None = None,
        once_handler: Handler | None = None,
        periodic_handler: Handler | None = None,
        app_name: str | None = None,
        engine_factory: EngineFactory | None = None,
    ) -> None:
        self.name = name
        self.config = config or ScheduleConfig()
        self.locker = locker
        self.once_handler = once_handler
        self.periodic_handler = periodic_handler
        self.app_name = app_name or settings.app_name
        self.stats = ScheduleStats()
        self.last_result: RunResult | None = None

        self._engine_factory: EngineFactory = engine_factory or TriggerEngine
        self._engine: TriggerEngine | None = None
        self._runs: set[asyncio.Task[RunResult]] = set()
        self._active = 0

    # -------------------------------------------------------------------------
    # Descriptor
    # -------------------------------------------------------------------------

    @property
    def mode(self) -> Mode:
        return self.config.mode

    @property
    def spec(self) -> str:
        return self.config.spec

    @property
    def args(self) -> Any:
        return self.config.args

    @property
    def compete(self) -> bool:
        return self.config.compete

    @property
    def auto_release(self) -> bool:
        return self.config.auto_release

    @property
    def overlap(self) -> OverlapPolicy:
        return self.config.overlap

    @property
    def lock_prefix(self) -> str:
        """Lock prefix, defaulting to the application name."""
        return self.config.lock_prefix or self.app_name

    @property
    def lock_ttl(self) -> float:
        """Lock TTL in seconds, defaulting to settings.default_lock_ttl (10s)."""
        return self.config.lock_seconds or settings.default_lock_ttl

    @property
    def qualified_name(self) -> str:
        return f"schedules.{self.name}"

    @property
    def lock_key(self) -> str:
        """Key coordinating this schedule across all instances."""
        return f"{self.lock_prefix}.{self.qualified_name}.locker"

    @property
    def engine(self) -> TriggerEngine | None:
        """Trigger engine, present only while periodic runs are being served."""
        return self._engine

    @property
    def in_flight(self) -> int:
        """Number of spawned runs that have not finished."""
        return len(self._runs)

    def validate(self, require_locker: bool = True) -> None:
        """Check the configuration before the schedule is served.

        Args:
            require_locker: Reject competing schedules without a locker

        Raises:
            ScheduleConfigError: If the name is empty, a periodic mode has no
                spec, or a competing schedule has no locker
        """
        if not self.name or not self.name.strip():
            raise ScheduleConfigError("Schedule name must not be empty")

        if self.mode.runs_periodic and not self.spec.strip():
            raise ScheduleConfigError(
                f"Schedule [{self.name}] requires a spec for mode {self.mode.name}"
            )

        if require_locker and self.compete and self.locker is None:
            raise ScheduleConfigError(
                f"Schedule [{self.name}] competes for a lock but no locker was provided"
            )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def serve(self) -> None:
        """Activate the schedule according to its mode.

        Never waits for runs. The periodic registration happens before the
        one-shot run is spawned, so a rejected spec leaves nothing running.

        Raises:
            InvalidScheduleSpec: If the trigger engine rejects the spec
        """
        mode = self.mode
        if mode is Mode.STOPPED:
            logger.debug(f"Schedule [{self.name}] is stopped")
            return

        engine = self._register_periodic() if mode.runs_periodic else None

        if mode.runs_once:
            self._exec_once()

        if engine is not None:
            engine.start()
            self._engine = engine

    async def shutdown(self, drain: bool = False, timeout: float | None = None) -> None:
        """Stop future periodic firings.

        Args:
            drain: Also wait for in-flight runs
            timeout: Maximum time to wait when draining (None = wait forever)
        """
        if self._engine is not None:
            self._engine.stop()
            self._engine = None

        if drain and not await self.drain(timeout):
            logger.warning(
                f"Schedule [{self.name}] shut down with {self.in_flight} run(s) still in flight"
            )

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait for in-flight runs to finish.

        Returns:
            True if no runs remain, False on timeout
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        while self._runs:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                return False
            await asyncio.wait(set(self._runs), timeout=remaining)

        return True

    def run_now(self, trigger: str = TRIGGER_ONCE) -> asyncio.Task[RunResult] | None:
        """Manually trigger a run through the normal run protocol.

        Args:
            trigger: Which handler to run ("once" or "periodic")

        Returns:
            The run task, or None if no handler is configured for the trigger
        """
        handler = self.once_handler if trigger == TRIGGER_ONCE else self.periodic_handler
        if handler is None:
            return None
        return self._spawn(handler, trigger)

    def _register_periodic(self) -> TriggerEngine | None:
        if self._engine is not None:
            logger.warning(f"Schedule [{self.name}] is already registered")
            return None

        if self.periodic_handler is None:
            logger.debug(f"Schedule [{self.name}] has no periodic handler")
            return None

        engine = self._engine_factory()
        engine.register_periodic(self.spec, self._on_tick)
        logger.info(f"Schedule [{self.name}] registered ({self.spec})")
        return engine

    def _exec_once(self) -> None:
        if self.once_handler is None:
            return
        self._spawn(self.once_handler, TRIGGER_ONCE)

    def _on_tick(self) -> None:
        if self.periodic_handler is not None:
            self._spawn(self.periodic_handler, TRIGGER_PERIODIC)

    def _spawn(self, handler: Handler, trigger: str) -> asyncio.Task[RunResult]:
        """Start a run without waiting for it."""
        self.stats.triggered += 1
        task = asyncio.get_running_loop().create_task(
            self._run(handler, trigger),
            name=f"cronlock:{self.name}:{trigger}",
        )
        self._runs.add(task)
        task.add_done_callback(self._runs.discard)
        return task

    # -------------------------------------------------------------------------
    # Run protocol
    # -------------------------------------------------------------------------

    async def _run(self, handler: Handler, trigger: str) -> RunResult:
        """Execute one run. Never raises except on cancellation."""
        result = RunResult(
            schedule=self.name,
            trigger=trigger,
            run_id=uuid4().hex[:8],
            started_at=datetime.now(UTC),
        )

        election: LeaderElection | None = None
        if self.compete and self.locker is not None:
            election = LeaderElection(
                self.locker,
                self.lock_key,
                lease_ttl=self.lock_ttl,
                advisory_check=self.config.advisory_check,
                name=self.name,
            )

        with LogContext(schedule=self.name, run_id=result.run_id):
            try:
                result.outcome = await self._execute(handler, election, result)
            finally:
                if election is not None and self.auto_release:
                    await election.resign()
                result.finished_at = datetime.now(UTC)
                self._finish(result)

        return result

    async def _execute(
        self,
        handler: Handler,
        election: LeaderElection | None,
        result: RunResult,
    ) -> RunOutcome:
        if self.overlap is OverlapPolicy.SKIP and self._active:
            logger.info(f"Schedule [{self.name}] skipped, previous run still in progress")
            return RunOutcome.SKIPPED

        if self.compete:
            if election is None or not await election.campaign():
                return RunOutcome.NOT_ELECTED

        logger.info(f"Schedule [{self.name}] ready")
        # Only runs inside the handler count as overlapping
        self._active += 1
        try:
            return await self._invoke(handler, result)
        finally:
            self._active -= 1

    async def _invoke(self, handler: Handler, result: RunResult) -> RunOutcome:
        track_in_progress(self.name, 1)
        start = time.perf_counter()
        try:
            if _is_async_handler(handler):
                returned = await handler(self)
            else:
                returned = await asyncio.to_thread(handler, self)
                if inspect.isawaitable(returned):
                    returned = await returned
        except HandlerError as e:
            result.error = str(e)
            logger.error(f"Schedule [{self.name}] error: [{e}]")
            return RunOutcome.FAILED
        except Exception as e:
            result.error = repr(e)
            result.traceback = traceback.format_exc()
            logger.exception(f"Schedule [{self.name}] crash: {e!r}")
            return RunOutcome.CRASHED
        finally:
            result.duration = time.perf_counter() - start
            track_in_progress(self.name, -1)

        if isinstance(returned, Exception):
            result.error = str(returned)
            logger.error(f"Schedule [{self.name}] error: [{returned}]")
            return RunOutcome.FAILED

        logger.info(f"Schedule [{self.name}] success")
        return RunOutcome.SUCCEEDED

    def _finish(self, result: RunResult) -> None:
        self.last_result = result
        if result.outcome is None:
            return
        self.stats.record(result.outcome)
        record_run(self.name, result.outcome.value, result.duration)

    def __repr__(self) -> str:
        return f"Schedule({self.name!r}, mode={self.mode.name}, spec={self.spec!r})"

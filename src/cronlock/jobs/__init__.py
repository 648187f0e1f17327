"""Leader-gated task scheduling for cronlock.

Provides:
- One-shot and periodic schedules with per-trigger leader election
- A trigger engine for cron specs and fixed intervals
- Failure isolation for every run
- Configuration loading from JSON files

Example:
    from cronlock.jobs import Mode, ScheduleConfig, create_schedule

    schedule = create_schedule(
        "report",
        ScheduleConfig(mode=Mode.PERIODIC, spec="0 9 * * 1", compete=True),
        locker=locker,
        periodic_handler=send_report,
    )
    await schedule.serve()
"""

from cronlock.jobs.cron import (
    SCHEDULE_PRESETS,
    CronExpression,
    IntervalSchedule,
    next_runs,
    parse_duration,
    parse_schedule,
)
from cronlock.jobs.engine import EngineEntry, TriggerEngine
from cronlock.jobs.models import (
    Mode,
    OverlapPolicy,
    RunOutcome,
    RunResult,
    ScheduleConfig,
    ScheduleStats,
)
from cronlock.jobs.options import (
    ScheduleConfigLoader,
    create_schedule,
    parse_config,
    resolve_handler,
)
from cronlock.jobs.schedule import Handler, Schedule
from cronlock.jobs.scheduler import Scheduler

__all__ = [
    # Specs
    "CronExpression",
    "IntervalSchedule",
    "SCHEDULE_PRESETS",
    "next_runs",
    "parse_duration",
    "parse_schedule",
    # Engine
    "EngineEntry",
    "TriggerEngine",
    # Models
    "Mode",
    "OverlapPolicy",
    "RunOutcome",
    "RunResult",
    "ScheduleConfig",
    "ScheduleStats",
    # Schedules
    "Handler",
    "Schedule",
    "Scheduler",
    "ScheduleConfigLoader",
    "create_schedule",
    "parse_config",
    "resolve_handler",
]

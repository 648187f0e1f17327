"""cronlock: share one-shot and cron tasks across a fleet of instances.

When a schedule competes, each trigger holds a leader election over a
distributed lock and only the winner runs the handler.
"""

from cronlock.distributed import LeaderElection, Locker, MemoryLocker, RedisLocker
from cronlock.errors import (
    CronlockError,
    HandlerError,
    InvalidScheduleSpec,
    LockError,
    ScheduleConfigError,
)
from cronlock.jobs import (
    Mode,
    OverlapPolicy,
    RunOutcome,
    RunResult,
    Schedule,
    ScheduleConfig,
    Scheduler,
    TriggerEngine,
    create_schedule,
)

__version__ = "0.1.0"

__all__ = [
    "CronlockError",
    "HandlerError",
    "InvalidScheduleSpec",
    "LeaderElection",
    "LockError",
    "Locker",
    "MemoryLocker",
    "Mode",
    "OverlapPolicy",
    "RedisLocker",
    "RunOutcome",
    "RunResult",
    "Schedule",
    "ScheduleConfig",
    "ScheduleConfigError",
    "Scheduler",
    "TriggerEngine",
    "create_schedule",
]

"""Schedule configuration models.

``ScheduleConfig`` accepts both snake_case keys and the camelCase keys used
by existing deployment files (``lockPrefix``, ``lockSeconds``,
``autoUnlock``, ``compete``, ``type``).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Mode(IntEnum):
    """When a schedule runs.

    Integer values match the ``type`` field of configuration files.
    """

    STOPPED = 0
    ONCE = 1
    PERIODIC = 2
    ONCE_AND_PERIODIC = 3

    @property
    def runs_once(self) -> bool:
        return self in (Mode.ONCE, Mode.ONCE_AND_PERIODIC)

    @property
    def runs_periodic(self) -> bool:
        return self in (Mode.PERIODIC, Mode.ONCE_AND_PERIODIC)


_MODE_NAMES = {
    "stop": Mode.STOPPED,
    "stopped": Mode.STOPPED,
    "once": Mode.ONCE,
    "timing": Mode.PERIODIC,
    "periodic": Mode.PERIODIC,
    "once_and_timing": Mode.ONCE_AND_PERIODIC,
    "once_and_periodic": Mode.ONCE_AND_PERIODIC,
}


class OverlapPolicy(str, Enum):
    """What to do when a trigger fires while a previous run is still executing.

    ALLOW keeps runs independent; only the lock TTL separates them.
    SKIP drops the new run if this process is still executing one.
    """

    ALLOW = "allow"
    SKIP = "skip"


class RunOutcome(str, Enum):
    """Outcome of a single run."""

    NOT_ELECTED = "not_elected"
    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CRASHED = "crashed"


class ScheduleConfig(BaseModel):
    """Configuration of one schedule, as loaded from a file or built in code."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    mode: Mode = Field(default=Mode.STOPPED, validation_alias=AliasChoices("mode", "type"))
    lock_prefix: str = Field(
        default="", validation_alias=AliasChoices("lock_prefix", "lockPrefix")
    )
    lock_seconds: float = Field(
        default=0, ge=0, validation_alias=AliasChoices("lock_seconds", "lockSeconds")
    )
    auto_release: bool = Field(
        default=False,
        validation_alias=AliasChoices("auto_release", "autoRelease", "autoUnlock"),
    )
    compete: bool = Field(default=False, validation_alias=AliasChoices("compete", "competitive"))
    spec: str = ""
    args: Any = None
    overlap: OverlapPolicy = OverlapPolicy.ALLOW
    advisory_check: bool = Field(
        default=True, validation_alias=AliasChoices("advisory_check", "advisoryCheck")
    )

    # Import paths ("package.module:function"), used by file-based setups
    once_handler: str | None = Field(
        default=None, validation_alias=AliasChoices("once_handler", "onceHandler")
    )
    periodic_handler: str | None = Field(
        default=None,
        validation_alias=AliasChoices("periodic_handler", "periodicHandler", "timingHandler"),
    )

    @field_validator("mode", mode="before")
    @classmethod
    def _parse_mode(cls, value: Any) -> Any:
        if isinstance(value, str):
            if value.strip().isdigit():
                return int(value)
            try:
                return _MODE_NAMES[value.strip().lower()]
            except KeyError:
                raise ValueError(f"unknown mode {value!r}") from None
        return value


@dataclass
class RunResult:
    """Record of a single run."""

    schedule: str
    trigger: str
    run_id: str
    outcome: RunOutcome | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    duration: float | None = None  # Handler execution time, if it ran
    error: str | None = None
    traceback: str | None = None


@dataclass
class ScheduleStats:
    """Per-schedule run counters."""

    triggered: int = 0
    executed: int = 0
    succeeded: int = 0
    failed: int = 0
    crashed: int = 0
    not_elected: int = 0
    skipped: int = 0

    def record(self, outcome: RunOutcome) -> None:
        if outcome in (RunOutcome.SUCCEEDED, RunOutcome.FAILED, RunOutcome.CRASHED):
            self.executed += 1
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)

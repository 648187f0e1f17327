"""Exception hierarchy for cronlock.

Configuration problems are fatal and surface before a schedule is served.
Lock and handler failures are contained inside a single run and only show
up in logs, metrics and the run's ``RunResult``.
"""

from __future__ import annotations


class CronlockError(Exception):
    """Base class for all cronlock errors."""


class ScheduleConfigError(CronlockError):
    """Raised when a schedule configuration is invalid.

    Examples: an empty schedule name, a periodic mode without a spec, or a
    competing schedule with no locker injected.
    """


class InvalidScheduleSpec(CronlockError, ValueError):
    """Raised when a schedule spec cannot be parsed by the trigger engine."""

    def __init__(self, spec: str, reason: str):
        self.spec = spec
        self.reason = reason
        super().__init__(f"Invalid schedule spec {spec!r}: {reason}")


class LockError(CronlockError):
    """Raised when the lock backend fails (unreachable, protocol error)."""

    def __init__(self, operation: str, key: str, cause: BaseException | None = None):
        self.operation = operation
        self.key = key
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Lock {operation} failed for '{key}'{detail}")


class HandlerError(CronlockError):
    """Raised by a handler to report an expected failure.

    A handler that raises ``HandlerError``, or returns any exception
    instance, is logged as a failed run. Any other raised exception is
    treated as a crash and logged with its traceback.
    """

"""Schedule spec parsing.

Supported forms:
- 5-field cron: ``min hour day-of-month month day-of-week``
- 6-field cron with a leading seconds field: ``sec min hour dom month dow``
- Descriptors: ``@yearly``, ``@annually``, ``@monthly``, ``@weekly``,
  ``@daily``, ``@midnight``, ``@hourly``
- Fixed intervals: ``@every 1h30m``, ``@every 45s``, ``@every 250ms``

Cron evaluation is delegated to croniter.

Example:
    spec = parse_schedule("*/5 * * * *")
    spec.next_run(datetime(2024, 1, 1, 0, 1, tzinfo=timezone.utc))
    # -> 2024-01-01 00:05:00+00:00
"""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

from croniter import croniter  # type: ignore[import-untyped]

from cronlock.errors import InvalidScheduleSpec

DESCRIPTORS = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}

EVERY_PREFIX = "@every"

_DURATION_UNITS = {
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "s": timedelta(seconds=1),
    "ms": timedelta(milliseconds=1),
    "us": timedelta(microseconds=1),
    "µs": timedelta(microseconds=1),
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|us|µs|h|m|s)")


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``1h30m``, ``45s`` or ``250ms``.

    A bare number is read as seconds.
    """
    value = text.strip()
    if not value:
        raise ValueError("empty duration")

    try:
        return timedelta(seconds=float(value))
    except (ValueError, OverflowError):
        pass

    total = timedelta()
    pos = 0
    for match in _DURATION_PART.finditer(value):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos != len(value):
        raise ValueError(f"invalid duration {text!r}")
    return total


class CronExpression:
    """Parse and evaluate cron expressions.

    A 6-field expression carries seconds in the first position. Descriptors
    are expanded to their 5-field equivalent.
    """

    def __init__(self, expression: str) -> None:
        self.expression = expression
        self.has_seconds = False
        self._expr = self._parse(expression)

    def _parse(self, expression: str) -> str:
        """Normalize the expression into croniter's field order."""
        text = expression.strip()
        if not text:
            raise InvalidScheduleSpec(expression, "empty spec")

        if text.startswith("@"):
            descriptor = DESCRIPTORS.get(text.lower())
            if descriptor is None:
                raise InvalidScheduleSpec(expression, "unknown descriptor")
            return descriptor

        parts = text.split()
        if len(parts) == 6:
            # croniter expects seconds last
            parts = parts[1:] + parts[:1]
            self.has_seconds = True
        elif len(parts) != 5:
            raise InvalidScheduleSpec(expression, f"expected 5 or 6 fields, got {len(parts)}")

        normalized = " ".join(parts)
        if not croniter.is_valid(normalized):
            raise InvalidScheduleSpec(expression, "malformed cron field")
        return normalized

    def matches(self, dt: datetime) -> bool:
        """Check if datetime is an occurrence of this expression."""
        if self.has_seconds:
            target = dt.replace(microsecond=0)
        else:
            target = dt.replace(second=0, microsecond=0)
        previous = target - timedelta(seconds=1)
        return self.next_run(previous) == target

    def next_run(self, after: datetime | None = None) -> datetime:
        """Calculate the first occurrence strictly after the given datetime."""
        if after is None:
            after = datetime.now(UTC)
        result: datetime = croniter(self._expr, after).get_next(datetime)
        return result

    def __repr__(self) -> str:
        return f"CronExpression({self.expression!r})"


class IntervalSchedule:
    """Fixed-interval schedule (``@every <duration>``)."""

    def __init__(self, expression: str, interval: timedelta) -> None:
        if interval <= timedelta(0):
            raise InvalidScheduleSpec(expression, "interval must be positive")
        self.expression = expression
        self.interval = interval

    def next_run(self, after: datetime | None = None) -> datetime:
        """Calculate the next occurrence after the given datetime."""
        if after is None:
            after = datetime.now(UTC)
        return after + self.interval

    def __repr__(self) -> str:
        return f"IntervalSchedule({self.expression!r})"


TriggerSpec = CronExpression | IntervalSchedule


def parse_schedule(spec: str) -> TriggerSpec:
    """Parse any supported schedule spec.

    Raises:
        InvalidScheduleSpec: If the spec is empty or malformed
    """
    text = (spec or "").strip()
    if text.lower().startswith(EVERY_PREFIX):
        remainder = text[len(EVERY_PREFIX) :]
        if remainder and not remainder[0].isspace():
            raise InvalidScheduleSpec(spec, "unknown descriptor")
        try:
            interval = parse_duration(remainder)
        except ValueError as e:
            raise InvalidScheduleSpec(spec, str(e)) from e
        return IntervalSchedule(spec, interval)

    return CronExpression(spec)


def next_runs(spec: str, count: int = 5, after: datetime | None = None) -> list[datetime]:
    """List the next ``count`` occurrences of a schedule spec."""
    trigger = parse_schedule(spec)
    current = after or datetime.now(UTC)
    runs: list[datetime] = []
    for _ in range(count):
        current = trigger.next_run(current)
        runs.append(current)
    return runs


# Common schedule presets
SCHEDULE_PRESETS = {
    "every_minute": "* * * * *",
    "every_5_minutes": "*/5 * * * *",
    "every_15_minutes": "*/15 * * * *",
    "every_hour": "0 * * * *",
    "daily_midnight": "0 0 * * *",
    "daily_2am": "0 2 * * *",
    "weekly_sunday": "0 0 * * 0",
    "weekly_monday": "0 0 * * 1",
    "monthly_first": "0 0 1 * *",
}

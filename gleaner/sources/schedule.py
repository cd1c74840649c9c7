"""
Source Schedules

Parses a source's schedule string and decides whether it is due.

Accepted forms:
- Named intervals: hourly, daily, weekly (optionally prefixed with "@")
- Durations: "30s", "15m", "2h", "1d", optionally "every 15m"
- Five-field cron expressions, evaluated in UTC with APScheduler
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from apscheduler.triggers.cron import CronTrigger

from gleaner.core.exceptions import ValidationError

_NAMED_INTERVALS = {
    "hourly": timedelta(hours=1),
    "daily": timedelta(days=1),
    "weekly": timedelta(weeks=1),
}

_UNITS = {
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
    "w": "weeks",
}

_DURATION = re.compile(r"^(?:every\s+)?(\d+)\s*([smhdw])$")


@dataclass(frozen=True)
class Schedule:
    """A parsed schedule: either a fixed interval or a cron trigger."""

    expression: str
    interval: timedelta | None = None
    cron: CronTrigger | None = None

    @classmethod
    def parse(cls, expression: str) -> "Schedule":
        """
        Parse a schedule string.

        Raises:
            ValidationError: the expression is not a recognized schedule
        """
        normalized = " ".join(expression.strip().lower().split())
        if not normalized:
            raise ValidationError("Schedule must not be empty")

        name = normalized.removeprefix("@")
        if name in _NAMED_INTERVALS:
            return cls(expression=expression, interval=_NAMED_INTERVALS[name])

        match = _DURATION.match(normalized)
        if match:
            amount = int(match.group(1))
            if amount <= 0:
                raise ValidationError(
                    f"Schedule interval must be positive: {expression!r}",
                    context={"schedule": expression},
                )
            interval = timedelta(**{_UNITS[match.group(2)]: amount})
            return cls(expression=expression, interval=interval)

        if len(normalized.split(" ")) == 5:
            try:
                trigger = CronTrigger.from_crontab(normalized, timezone="UTC")
            except ValueError as e:
                raise ValidationError(
                    f"Invalid cron schedule {expression!r}: {e}",
                    context={"schedule": expression},
                    cause=e,
                )
            return cls(expression=expression, cron=trigger)

        raise ValidationError(
            f"Unrecognized schedule {expression!r}",
            context={"schedule": expression},
        )

    def next_run(self, last_run: datetime | None) -> datetime | None:
        """First time at or after which the source is due again. None: due now."""
        if last_run is None:
            return None
        if last_run.tzinfo is None:
            last_run = last_run.replace(tzinfo=timezone.utc)

        if self.interval is not None:
            return last_run + self.interval

        # Strictly after the previous run
        return self.cron.get_next_fire_time(None, last_run + timedelta(microseconds=1))

    def is_due(self, last_run: datetime | None, now: datetime) -> bool:
        """A source that has never run is always due."""
        next_run = self.next_run(last_run)
        if next_run is None:
            return True
        return next_run <= now

"""
Unit Tests - Schedules
"""

from datetime import datetime, timedelta, timezone

import pytest

from gleaner.core.exceptions import ValidationError
from gleaner.sources.schedule import Schedule

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestScheduleParsing:
    """Tests for Schedule.parse."""

    @pytest.mark.parametrize(
        "expression,interval",
        [
            ("hourly", timedelta(hours=1)),
            ("daily", timedelta(days=1)),
            ("weekly", timedelta(weeks=1)),
            ("@hourly", timedelta(hours=1)),
            ("@daily", timedelta(days=1)),
            ("Hourly", timedelta(hours=1)),
            ("30s", timedelta(seconds=30)),
            ("15m", timedelta(minutes=15)),
            ("every 15m", timedelta(minutes=15)),
            ("2h", timedelta(hours=2)),
            ("1d", timedelta(days=1)),
        ],
    )
    def test_intervals(self, expression, interval):
        schedule = Schedule.parse(expression)
        assert schedule.interval == interval
        assert schedule.cron is None

    def test_cron_expression(self):
        schedule = Schedule.parse("*/5 * * * *")
        assert schedule.cron is not None
        assert schedule.interval is None

    @pytest.mark.parametrize("expression", ["", "   ", "sometimes", "0m", "every", "61 * * * *"])
    def test_invalid(self, expression):
        with pytest.raises(ValidationError):
            Schedule.parse(expression)


class TestScheduleDue:
    """Tests for Schedule.is_due."""

    def test_never_run_is_due(self):
        assert Schedule.parse("weekly").is_due(None, NOW)
        assert Schedule.parse("0 0 1 1 *").is_due(None, NOW)

    def test_interval_not_yet_elapsed(self):
        schedule = Schedule.parse("hourly")
        assert not schedule.is_due(NOW - timedelta(minutes=30), NOW)

    def test_interval_elapsed(self):
        schedule = Schedule.parse("hourly")
        assert schedule.is_due(NOW - timedelta(minutes=61), NOW)
        assert schedule.is_due(NOW - timedelta(hours=1), NOW)

    def test_cron_waits_for_next_fire_time(self):
        schedule = Schedule.parse("0 * * * *")
        last_run = datetime(2026, 3, 1, 10, 0, 5, tzinfo=timezone.utc)

        assert not schedule.is_due(last_run, datetime(2026, 3, 1, 10, 59, tzinfo=timezone.utc))
        assert schedule.is_due(last_run, datetime(2026, 3, 1, 11, 0, tzinfo=timezone.utc))

    def test_cron_does_not_refire_at_same_instant(self):
        schedule = Schedule.parse("0 * * * *")
        last_run = datetime(2026, 3, 1, 11, 0, 0, tzinfo=timezone.utc)

        assert schedule.next_run(last_run) == datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def test_naive_last_run_is_treated_as_utc(self):
        schedule = Schedule.parse("hourly")
        naive = datetime(2026, 3, 1, 10, 0, 0)
        assert schedule.next_run(naive) == datetime(2026, 3, 1, 11, 0, tzinfo=timezone.utc)

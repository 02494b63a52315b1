"""Tests for time sources."""
from datetime import datetime, timedelta, timezone

from app.utils.clock import FixedClock, SystemClock, as_naive_utc


class TestAsNaiveUtc:
    """Tests for normalizing instants."""

    def test_naive_is_unchanged(self):
        instant = datetime(2026, 1, 2, 11, 0)

        assert as_naive_utc(instant) == instant

    def test_utc_suffix_from_command_line(self):
        instant = datetime.fromisoformat("2026-01-02T11:00:00+00:00")

        result = as_naive_utc(instant)

        assert result == datetime(2026, 1, 2, 11, 0)
        assert result.tzinfo is None

    def test_offset_is_converted(self):
        instant = datetime(2026, 1, 2, 1, 30, tzinfo=timezone(timedelta(hours=-5)))

        assert as_naive_utc(instant) == datetime(2026, 1, 2, 6, 30)

    def test_comparable_with_stored_timestamps(self):
        stored = datetime(2026, 1, 1, 10, 0)

        assert as_naive_utc(datetime(2026, 1, 2, 11, 0, tzinfo=timezone.utc)) - stored == timedelta(
            days=1, hours=1
        )


class TestClocks:
    """Tests for the clock implementations."""

    def test_system_clock_is_naive(self):
        assert SystemClock().now().tzinfo is None

    def test_fixed_clock_moves_only_when_set(self):
        clock = FixedClock(datetime(2026, 1, 1))

        clock.set(datetime(2026, 1, 5))

        assert clock.now() == datetime(2026, 1, 5)

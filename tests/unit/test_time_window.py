"""
Tests for skusearch.time_window module.
"""
from datetime import date, datetime, timedelta, timezone

import pytest

from skusearch.intent import TimeRange
from skusearch.time_window import (
    UNBOUNDED_END,
    UNBOUNDED_START,
    TimeWindow,
    parse_record_date,
    resolve_time_window,
)
from skusearch.validators import MAX_RELATIVE_DAYS


class TestResolveTimeWindow:
    """Tests for resolve_time_window."""

    def test_relative_window(self, now):
        """'30d' covers the last 30 days up to now."""
        window = resolve_time_window(TimeRange(type="relative", value="30d"), now)
        assert window.start == now - timedelta(days=30)
        assert window.end == now
        assert window.label == "Last 30 Days"

    def test_previous_window_symmetry(self, now):
        """Previous window ends at start and has the same length."""
        window = resolve_time_window(TimeRange(value="7d"), now)
        assert window.prev_end == window.start
        assert window.prev_end - window.prev_start == window.end - window.start

    def test_default_window(self, now):
        """No time range means the default 30-day look-back."""
        window = resolve_time_window(None, now)
        assert window.label == "Last 30 Days (Default)"
        assert window.end - window.start == timedelta(days=30)
        assert window.has_previous

    def test_huge_relative_window_is_clamped(self, now):
        """Windows longer than the maximum are clamped instead of overflowing."""
        window = resolve_time_window(TimeRange(type="relative", value="1000000d"), now)
        assert window.end - window.start == timedelta(days=MAX_RELATIVE_DAYS)
        assert window.label == f"Last {MAX_RELATIVE_DAYS} Days"
        assert window.prev_end - window.prev_start == timedelta(days=MAX_RELATIVE_DAYS)

    def test_absolute_date_is_open_ended(self, now):
        """An absolute date starts the window and leaves it unbounded."""
        window = resolve_time_window(TimeRange(value="2026-01-01"), now, tz_name="UTC")
        assert window.start == datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert window.end == UNBOUNDED_END
        assert window.label == "Since 2026-01-01"
        assert not window.has_previous

    def test_unparseable_absolute_date(self, now):
        """A bad absolute date falls back to all time."""
        window = resolve_time_window(TimeRange(type="absolute", value="next tuesday"), now)
        assert window.start == UNBOUNDED_START
        assert window.end == UNBOUNDED_END
        assert window.label == "All Time"

    def test_last_month_preset(self, now):
        """LAST_MONTH is the previous calendar month."""
        window = resolve_time_window(TimeRange(value="LAST_MONTH"), now)
        assert window.start == datetime(2026, 2, 1, tzinfo=timezone.utc)
        assert window.end < datetime(2026, 3, 1, tzinfo=timezone.utc)
        assert window.prev_end == window.start

    def test_all_time_preset(self, now):
        """ALL_TIME has no previous window."""
        window = resolve_time_window(TimeRange(value="all_time"), now)
        assert not window.is_bounded
        assert window.duration is None


class TestTimeWindow:
    """Tests for TimeWindow membership."""

    def test_previous_window_before_calendar_start(self):
        """A window too long to mirror backwards has no previous window."""
        start = datetime(5, 1, 1, tzinfo=timezone.utc)
        window = TimeWindow.bounded(start, datetime(2026, 1, 1, tzinfo=timezone.utc), "x")
        assert window.start == start
        assert not window.has_previous
        assert not window.in_previous(datetime(2, 1, 1, tzinfo=timezone.utc))

    def test_current_window_inclusive(self, now):
        """Both ends of the current window are included."""
        window = TimeWindow.bounded(now - timedelta(days=1), now, "x")
        assert window.contains(now)
        assert window.contains(now - timedelta(days=1))

    def test_previous_window_half_open(self, now):
        """The previous window excludes its end (the current start)."""
        window = TimeWindow.bounded(now - timedelta(days=1), now, "x")
        assert not window.in_previous(window.start)
        assert window.in_previous(window.prev_start)

    def test_none_is_outside(self, now):
        """Undated rows are outside every window."""
        window = TimeWindow.all_time()
        assert not window.contains(None)
        assert not window.in_previous(None)


class TestParseRecordDate:
    """Tests for parse_record_date."""

    def test_iso_with_z(self):
        """Trailing Z is read as UTC."""
        assert parse_record_date("2026-03-01T10:00:00Z") == datetime(2026, 3, 1, 10, tzinfo=timezone.utc)

    def test_naive_uses_configured_zone(self):
        """Naive values are placed in the given zone."""
        parsed = parse_record_date("2026-03-01", tz_name="UTC")
        assert parsed == datetime(2026, 3, 1, tzinfo=timezone.utc)

    def test_date_object(self):
        """date objects become midnight in the zone."""
        parsed = parse_record_date(date(2026, 3, 1), tz_name="UTC")
        assert parsed == datetime(2026, 3, 1, tzinfo=timezone.utc)

    def test_fallback_format(self):
        """Day-first exports are accepted."""
        parsed = parse_record_date("01/03/2026", tz_name="UTC")
        assert parsed == datetime(2026, 3, 1, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "not a date", 12345])
    def test_unparseable(self, value):
        """Garbage returns None instead of raising."""
        assert parse_record_date(value) is None

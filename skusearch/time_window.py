"""
Time window resolution.

Turns an intent's time range into the current window plus the immediately
preceding window of equal length used for period-over-period trends.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

from skusearch.config import config
from skusearch.intent import TimeRange
from skusearch.validators import MAX_RELATIVE_DAYS

logger = logging.getLogger(__name__)

UNBOUNDED_START = datetime.min.replace(tzinfo=timezone.utc)
UNBOUNDED_END = datetime.max.replace(tzinfo=timezone.utc)

# Extra formats seen in ledger exports besides ISO 8601
_FALLBACK_FORMATS = ("%d/%m/%Y", "%Y/%m/%d", "%d-%m-%Y", "%d/%m/%Y %H:%M")

_RELATIVE_PRESETS = {
    "LAST_7_DAYS": 7,
    "LAST_30_DAYS": 30,
    "LAST_90_DAYS": 90,
    "LAST_180_DAYS": 180,
}


@dataclass(frozen=True)
class TimeWindow:
    """
    Current window [start, end] and previous window [prev_start, prev_end).

    The previous window exists only when the current one is bounded on
    both sides; it ends where the current one starts and has the same
    duration.
    """
    start: datetime
    end: datetime
    prev_start: Optional[datetime] = None
    prev_end: Optional[datetime] = None
    label: str = "All Time"

    @classmethod
    def bounded(cls, start: datetime, end: datetime, label: str) -> "TimeWindow":
        """Window [start, end]; no previous window when it would precede the calendar."""
        duration = end - start
        try:
            prev_start = start - duration
        except OverflowError:
            return cls(start=start, end=end, label=label)
        return cls(start=start, end=end, prev_start=prev_start, prev_end=start, label=label)

    @classmethod
    def since(cls, start: datetime, label: str) -> "TimeWindow":
        return cls(start=start, end=UNBOUNDED_END, label=label)

    @classmethod
    def all_time(cls) -> "TimeWindow":
        return cls(start=UNBOUNDED_START, end=UNBOUNDED_END, label="All Time")

    @property
    def is_bounded(self) -> bool:
        return self.start > UNBOUNDED_START and self.end < UNBOUNDED_END

    @property
    def has_previous(self) -> bool:
        return self.prev_start is not None and self.prev_end is not None

    @property
    def duration(self) -> Optional[timedelta]:
        return self.end - self.start if self.is_bounded else None

    def contains(self, moment: Optional[datetime]) -> bool:
        if moment is None:
            return False
        return self.start <= moment <= self.end

    def in_previous(self, moment: Optional[datetime]) -> bool:
        if moment is None or not self.has_previous:
            return False
        return self.prev_start <= moment < self.prev_end


def _zone(tz_name: Optional[str] = None) -> ZoneInfo:
    return ZoneInfo(tz_name or config.time.timezone)


def parse_record_date(
    value: Union[str, date, datetime, None],
    tz_name: Optional[str] = None,
) -> Optional[datetime]:
    """
    Parse a ledger date into an aware datetime.

    Naive values are read in the configured timezone. Returns None for
    anything unparseable, which keeps the row out of every window.
    """
    if value is None or value == "":
        return None

    tz = _zone(tz_name)

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=tz)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=tz)
    if not isinstance(value, str):
        return None

    text = value.strip()
    parsed = None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        for fmt in _FALLBACK_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=tz)


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _relative_window(days: int, now: datetime, label: Optional[str] = None) -> TimeWindow:
    if days > MAX_RELATIVE_DAYS:
        logger.warning("Relative time range too long, clamping", extra={"days": days, "max_days": MAX_RELATIVE_DAYS})
        days = MAX_RELATIVE_DAYS
    return TimeWindow.bounded(now - timedelta(days=days), now, label or f"Last {days} Days")


def _preset_window(preset: str, now: datetime) -> TimeWindow:
    if preset in _RELATIVE_PRESETS:
        return _relative_window(_RELATIVE_PRESETS[preset], now)

    if preset == "THIS_MONTH":
        start = _start_of_day(now).replace(day=1)
        return TimeWindow.bounded(start, now, "This Month")

    if preset == "LAST_MONTH":
        start_of_this_month = _start_of_day(now).replace(day=1)
        end = start_of_this_month - timedelta(microseconds=1)
        start = _start_of_day(end).replace(day=1)
        return TimeWindow.bounded(start, end, "Last Month")

    if preset == "THIS_YEAR":
        start = _start_of_day(now).replace(month=1, day=1)
        return TimeWindow.bounded(start, now, "This Year")

    return TimeWindow.all_time()


def resolve_time_window(
    time_range: Optional[TimeRange],
    now: Optional[datetime] = None,
    tz_name: Optional[str] = None,
) -> TimeWindow:
    """
    Resolve an intent time range into current and previous windows.

    Args:
        time_range: Intent time range; None means the default look-back
        now: Reference moment (default: current time in the configured zone)
        tz_name: Timezone for naive values (default: config.time.timezone)

    Returns:
        TimeWindow with label

    Examples:
        "30d"        -> [now-30d, now], previous [now-60d, now-30d)
        "2026-01-01" -> [2026-01-01, +inf), no previous window
        LAST_MONTH   -> previous calendar month, previous window of same length
    """
    tz = _zone(tz_name)
    if now is None:
        now = datetime.now(tz)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=tz)

    if time_range is None:
        days = config.time.default_window_days
        return _relative_window(days, now, f"Last {days} Days (Default)")

    if time_range.type == "relative":
        value = time_range.value.lower()
        if value.endswith("d") and value[:-1].isdigit() and int(value[:-1]) > 0:
            return _relative_window(int(value[:-1]), now)
        logger.warning("Unsupported relative time range, using default window", extra={"value": time_range.value})
        days = config.time.default_window_days
        return _relative_window(days, now, f"Last {days} Days (Default)")

    if time_range.type == "preset":
        return _preset_window(time_range.value, now)

    start = parse_record_date(time_range.value, tz_name)
    if start is None:
        logger.warning("Unparseable absolute date, searching all time", extra={"value": time_range.value})
        return TimeWindow.all_time()
    return TimeWindow.since(start, f"Since {time_range.value}")

"""
Timesheet time helpers: quarter-hour rounding, billable hours, display formatting.

Clock-in times round DOWN and clock-out times round UP to the nearest 15
minutes. Inputs are bare "HH:MM" strings, ISO-8601 timestamps, or
``time``/``datetime`` objects; rounded values keep the shape of the input.

Every function here is total. Missing values render as "-" and unparseable
values are passed through unchanged, because these run under the timesheet
tables where one bad record must not break the page.
"""
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Any, Iterable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from crewtime.core.config import settings

logger = logging.getLogger(__name__)

QUARTER_HOUR_MINUTES = 15
PLACEHOLDER = "-"

_BARE_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")
_TIMESTAMP_SECONDS_RE = re.compile(r"^\d{2}:\d{2}:\d{2}")
# Anchor day for bare-time arithmetic; only the time part is ever read back
_ANCHOR_DAY = date(2000, 1, 1)


class RoundDirection(str, Enum):
    DOWN = "down"  # clock-in
    UP = "up"      # clock-out


@dataclass
class TimeEntryDisplay:
    original_clock_in: Any
    original_clock_out: Any
    rounded_clock_in: Any
    rounded_clock_out: Any
    display_clock_in: str
    display_clock_out: str
    total_hours: float


# ── Parsing ──────────────────────────────────────────────────────────────────

def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _parse_bare_time(text: str) -> time | None:
    match = _BARE_TIME_RE.match(text.strip())
    if not match:
        return None
    hour, minute, second = int(match[1]), int(match[2]), int(match[3] or 0)
    if hour > 23 or minute > 59 or second > 59:
        return None
    return time(hour, minute, second)


def _parse_timestamp(text: str) -> datetime | None:
    """Full ISO-8601 timestamp with a time part; a trailing 'Z' means UTC."""
    text = text.strip()
    if len(text) < 11 or text[10] not in "Tt ":
        return None
    if text[-1] in "Zz":
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _parse(value: Any) -> time | datetime | None:
    if isinstance(value, (datetime, time)):
        return value
    if not isinstance(value, str):
        return None
    parsed = _parse_bare_time(value)
    if parsed is None:
        parsed = _parse_timestamp(value)
    return parsed


def _to_display_zone(dt: datetime) -> datetime:
    if not settings.DISPLAY_TIMEZONE or dt.tzinfo is None:
        return dt
    try:
        return dt.astimezone(ZoneInfo(settings.DISPLAY_TIMEZONE))
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown DISPLAY_TIMEZONE %r, keeping original offset", settings.DISPLAY_TIMEZONE)
        return dt


# ── Rounding ─────────────────────────────────────────────────────────────────

def _quarter_hour_offset(minute: int, direction: RoundDirection) -> int:
    """Signed minutes needed to reach the quarter-hour boundary in ``direction``."""
    remainder = minute % QUARTER_HOUR_MINUTES
    if remainder == 0:
        return 0
    if direction is RoundDirection.DOWN:
        return -remainder
    return QUARTER_HOUR_MINUTES - remainder


def _round_parsed(value: time | datetime, direction: RoundDirection) -> time | datetime:
    delta = timedelta(minutes=_quarter_hour_offset(value.minute, direction))
    truncated = value.replace(second=0, microsecond=0)
    if isinstance(truncated, datetime):
        # Timestamps carry the date: 23:52 up rolls over to 00:00 the next day
        return truncated + delta
    # Bare times have no date: 23:52 up wraps to 00:00
    return (datetime.combine(_ANCHOR_DAY, truncated) + delta).timetz()


def _format_like(original: Any, rounded: time | datetime) -> Any:
    if not isinstance(original, str):
        return rounded
    text = original.strip()
    if isinstance(rounded, datetime):
        sep = " " if text[10] == " " else "T"
        timespec = "seconds" if _TIMESTAMP_SECONDS_RE.match(text[11:]) else "minutes"
        out = rounded.isoformat(sep=sep, timespec=timespec)
        if text[-1] in "Zz" and out.endswith("+00:00"):
            out = out[:-6] + "Z"
        return out
    # "9:30" stays unpadded
    hour = f"{rounded.hour:02d}" if text.index(":") == 2 else str(rounded.hour)
    out = f"{hour}:{rounded.minute:02d}"
    if text.count(":") == 2:
        out += ":00"
    return out


def round_to_quarter_hour(value: Any, direction: RoundDirection | str) -> Any:
    """
    Round a clock time to a quarter-hour boundary.

    Times already on a boundary are returned unchanged in either direction
    (seconds are dropped). Bare times wrap at midnight ("23:52" up -> "00:00");
    timestamps advance to the next day instead.

    Returns "" for empty input and the input itself when it cannot be parsed.
    """
    if _is_empty(value):
        return ""
    try:
        direction = RoundDirection(direction)
    except ValueError:
        return value
    parsed = _parse(value)
    if parsed is None:
        logger.debug("Cannot round unparseable time %r", value)
        return value
    return _format_like(value, _round_parsed(parsed, direction))


# ── Hours ────────────────────────────────────────────────────────────────────

def _minute_of_day(value: time | datetime) -> int:
    return value.hour * 60 + value.minute


def _hours_between(start: time | datetime, end: time | datetime) -> float:
    if isinstance(start, datetime) and isinstance(end, datetime):
        # Naive timestamps are stored UTC (SQLite drops the offset)
        if start.tzinfo is None and end.tzinfo is not None:
            start = start.replace(tzinfo=timezone.utc)
        elif end.tzinfo is None and start.tzinfo is not None:
            end = end.replace(tzinfo=timezone.utc)
        seconds = (end - start).total_seconds()
        return max(seconds, 0) / 3600

    # Without full dates: end before start means the shift crossed midnight
    start_minutes = _minute_of_day(start)
    end_minutes = _minute_of_day(end)
    if end_minutes < start_minutes:
        end_minutes += 24 * 60
    return (end_minutes - start_minutes) / 60


def _rounded_hours(rounded_in: Any, rounded_out: Any) -> float:
    """Hours between two already-rounded values."""
    if _is_empty(rounded_in) or _is_empty(rounded_out):
        return 0.0
    start = _parse(rounded_in)
    end = _parse(rounded_out)
    if start is None or end is None:
        return 0.0
    return _hours_between(start, end)


def calculate_rounded_hours(clock_in: Any, clock_out: Any) -> float:
    """Billable hours between a clock-in (rounded down) and clock-out (rounded up)."""
    return _rounded_hours(
        round_to_quarter_hour(clock_in, RoundDirection.DOWN),
        round_to_quarter_hour(clock_out, RoundDirection.UP),
    )


def _entry_value(entry: Any, key: str, camel_key: str) -> Any:
    if isinstance(entry, Mapping):
        value = entry.get(key)
        return value if value is not None else entry.get(camel_key)
    return getattr(entry, key, None)


def calculate_total_rounded_hours(entries: Iterable[Any] | None) -> str:
    """
    Sum rounded hours over time entries, formatted with two decimals.

    Entries are mappings with ``clock_in``/``clock_out`` (or ``clockIn``/
    ``clockOut``) keys, or objects with those attributes such as TimeEntry rows.
    """
    total = 0.0
    for entry in entries or []:
        total += calculate_rounded_hours(
            _entry_value(entry, "clock_in", "clockIn"),
            _entry_value(entry, "clock_out", "clockOut"),
        )
    return f"{total:.2f}"


# ── Display ──────────────────────────────────────────────────────────────────

def format_to_12_hour(value: Any) -> str:
    """"09:30" -> "9:30 AM". "-" for empty input, unparseable input unchanged."""
    if _is_empty(value):
        return PLACEHOLDER
    parsed = _parse(value)
    if parsed is None:
        return value if isinstance(value, str) else str(value)
    if isinstance(parsed, datetime):
        parsed = _to_display_zone(parsed)
    hour = parsed.hour % 12 or 12
    suffix = "AM" if parsed.hour < 12 else "PM"
    return f"{hour}:{parsed.minute:02d} {suffix}"


def format_date(value: Any) -> str:
    """Render a date as MM/DD/YYYY. "-" for empty input, unparseable input unchanged."""
    if _is_empty(value):
        return PLACEHOLDER
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return value.strftime("%m/%d/%Y")
    if not isinstance(value, str):
        return str(value)

    parsed = _parse_timestamp(value)
    if parsed is not None:
        return parsed.strftime("%m/%d/%Y")
    try:
        return date.fromisoformat(value.strip()).strftime("%m/%d/%Y")
    except ValueError:
        return value


def get_time_entry_display(clock_in: Any, clock_out: Any) -> TimeEntryDisplay:
    """
    Rounded and display values for one entry.

    Display times and total_hours come from the same rounding pass, so what a
    timesheet shows is always what gets paid.
    """
    rounded_in = round_to_quarter_hour(clock_in, RoundDirection.DOWN)
    rounded_out = round_to_quarter_hour(clock_out, RoundDirection.UP)
    return TimeEntryDisplay(
        original_clock_in=clock_in,
        original_clock_out=clock_out,
        rounded_clock_in=rounded_in,
        rounded_clock_out=rounded_out,
        display_clock_in=format_to_12_hour(rounded_in),
        display_clock_out=format_to_12_hour(rounded_out),
        total_hours=_rounded_hours(rounded_in, rounded_out),
    )

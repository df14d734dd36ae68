"""Time windows: how long until a subscription may next run."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Iterable, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

log = logging.getLogger(__name__)

DAY = timedelta(hours=24)
# Returned when the current time sits exactly on a window boundary.
NO_WINDOW = timedelta(microseconds=-1)

_START_OF_DAY = timedelta(0)
_END_OF_DAY = DAY

_KITCHEN_RE = re.compile(r"(\d{1,2}):(\d{2})(AM|PM)")

_WEEKDAYS = {
    "sunday": 0,
    "monday": 1,
    "tuesday": 2,
    "wednesday": 3,
    "thursday": 4,
    "friday": 5,
    "saturday": 6,
}


@dataclass(frozen=True)
class HourRange:
    """A span of the day given as kitchen times, e.g. ``10:30AM``."""

    start: str = ""
    end: str = ""


@dataclass
class TimeWindow:
    """When a subscription is allowed (``active``) or blocked to run."""

    window_type: str = ""
    location: str = ""
    weekdays: list[str] = field(default_factory=list)
    hours: list[HourRange] = field(default_factory=list)


def _time_of_day(moment: datetime) -> timedelta:
    return timedelta(hours=moment.hour, minutes=moment.minute)


def _parse_kitchen_strict(text: str) -> timedelta:
    match = _KITCHEN_RE.fullmatch(text)
    if match is None:
        raise ValueError(f"cannot parse {text!r} as kitchen time")
    hour, minute, suffix = int(match[1]), int(match[2]), match[3]
    if hour > 12:
        raise ValueError(f"hour out of range in {text!r}")
    if minute > 59:
        raise ValueError(f"minute out of range in {text!r}")
    if suffix == "PM" and hour < 12:
        hour += 12
    elif suffix == "AM" and hour == 12:
        hour = 0
    return timedelta(hours=hour, minutes=minute)


def _format_kitchen(offset: timedelta) -> str:
    minutes = int(offset.total_seconds() // 60) % (24 * 60)
    hour, minute = divmod(minutes, 60)
    suffix = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12}:{minute:02d}{suffix}"


def parse_kitchen_time(text: str) -> timedelta:
    """Parse ``3:04PM`` into an offset from midnight.

    Unparseable text yields the current local time of day.
    """
    try:
        return _parse_kitchen_strict(text)
    except ValueError as err:
        now = datetime.now().astimezone()
        log.error("Error: %s, while parsing time string %s, will use the current time %s instead", err, text, now)
        return timedelta(hours=now.hour, minutes=now.minute, seconds=now.second, microseconds=now.microsecond)


def _get_location(location: str) -> tzinfo | None:
    """Resolve a zone name; ``None`` stands for the local zone."""
    if location in ("", "UTC"):
        return timezone.utc
    if location == "Local":
        return None
    try:
        return ZoneInfo(location)
    except (ZoneInfoNotFoundError, ValueError, OSError) as err:
        log.error("Error %s while parsing the location string %s, will use the local zone", err, location)
        return None


def unify_time_zone(window: TimeWindow, now: datetime) -> datetime:
    """Express ``now`` in the window's location."""
    return now.astimezone(_get_location(window.location))


def max_hour(a: str, b: str) -> str:
    """The later of two kitchen times, as given."""
    return b if parse_kitchen_time(a) < parse_kitchen_time(b) else a


def merge_hour_ranges(ranges: Sequence[HourRange]) -> list[HourRange]:
    """Merge each range into the previous one where they overlap or touch."""
    if len(ranges) < 2:
        return list(ranges)
    merged = [ranges[0]]
    for current in ranges[1:]:
        previous = merged[-1]
        if parse_kitchen_time(previous.end) >= parse_kitchen_time(current.start):
            merged[-1] = HourRange(previous.start, max_hour(previous.end, current.end))
        else:
            merged.append(current)
    return merged


def reverse_range(ranges: Sequence[HourRange]) -> list[HourRange]:
    """The gaps of the day not covered by the given sorted ranges."""
    if not ranges:
        return list(ranges)
    day_start = _format_kitchen(_START_OF_DAY)
    day_end = _format_kitchen(_END_OF_DAY)
    gaps = [HourRange(day_start, ranges[0].start)]
    gaps.extend(HourRange(left.end, right.start) for left, right in zip(ranges, ranges[1:]))
    gaps.append(HourRange(ranges[-1].end, day_end))
    return gaps


def _validate_hour_range(ranges: Sequence[HourRange]) -> list[HourRange]:
    ordered = []
    for hour_range in ranges:
        start, end = parse_kitchen_time(hour_range.start), parse_kitchen_time(hour_range.end)
        if start < end:
            ordered.append(hour_range)
        else:
            ordered.append(HourRange(hour_range.end, hour_range.start))
    return merge_hour_ranges(ordered)


def _validate_weekdays(names: Iterable[str]) -> tuple[list[int], list[int]]:
    """Return the named run days and the remaining days of the week."""
    run_days: list[int] = []
    for name in names:
        day = _WEEKDAYS.get(name.lower())
        if day is not None and day not in run_days:
            run_days.append(day)
    other_days = [day for day in sorted(_WEEKDAYS.values()) if day not in run_days]
    return run_days, other_days


def duration_to_next_runable_weekday(run_days: Iterable[int], now: datetime) -> timedelta:
    """Whole days to wait, beyond the current one, until the next run day.

    Days count from Sunday as 0.
    """
    days_sorted = sorted(run_days)
    if not days_sorted:
        return timedelta(0)
    today = (now.weekday() + 1) % 7
    if today > days_sorted[-1]:
        days = 7 - today + days_sorted[0]
    else:
        days = next((day - today for day in days_sorted if today < day), 0)
    return (days - 1) * DAY


def generate_next_point(hours: Sequence[HourRange], run_days: Iterable[int], now: datetime) -> timedelta:
    """Time until the next allowed slot; zero when ``now`` is inside one."""
    run_days = list(run_days)
    time_by_hour = _time_of_day(now)

    if not hours:
        if not run_days:
            return timedelta(0)
        return _END_OF_DAY - time_by_hour + duration_to_next_runable_weekday(run_days, now)

    slots = sorted(hours, key=lambda slot: parse_kitchen_time(slot.start))
    last_end = parse_kitchen_time(slots[-1].end)

    if last_end < time_by_hour:
        next_start = parse_kitchen_time(slots[0].start)
        day_offset = duration_to_next_runable_weekday(run_days, now)
        return _END_OF_DAY - time_by_hour + next_start + day_offset

    for slot in slots:
        start = parse_kitchen_time(slot.start)
        end = _END_OF_DAY if slot.end == "12:00AM" else parse_kitchen_time(slot.end)
        if time_by_hour < start:
            return start - time_by_hour
        if start < time_by_hour < end:
            return timedelta(0)

    return NO_WINDOW


def next_start_point(window: TimeWindow, now: datetime) -> timedelta:
    """Time until the window next lets a run happen, seen from ``now``."""
    local = unify_time_zone(window, now)
    log.debug("Time window checking at %s", local)

    hours = _validate_hour_range(window.hours)
    run_days, other_days = _validate_weekdays(window.weekdays)

    if window.window_type not in ("", "active"):
        return generate_next_point(reverse_range(hours), other_days, local)
    return generate_next_point(hours, run_days, local)
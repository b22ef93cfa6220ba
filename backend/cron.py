"""Cron schedule evaluation for recurring priorities.

Schedules are standard 5-field crontab expressions (minute, hour, day of
month, month, day of week) with Sunday as 0 or 7. Evaluation is delegated to
APScheduler's CronTrigger; this module translates standard crontab semantics
to it:

- day-of-week numbers are standard cron (0 = Sunday), not APScheduler's
  (0 = Monday), so they are rewritten as day names;
- when both day of month and day of week are restricted, standard cron fires
  when *either* matches, so two triggers are evaluated and the earliest wins.
"""
import logging
from datetime import date, datetime, time, timezone, tzinfo

from apscheduler.triggers.cron import CronTrigger

from clock import resolve_timezone
from errors import InvalidScheduleError

logger = logging.getLogger(__name__)

ALIASES = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "daily": "0 0 * * *",
    "weekdays": "0 0 * * 1-5",
    "weekends": "0 0 * * 0,6",
}

# Standard cron order: index is the cron day number (0 and 7 are Sunday)
_CRON_DAY_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]
# APScheduler weekday order
_APS_DAY_ORDER = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]


def _day_number(token: str) -> int:
    token = token.strip().lower()
    if token[:3] in _CRON_DAY_NAMES and len(token) >= 3:
        return _CRON_DAY_NAMES.index(token[:3])
    value = int(token)
    if not 0 <= value <= 7:
        raise ValueError(f"day of week out of range: {token}")
    return value


def _convert_day_of_week(field: str) -> str:
    """Rewrite a standard cron day-of-week field as APScheduler day names."""
    if field in ("*", "?"):
        return "*"
    days: set[int] = set()
    for part in field.split(","):
        step = 1
        has_step = "/" in part
        if has_step:
            part, step_text = part.split("/", 1)
            step = int(step_text)
            if step < 1:
                raise ValueError(f"invalid step: {step_text}")
        if part in ("*", "?"):
            start, end = 0, 6
        elif "-" in part:
            first, last = part.split("-", 1)
            start, end = _day_number(first), _day_number(last)
            if start > end:
                raise ValueError(f"invalid day range: {part}")
        else:
            start = _day_number(part)
            end = 6 if has_step else start
        days.update(n % 7 for n in range(start, end + 1, step))
    names = [_CRON_DAY_NAMES[n] for n in sorted(days)]
    return ",".join(sorted(names, key=_APS_DAY_ORDER.index))


def normalize_schedule(schedule: str) -> str:
    """Expand aliases and collapse whitespace; does not validate fields."""
    if schedule is None:
        raise InvalidScheduleError("", "empty schedule")
    text = " ".join(schedule.split())
    return ALIASES.get(text.lower(), text)


def build_triggers(schedule: str, tz: tzinfo) -> list[CronTrigger]:
    """Parse schedule into one or two CronTriggers in tz.

    Raises InvalidScheduleError on malformed input.
    """
    expression = normalize_schedule(schedule)
    fields = expression.split(" ")
    if len(fields) != 5:
        raise InvalidScheduleError(schedule, f"expected 5 fields, got {len(fields)}")
    minute, hour, day, month, day_of_week = fields
    try:
        day_of_week = _convert_day_of_week(day_of_week)
        day_restricted = day not in ("*", "?")
        dow_restricted = day_of_week != "*"
        day = "*" if day == "?" else day
        if day_restricted and dow_restricted:
            return [
                CronTrigger(minute=minute, hour=hour, day=day, month=month, timezone=tz),
                CronTrigger(minute=minute, hour=hour, month=month, day_of_week=day_of_week, timezone=tz),
            ]
        return [
            CronTrigger(minute=minute, hour=hour, day=day, month=month,
                        day_of_week=day_of_week, timezone=tz)
        ]
    except ValueError as e:
        raise InvalidScheduleError(schedule, str(e)) from e


def validate_schedule(schedule: str) -> str:
    """Return the normalized schedule, or raise InvalidScheduleError."""
    build_triggers(schedule, timezone.utc)
    return normalize_schedule(schedule)


def next_occurrence(schedule: str, start: datetime, tz: tzinfo) -> datetime | None:
    """First firing time at or after start (timezone-aware), expressed in tz."""
    candidates = [
        trigger.get_next_fire_time(None, start)
        for trigger in build_triggers(schedule, tz)
    ]
    candidates = [c for c in candidates if c is not None]
    if not candidates:
        return None
    return min(candidates).astimezone(tz)


def first_wall_clock_time(schedule: str, target_date: date) -> datetime | None:
    """Earliest naive wall-clock firing time on target_date, ignoring timezones."""
    start = datetime.combine(target_date, time.min, tzinfo=timezone.utc)
    occurrence = next_occurrence(schedule, start, timezone.utc)
    if occurrence is None or occurrence.date() != target_date:
        return None
    return occurrence.replace(tzinfo=None)


def to_local_instant(wall_time: datetime, tz: tzinfo) -> datetime:
    """Attach tz to a naive wall-clock time.

    A time inside a DST gap does not exist; it resolves to the first valid
    instant after the gap (the moment the clocks jump).
    """
    aware = wall_time.replace(tzinfo=tz)
    return aware.astimezone(timezone.utc).astimezone(tz)


class CronMatcher:
    """Answers "does this schedule fire on this calendar date?" for one timezone."""

    def __init__(self, timezone_name: str | None = None):
        self.timezone_name = timezone_name
        self.tz = resolve_timezone(timezone_name)

    def matches(self, schedule: str, target_date: date) -> bool:
        """True when the schedule fires at some point during target_date.

        Local midnight of target_date is converted to UTC and the next
        occurrence at or after that instant is taken; the schedule matches iff
        that occurrence falls on target_date in the local timezone.

        The trigger never fires at wall-clock times a spring-forward gap
        removes (in zones that jump at midnight, midnight itself). Such a
        firing happens at the end of the gap instead, so it still counts
        for target_date.
        Raises InvalidScheduleError for malformed schedules.
        """
        local_midnight = datetime.combine(target_date, time.min, tzinfo=self.tz)
        start = local_midnight.astimezone(timezone.utc)
        occurrence = next_occurrence(schedule, start, self.tz)
        if occurrence is not None and occurrence.date() == target_date:
            return True

        wall_time = first_wall_clock_time(schedule, target_date)
        if wall_time is None:
            return False
        instant = to_local_instant(wall_time, self.tz)
        in_gap = instant.replace(tzinfo=None) != wall_time
        if in_gap:
            logger.debug("%r falls in a DST gap on %s; fires at %s", schedule, target_date, instant)
        return in_gap and instant.date() == target_date

"""Worry-time reminders: at most one pending reminder per day record."""
import logging
from datetime import datetime, time
from typing import Optional

import config
from models import DayRecord
from notifications import send_worry_time_notification
from scheduler import TaskScheduler

logger = logging.getLogger(__name__)


def worry_reminder_id(day_record_id: int) -> str:
    return f"worry-reminder-{day_record_id}"


def schedule_worry_reminder(
    scheduler: TaskScheduler,
    day: DayRecord,
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    """
    Schedule, reschedule or cancel the reminder for a day record.
    A reminder exists only while the day has worries and its worry time is still ahead.
    Returns the reminder time, or None when no reminder is pending.
    """
    task_id = worry_reminder_id(day.id)
    if not (day.worries or "").strip():
        scheduler.cancel(task_id)
        return None

    worry_time = day.worry_time or config.DEFAULT_WORRY_TIME
    hour, minute = (int(part) for part in worry_time.split(":")[:2])
    remind_at = datetime.combine(day.date, time(hour, minute), tzinfo=scheduler.tz)
    now = now or datetime.now(scheduler.tz)
    if remind_at <= now:
        scheduler.cancel(task_id)
        return None

    scheduler.register_at(
        remind_at, task_id, send_worry_time_notification, day.id, day.date.isoformat(), worry_time
    )
    return remind_at

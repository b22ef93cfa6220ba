"""Background jobs: the nightly generation run and one-time reminders."""
import logging
from datetime import datetime
from typing import Callable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from clock import resolve_timezone

logger = logging.getLogger(__name__)

DAILY_GENERATION_JOB_ID = "recurring-priority-generation"


class TaskScheduler:
    """
    Thin wrapper over an APScheduler BackgroundScheduler.

    Jobs are keyed by task id and registering an id that is already pending
    replaces it, so callers can reschedule without cancelling first.
    """

    def __init__(self, timezone_name: str | None = None, scheduler: BackgroundScheduler | None = None):
        self.tz = resolve_timezone(timezone_name)
        self._scheduler = scheduler or BackgroundScheduler(timezone=self.tz)

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self, paused: bool = False) -> None:
        self._scheduler.start(paused=paused)
        logger.info("Scheduler started (%s)", self.tz)

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    def register_at(self, run_at: datetime, task_id: str, func: Callable, *args) -> None:
        """Run func(*args) once at run_at, replacing any pending task with the same id."""
        self._scheduler.add_job(
            func,
            trigger=DateTrigger(run_date=run_at, timezone=self.tz),
            id=task_id,
            args=args,
            replace_existing=True,
            misfire_grace_time=300,
        )
        logger.info("Scheduled %s at %s", task_id, run_at)

    def register_daily(self, task_id: str, func: Callable, hour: int = 0, minute: int = 0) -> None:
        self._scheduler.add_job(
            func,
            trigger=CronTrigger(hour=hour, minute=minute, timezone=self.tz),
            id=task_id,
            replace_existing=True,
            coalesce=True,
        )
        logger.info("Scheduled %s daily at %02d:%02d", task_id, hour, minute)

    def cancel(self, task_id: str) -> bool:
        """Remove a pending task. Returns False if there was nothing to cancel."""
        try:
            self._scheduler.remove_job(task_id)
        except JobLookupError:
            return False
        logger.info("Cancelled %s", task_id)
        return True

    def next_run(self, task_id: str) -> datetime | None:
        job = self._scheduler.get_job(task_id)
        # Jobs added before start() have no next_run_time yet
        return getattr(job, "next_run_time", None) if job else None

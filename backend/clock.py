"""Timezone resolution and "today" for the configured timezone."""
import logging
from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


def resolve_timezone(name: str | None) -> tzinfo:
    """Return the ZoneInfo for name, falling back to UTC when it is unknown."""
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Timezone %r not found; falling back to UTC", name)
        return timezone.utc


def now_in(name: str | None) -> datetime:
    return datetime.now(resolve_timezone(name))


def today_in(name: str | None) -> date:
    """Calendar date right now in the given timezone."""
    return now_in(name).date()

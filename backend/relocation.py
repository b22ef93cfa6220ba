"""Move an unfinished priority to the next day that still has a free slot."""
import logging
import time
from datetime import date, timedelta
from typing import Optional

import config
import database
from errors import (
    CapacityExhaustedError,
    InvalidOperationError,
    NotFoundError,
    RelocationCancelledError,
)
from models import MAX_PRIORITIES_PER_DAY, PriorityEntry, RelocationResult, lowest_free_rank

logger = logging.getLogger(__name__)


def _load_movable(conn, priority_id: int) -> tuple[date, PriorityEntry]:
    """Return (current date, priority), or raise if it cannot be moved."""
    found = database.get_priority(conn, priority_id)
    if found is None:
        raise NotFoundError(f"Priority {priority_id} not found")
    current_date, priority = found
    if priority.done:
        raise InvalidOperationError("Cannot move completed priorities")
    return current_date, priority


def _accepts(conn, candidate: date, priority: PriorityEntry) -> bool:
    """A day qualifies when it has a free slot and no entry from the same template."""
    if database.count_priorities_db(candidate, conn) >= MAX_PRIORITIES_PER_DAY:
        return False
    if priority.template_id is not None and database.day_has_template(conn, candidate, priority.template_id):
        return False
    return True


def _try_move(priority_id: int, source_date: date, candidate: date) -> Optional[RelocationResult]:
    """
    Move the priority onto candidate if it still qualifies.
    The check is repeated inside the write transaction; None means the day
    changed since it was scanned.
    """
    with database.transaction() as conn:
        current_date, priority = _load_movable(conn, priority_id)
        if current_date != source_date:
            raise InvalidOperationError(f"Priority {priority_id} was moved concurrently")
        if not _accepts(conn, candidate, priority):
            return None
        target = database.get_or_create_day(conn, candidate)
        rank = lowest_free_rank(target.taken_ranks())
        moved = database.move_priority(conn, priority_id, target.id, rank)
    return RelocationResult(moved_to_date=candidate, priority=moved)


def relocate_priority(
    priority_id: int,
    max_days: Optional[int] = None,
    timeout: Optional[float] = None,
) -> RelocationResult:
    """
    Move an incomplete priority to the first later day with fewer than three priorities.

    The scan goes forward one day at a time from the day after the priority's
    current date and stops at the first qualifying day. A generated priority
    skips days that already hold an entry from its template. The moved priority gets
    that day's lowest unused rank and is marked not done.

    Args:
        priority_id: Priority to move
        max_days: How many days ahead to look (default RELOCATION_SEARCH_DAYS)
        timeout: Seconds the scan may take before it is abandoned

    Raises:
        NotFoundError: unknown priority
        InvalidOperationError: the priority is completed
        CapacityExhaustedError: no free slot within max_days
        RelocationCancelledError: timeout hit; nothing was written
    """
    max_days = config.RELOCATION_SEARCH_DAYS if max_days is None else max_days
    deadline = time.monotonic() + timeout if timeout is not None else None

    with database.get_db() as conn:
        current_date, priority = _load_movable(conn, priority_id)

    for offset in range(1, max_days + 1):
        if deadline is not None and time.monotonic() >= deadline:
            raise RelocationCancelledError(
                f"Gave up looking for a free day for priority {priority_id} after {offset - 1} days"
            )
        candidate = current_date + timedelta(days=offset)
        with database.get_db() as conn:
            if not _accepts(conn, candidate, priority):
                continue
        result = _try_move(priority_id, current_date, candidate)
        if result is not None:
            logger.info("Moved priority %s from %s to %s", priority_id, current_date, candidate)
            return result
        logger.debug("Day %s changed during relocation of priority %s", candidate, priority_id)

    raise CapacityExhaustedError(f"No available day found within the next {max_days} days")

"""
Template lifecycle: every write to a recurring template keeps its generated
priorities in step with the template's active flag.

- active after the write: today's generation runs so the template participates
  starting today
- inactive after the write: generated priorities dated today or later are
  removed; earlier days keep theirs
"""
import logging
from datetime import date
from typing import Optional

import clock
import config
import database
from cron import validate_schedule
from errors import InvalidOperationError, NotFoundError
from models import RecurringTemplate, RecurringTemplateCreate, RecurringTemplateUpdate
from recurrence import generate_for_date

logger = logging.getLogger(__name__)


def _today(today: Optional[date]) -> date:
    return today or clock.today_in(config.APP_TIMEZONE)


def _after_write(template: RecurringTemplate, today: date) -> None:
    if template.is_active:
        generate_for_date(today)
    else:
        prune_future_entries(template.id, today)


def prune_future_entries(template_id: int, today: date) -> int:
    removed = database.delete_future_entries_for_template_db(template_id, today)
    logger.info("Removed %d future priorities for template %s from %s", removed, template_id, today)
    return removed


def create_template(data: RecurringTemplateCreate, today: Optional[date] = None) -> RecurringTemplate:
    """Validate and store a new template. Raises InvalidScheduleError before any write."""
    cron_expression = validate_schedule(data.cron_expression)
    template = database.create_template_db(
        data.name, cron_expression, rank=data.rank, is_active=data.is_active
    )
    logger.info("Created recurring template %s (%r)", template.id, template.cron_expression)
    if template.is_active:
        generate_for_date(_today(today))
    return template


def update_template(
    template_id: int,
    data: RecurringTemplateUpdate,
    today: Optional[date] = None,
) -> RecurringTemplate:
    """
    Apply the given fields. Entries generated before a schedule edit are kept as they are,
    even if the new schedule would not have produced them.
    """
    updates = data.model_dump(exclude_none=True)
    if "cron_expression" in updates:
        updates["cron_expression"] = validate_schedule(updates["cron_expression"])
    template = database.update_template_db(template_id, **updates)
    if template is None:
        raise NotFoundError(f"Recurring template {template_id} not found")
    _after_write(template, _today(today))
    return template


def deactivate_template(template_id: int, today: Optional[date] = None) -> RecurringTemplate:
    """Soft delete: clear the active flag and drop future generated priorities."""
    if database.get_template_db(template_id) is None:
        raise InvalidOperationError(f"Cannot deactivate unknown recurring template {template_id}")
    template = database.update_template_db(template_id, is_active=False)
    prune_future_entries(template_id, _today(today))
    return template


def toggle_template(template_id: int, today: Optional[date] = None) -> RecurringTemplate:
    current = database.get_template_db(template_id)
    if current is None:
        raise NotFoundError(f"Recurring template {template_id} not found")
    template = database.update_template_db(template_id, is_active=not current.is_active)
    _after_write(template, _today(today))
    return template

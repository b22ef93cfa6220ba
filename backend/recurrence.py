"""Materialize recurring templates into a day's priorities."""
import logging
import sqlite3
from datetime import date
from typing import Optional

import config
import database
from cron import CronMatcher
from errors import InvalidScheduleError
from models import (
    DayRecord,
    GenerationReport,
    PriorityEntry,
    RecurringTemplate,
    lowest_free_rank,
)

logger = logging.getLogger(__name__)


def matching_templates(
    target_date: date,
    templates: list[RecurringTemplate],
    matcher: CronMatcher,
    report: GenerationReport,
) -> list[RecurringTemplate]:
    """Templates whose schedule fires on target_date. Bad schedules are reported, not raised."""
    matches = []
    for template in templates:
        try:
            if matcher.matches(template.cron_expression, target_date):
                matches.append(template)
        except InvalidScheduleError:
            logger.error(
                "Invalid cron expression for template %s: %r",
                template.id, template.cron_expression, exc_info=True,
            )
            report.failed_template_ids.append(template.id)
    return matches


def plan_entries(
    target_date: date,
    templates: list[RecurringTemplate],
    day: DayRecord,
    report: GenerationReport,
) -> list[PriorityEntry]:
    """
    Decide which new entries the matching templates add to day.
    Pure function - no I/O. Appends the planned entries to day.priorities.

    A template already represented on the day, or whose entry the user removed
    from it, is skipped. Generation never grows a day past three priorities;
    overflow is dropped and reported.
    """
    present = day.template_ids()
    dismissed = set(day.dismissed_template_ids)
    planned = []
    for template in templates:
        if template.id in present or template.id in dismissed:
            logger.debug("Priority from template %s already handled for %s", template.id, target_date)
            report.skipped_template_ids.append(template.id)
            continue

        taken = day.taken_ranks()
        rank = template.rank if template.rank not in taken else lowest_free_rank(taken)
        if day.is_full() or rank is None:
            logger.warning(
                "Day %s is full; dropping priority '%s' from template %s",
                target_date, template.name, template.id,
            )
            report.dropped_template_ids.append(template.id)
            continue

        entry = PriorityEntry(name=template.name, done=False, rank=rank, template_id=template.id)
        day.priorities.append(entry)
        present.add(template.id)
        planned.append(entry)
    return planned


def reconcile_day(
    target_date: date,
    templates: list[RecurringTemplate],
    day: DayRecord,
    matcher: CronMatcher,
) -> tuple[GenerationReport, list[PriorityEntry]]:
    """Match templates against target_date and plan the entries to add to day."""
    report = GenerationReport(date=target_date)
    matches = matching_templates(target_date, templates, matcher, report)
    return report, plan_entries(target_date, matches, day, report)


def generate_for_date(
    target_date: date,
    matcher: Optional[CronMatcher] = None,
) -> GenerationReport:
    """
    Create the priorities active templates owe target_date.
    Safe to call repeatedly: templates already materialized on that day are skipped.
    The day's read-check-insert runs in one write transaction, so concurrent calls
    for the same date cannot both insert.
    """
    matcher = matcher or CronMatcher(config.APP_TIMEZONE)
    templates = database.list_templates_db(active_only=True)
    logger.info("Generating recurring priorities for %s", target_date)

    with database.transaction() as conn:
        day = database.get_day(conn, target_date) or DayRecord(date=target_date)
        report, planned = reconcile_day(target_date, templates, day, matcher)
        if not planned:
            logger.info("No recurring priorities to generate for %s", target_date)
            return report

        if day.id is None:
            day.id = database.get_or_create_day(conn, target_date).id
        for entry in planned:
            try:
                report.generated.append(database.insert_priority(conn, day.id, entry))
            except sqlite3.IntegrityError:
                logger.error(
                    "Could not store priority from template %s for %s",
                    entry.template_id, target_date, exc_info=True,
                )
                report.failed_template_ids.append(entry.template_id)
                continue
            logger.info(
                "Generated priority '%s' from template %s for %s",
                entry.name, entry.template_id, target_date,
            )

    logger.info("Generated %d recurring priorities for %s", len(report.generated), target_date)
    return report

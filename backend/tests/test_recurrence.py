"""
Tests for recurrence.py - matching templates and materializing them into day records.
"""
import pytest
import sys
import os
from concurrent.futures import ThreadPoolExecutor
from datetime import date

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database
from cron import CronMatcher
from lifecycle import create_template
from models import DayRecord, DayRecordSave, PriorityEntry, RecurringTemplate, RecurringTemplateCreate
from recurrence import generate_for_date, reconcile_day

SATURDAY = date(2025, 1, 25)
MONDAY = date(2025, 1, 27)


def make_template(template_id, name="Task", cron="0 0 * * *", rank=1):
    return RecurringTemplate(
        id=template_id, name=name, cron_expression=cron, rank=rank,
        is_active=True, created_at="2025-01-01T00:00:00+00:00",
    )


def entry_multiset(day: DayRecord):
    return sorted((p.name, p.rank, p.template_id) for p in day.priorities)


class TestReconcileDay:
    """Tests for the pure reconcile_day step (no database)."""

    def test_appends_matching_templates(self):
        day = DayRecord(date=MONDAY)
        templates = [make_template(1, "Standup", "0 0 * * 1-5", 1), make_template(2, "Gym", "0 0 * * 6", 2)]

        report, planned = reconcile_day(MONDAY, templates, day, CronMatcher("UTC"))

        assert [(p.name, p.rank, p.template_id) for p in planned] == [("Standup", 1, 1)]
        assert day.priorities == planned
        assert planned[0].done is False
        assert report.failed_template_ids == []

    def test_skips_templates_already_present(self):
        day = DayRecord(date=MONDAY, priorities=[
            PriorityEntry(id=10, name="Renamed standup", rank=1, template_id=1),
        ])

        report, planned = reconcile_day(MONDAY, [make_template(1, "Standup")], day, CronMatcher("UTC"))

        assert planned == []
        assert report.skipped_template_ids == [1]
        assert day.priorities[0].name == "Renamed standup"

    def test_skips_dismissed_templates(self):
        day = DayRecord(date=MONDAY, dismissed_template_ids=[1])

        report, planned = reconcile_day(MONDAY, [make_template(1)], day, CronMatcher("UTC"))

        assert planned == []
        assert report.skipped_template_ids == [1]

    def test_full_day_drops_extra_matches(self):
        day = DayRecord(date=MONDAY, priorities=[
            PriorityEntry(id=1, name="A", rank=1),
            PriorityEntry(id=2, name="B", rank=2),
        ])
        templates = [make_template(1, "T1", rank=3), make_template(2, "T2", rank=3), make_template(3, "T3", rank=1)]

        report, planned = reconcile_day(MONDAY, templates, day, CronMatcher("UTC"))

        assert [p.template_id for p in planned] == [1]
        assert report.dropped_template_ids == [2, 3]
        assert len(day.priorities) == 3

    def test_taken_rank_uses_lowest_free_rank(self):
        day = DayRecord(date=MONDAY, priorities=[PriorityEntry(id=1, name="Mine", rank=1)])

        _, planned = reconcile_day(MONDAY, [make_template(1, "Standup", rank=1)], day, CronMatcher("UTC"))

        assert planned[0].rank == 2
        assert sorted(day.taken_ranks()) == [1, 2]

    def test_invalid_schedule_does_not_stop_batch(self):
        day = DayRecord(date=MONDAY)
        templates = [make_template(1, "Broken", "every day"), make_template(2, "Fine", rank=2)]

        report, planned = reconcile_day(MONDAY, templates, day, CronMatcher("UTC"))

        assert [p.template_id for p in planned] == [2]
        assert report.failed_template_ids == [1]


class TestGenerateForDate:
    """Tests for generate_for_date against the database."""

    def test_standup_scenario(self, test_db):
        """Weekday template: nothing on Saturday, one entry on Monday, rerun changes nothing."""
        template = create_template(
            RecurringTemplateCreate(name="Standup", cron_expression="weekdays", rank=1),
            today=SATURDAY,
        )
        assert database.get_day_db(SATURDAY) is None

        report = generate_for_date(MONDAY)
        assert len(report.generated) == 1
        day = database.get_day_db(MONDAY)
        assert entry_multiset(day) == [("Standup", 1, template.id)]

        again = generate_for_date(MONDAY)
        assert again.generated == []
        assert again.skipped_template_ids == [template.id]
        assert database.get_day_db(MONDAY) == day

    def test_idempotent(self, test_db):
        database.create_template_db("Plan week", "0 9 * * 1", rank=1)
        database.create_template_db("Inbox zero", "0 0 * * *", rank=2)

        generate_for_date(MONDAY)
        once = entry_multiset(database.get_day_db(MONDAY))
        generate_for_date(MONDAY)
        twice = entry_multiset(database.get_day_db(MONDAY))

        assert once == twice
        assert len(once) == 2

    def test_no_day_record_when_nothing_matches(self, test_db):
        database.create_template_db("Gym", "0 0 * * 6", rank=1)

        report = generate_for_date(MONDAY)

        assert report.generated == []
        assert database.get_day_db(MONDAY) is None

    def test_inactive_templates_ignored(self, test_db):
        database.create_template_db("Paused", "0 0 * * *", rank=1, is_active=False)

        assert generate_for_date(MONDAY).generated == []

    def test_capacity_is_never_exceeded(self, test_db, add_priority):
        add_priority(MONDAY, "Write report", 1)
        add_priority(MONDAY, "Call mum", 2)
        for name in ("A", "B", "C"):
            database.create_template_db(name, "0 0 * * *", rank=3)

        report = generate_for_date(MONDAY)

        assert len(report.generated) == 1
        assert len(report.dropped_template_ids) == 2
        assert database.count_priorities_db(MONDAY) == 3

    def test_malformed_template_is_skipped(self, test_db):
        broken = database.create_template_db("Broken", "whenever", rank=1)
        fine = database.create_template_db("Fine", "0 0 * * *", rank=2)

        report = generate_for_date(MONDAY)

        assert report.failed_template_ids == [broken.id]
        assert [p.template_id for p in report.generated] == [fine.id]

    def test_removed_entry_not_resurrected(self, test_db):
        template = database.create_template_db("Standup", "0 0 * * *", rank=1)
        generate_for_date(MONDAY)

        # User clears the generated priority from the day
        database.save_day_db(DayRecordSave(date=MONDAY, priorities=[]))
        generate_for_date(MONDAY)

        day = database.get_day_db(MONDAY)
        assert day.priorities == []
        assert day.dismissed_template_ids == [template.id]

    def test_concurrent_generation_creates_one_entry(self, test_db):
        database.create_template_db("Standup", "0 0 * * *", rank=1)

        with ThreadPoolExecutor(max_workers=6) as pool:
            reports = list(pool.map(lambda _: generate_for_date(MONDAY), range(6)))

        assert sum(len(r.generated) for r in reports) == 1
        assert database.count_priorities_db(MONDAY) == 1

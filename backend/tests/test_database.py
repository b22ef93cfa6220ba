"""
Tests for database.py - template CRUD, day record saves and priority queries.
"""
import pytest
import sqlite3
import sys
import os
from datetime import date

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database
from models import DayRecordSave, GoalSave, PriorityInput, StepInput
from database import (
    create_template_db,
    get_template_db,
    list_templates_db,
    update_template_db,
    get_day_db,
    save_day_db,
    count_priorities_db,
    delete_future_entries_for_template_db,
)

DAY = date(2025, 2, 3)


class TestTemplateCRUD:
    """Tests for recurring template storage."""

    def test_create_template(self, test_db):
        template = create_template_db("Standup", "0 0 * * 1-5", rank=2)

        assert template.id is not None
        assert template.name == "Standup"
        assert template.rank == 2
        assert template.is_active is True
        assert get_template_db(template.id) == template

    def test_get_template_not_found(self, test_db):
        assert get_template_db(99) is None

    def test_list_orders_by_rank_then_name(self, test_db):
        create_template_db("Zebra", "@daily", rank=1)
        create_template_db("Apple", "@daily", rank=2)
        create_template_db("Mango", "@daily", rank=1)

        assert [t.name for t in list_templates_db()] == ["Mango", "Zebra", "Apple"]

    def test_list_active_only(self, test_db):
        create_template_db("On", "@daily")
        create_template_db("Off", "@daily", is_active=False)

        assert [t.name for t in list_templates_db(active_only=True)] == ["On"]
        assert len(list_templates_db()) == 2

    def test_update_template(self, test_db):
        template = create_template_db("Standup", "@daily")

        updated = update_template_db(template.id, name="Sync", is_active=False, rank=None)

        assert updated.name == "Sync"
        assert updated.is_active is False
        assert updated.rank == template.rank
        assert updated.created_at == template.created_at

    def test_update_template_not_found(self, test_db):
        assert update_template_db(5, name="x") is None

    def test_rank_out_of_range_rejected_by_schema(self, test_db):
        with pytest.raises(sqlite3.IntegrityError):
            create_template_db("Bad", "@daily", rank=4)


class TestSaveDay:
    """Tests for save_day_db rank-matching semantics."""

    def test_creates_day(self, test_db):
        record, created = save_day_db(DayRecordSave(
            date=DAY,
            brain_dump="lots",
            priorities=[PriorityInput(name="Write", rank=1), PriorityInput(name="Run", rank=2)],
        ))

        assert created is True
        assert record.brain_dump == "lots"
        assert [(p.name, p.rank, p.done) for p in record.priorities] == [("Write", 1, False), ("Run", 2, False)]

    def test_updates_in_place_by_rank(self, test_db):
        first, _ = save_day_db(DayRecordSave(date=DAY, priorities=[PriorityInput(name="Write", rank=1)]))

        record, created = save_day_db(DayRecordSave(
            date=DAY, priorities=[PriorityInput(name="Write more", rank=1, done=True)],
        ))

        assert created is False
        assert record.id == first.id
        assert record.priorities[0].id == first.priorities[0].id
        assert record.priorities[0].name == "Write more"
        assert record.priorities[0].done is True

    def test_blank_or_missing_rank_removes(self, test_db):
        save_day_db(DayRecordSave(date=DAY, priorities=[
            PriorityInput(name="A", rank=1), PriorityInput(name="B", rank=2), PriorityInput(name="C", rank=3),
        ]))

        record, _ = save_day_db(DayRecordSave(date=DAY, priorities=[
            PriorityInput(name="A", rank=1), PriorityInput(name="  ", rank=2),
        ]))

        assert [p.name for p in record.priorities] == ["A"]

    def test_generated_entry_keeps_template_on_edit(self, test_db, add_priority):
        template = create_template_db("Standup", "@daily")
        add_priority(DAY, "Standup", 1, template_id=template.id)

        record, _ = save_day_db(DayRecordSave(date=DAY, priorities=[PriorityInput(name="Standup", rank=1, done=True)]))

        assert record.priorities[0].template_id == template.id
        assert record.priorities[0].done is True
        assert record.dismissed_template_ids == []

    def test_removing_generated_entry_records_dismissal(self, test_db, add_priority):
        template = create_template_db("Standup", "@daily")
        add_priority(DAY, "Standup", 1, template_id=template.id)

        record, _ = save_day_db(DayRecordSave(date=DAY, priorities=[]))

        assert record.priorities == []
        assert record.dismissed_template_ids == [template.id]

    def test_too_many_priorities_rejected(self):
        with pytest.raises(ValueError):
            DayRecordSave(date=DAY, priorities=[PriorityInput(name=str(r), rank=r) for r in (1, 2, 3, 3)])

    def test_duplicate_rank_rejected(self):
        with pytest.raises(ValueError):
            DayRecordSave(date=DAY, priorities=[PriorityInput(name="a", rank=1), PriorityInput(name="b", rank=1)])

    def test_worry_time_normalized(self):
        assert DayRecordSave(date=DAY, worry_time="7:05").worry_time == "07:05"
        assert DayRecordSave(date=DAY, worry_time="").worry_time is None
        with pytest.raises(ValueError):
            DayRecordSave(date=DAY, worry_time="evening")


class TestPriorityQueries:
    """Tests for counting and pruning queries."""

    def test_count_missing_day_is_zero(self, test_db):
        assert count_priorities_db(DAY) == 0

    def test_duplicate_rank_rejected_by_schema(self, test_db, add_priority):
        add_priority(DAY, "A", 1)
        with pytest.raises(sqlite3.IntegrityError):
            add_priority(DAY, "B", 1)

    def test_same_template_twice_rejected_by_schema(self, test_db, add_priority):
        template = create_template_db("Standup", "@daily")
        add_priority(DAY, "Standup", 1, template_id=template.id)
        with pytest.raises(sqlite3.IntegrityError):
            add_priority(DAY, "Standup again", 2, template_id=template.id)

    def test_delete_future_entries_only_from_date(self, test_db, add_priority):
        template = create_template_db("Standup", "@daily")
        add_priority(date(2025, 2, 1), "Standup", 1, template_id=template.id)
        add_priority(date(2025, 2, 3), "Standup", 1, template_id=template.id)
        add_priority(date(2025, 2, 4), "Standup", 2, template_id=template.id)
        add_priority(date(2025, 2, 4), "Mine", 1)

        removed = delete_future_entries_for_template_db(template.id, date(2025, 2, 3))

        assert removed == 2
        assert count_priorities_db(date(2025, 2, 1)) == 1
        assert count_priorities_db(date(2025, 2, 3)) == 0
        assert [p.name for p in get_day_db(date(2025, 2, 4)).priorities] == ["Mine"]

    def test_failed_transaction_rolls_back(self, test_db):
        with pytest.raises(RuntimeError):
            with database.transaction() as conn:
                database.get_or_create_day(conn, DAY)
                raise RuntimeError("boom")

        assert get_day_db(DAY) is None


class TestGoals:
    """Tests for goal and step storage."""

    def test_create_goal_with_steps_in_order(self, test_db):
        goal = database.create_goal_db(GoalSave(
            title="Run a half marathon",
            type="long",
            steps=[StepInput(text="Buy shoes"), StepInput(text="Run 5k", done=True)],
        ))

        assert goal.id is not None
        assert [(s.text, s.done) for s in goal.steps] == [("Buy shoes", False), ("Run 5k", True)]
        assert database.get_goal_db(goal.id) == goal

    def test_update_replaces_steps(self, test_db):
        goal = database.create_goal_db(GoalSave(title="Tidy", type="short", steps=[StepInput(text="Desk")]))

        updated = database.update_goal_db(goal.id, GoalSave(
            title="Tidy flat", type="medium", steps=[StepInput(text="Kitchen"), StepInput(text="Hall")],
        ))

        assert updated.title == "Tidy flat"
        assert updated.type == "medium"
        assert [s.text for s in updated.steps] == ["Kitchen", "Hall"]
        assert updated.created_at == goal.created_at

    def test_update_unknown_goal(self, test_db):
        assert database.update_goal_db(3, GoalSave(title="x", type="short")) is None

    def test_delete_goal_removes_steps(self, test_db):
        goal = database.create_goal_db(GoalSave(title="Tidy", type="short", steps=[StepInput(text="Desk")]))

        assert database.delete_goal_db(goal.id) is True
        assert database.get_goal_db(goal.id) is None
        assert database.update_step_db(goal.steps[0].id, StepInput(text="Desk")) is None
        assert database.delete_goal_db(goal.id) is False

    def test_update_step(self, test_db):
        goal = database.create_goal_db(GoalSave(title="Tidy", type="short", steps=[StepInput(text="Desk")]))

        step = database.update_step_db(goal.steps[0].id, StepInput(text="Desk drawers", done=True))

        assert step.goal_id == goal.id
        assert (step.text, step.done) == ("Desk drawers", True)

    def test_invalid_goal_type_rejected(self):
        with pytest.raises(ValueError):
            GoalSave(title="Someday", type="eventually")

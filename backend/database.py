import sqlite3
import json
from datetime import date, datetime, timezone
from typing import Optional
from contextlib import contextmanager

import config
from models import DayRecord, DayRecordSave, Goal, GoalSave, PriorityEntry, RecurringTemplate, Step, StepInput

DATABASE_PATH = config.DATABASE_PATH

# Seconds a writer waits for another writer's transaction to finish
BUSY_TIMEOUT = 10.0


def _connect(**kwargs) -> sqlite3.Connection:
    conn = sqlite3.connect(DATABASE_PATH, timeout=BUSY_TIMEOUT, **kwargs)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_db():
    """Context manager for database connections."""
    conn = _connect()
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction():
    """
    Write transaction that holds the database write lock from the first statement.
    BEGIN IMMEDIATE makes read-check-write sequences (generation, relocation)
    mutually exclusive across connections, so a check is never stale at write time.
    """
    conn = _connect(isolation_level=None)
    try:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")
    finally:
        conn.close()


def init_db():
    """Initialize database by running Alembic migrations."""
    import subprocess
    import os

    # Run alembic upgrade from the backend directory against DATABASE_PATH
    backend_dir = os.path.dirname(os.path.abspath(__file__))
    env = dict(os.environ, ALEMBIC_DATABASE_URL=f"sqlite:///{os.path.abspath(DATABASE_PATH)}")
    subprocess.run(
        ["alembic", "upgrade", "head"],
        cwd=backend_dir,
        env=env,
        check=True
    )


# Row conversion
def _row_to_template(row) -> RecurringTemplate:
    return RecurringTemplate(
        id=row["id"],
        name=row["name"],
        cron_expression=row["cron_expression"],
        is_active=bool(row["is_active"]),
        rank=row["rank"],
        created_at=row["created_at"],
    )


def _row_to_priority(row) -> PriorityEntry:
    return PriorityEntry(
        id=row["id"],
        name=row["name"],
        done=bool(row["done"]),
        rank=row["rank"],
        template_id=row["template_id"],
    )


def _load_day(conn, row) -> DayRecord:
    """Build a DayRecord (with its priorities ordered by rank) from a day_records row."""
    priorities = conn.execute(
        "SELECT * FROM priority_entries WHERE day_record_id = ? ORDER BY rank",
        (row["id"],)
    ).fetchall()
    return DayRecord(
        id=row["id"],
        date=date.fromisoformat(row["date"]),
        brain_dump=row["brain_dump"],
        worries=row["worries"],
        worry_time=row["worry_time"],
        gratitude=row["gratitude"],
        priorities=[_row_to_priority(p) for p in priorities],
        dismissed_template_ids=json.loads(row["dismissed_template_ids"] or "[]"),
    )


# Template operations
def create_template_db(
    name: str,
    cron_expression: str,
    rank: int = 1,
    is_active: bool = True
) -> RecurringTemplate:
    created_at = datetime.now(timezone.utc).isoformat()
    with get_db() as conn:
        cursor = conn.execute(
            """INSERT INTO recurring_templates (name, cron_expression, is_active, rank, created_at)
               VALUES (?, ?, ?, ?, ?)""",
            (name, cron_expression, int(is_active), rank, created_at)
        )
        conn.commit()
        template_id = cursor.lastrowid

    return RecurringTemplate(
        id=template_id,
        name=name,
        cron_expression=cron_expression,
        is_active=is_active,
        rank=rank,
        created_at=created_at,
    )


def get_template_db(template_id: int) -> Optional[RecurringTemplate]:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM recurring_templates WHERE id = ?", (template_id,)).fetchone()
        return _row_to_template(row) if row else None


def list_templates_db(active_only: bool = False) -> list[RecurringTemplate]:
    query = "SELECT * FROM recurring_templates"
    if active_only:
        query += " WHERE is_active = 1"
    query += " ORDER BY rank, name"
    with get_db() as conn:
        return [_row_to_template(row) for row in conn.execute(query).fetchall()]


def update_template_db(template_id: int, **updates) -> Optional[RecurringTemplate]:
    """
    Update a template with any fields provided.
    Only updates fields that differ from current values; None values are ignored.

    Args:
        template_id: Template ID to update
        **updates: Field names and values (name, cron_expression, is_active, rank)
    """
    with get_db() as conn:
        row = conn.execute("SELECT * FROM recurring_templates WHERE id = ?", (template_id,)).fetchone()
        if not row:
            return None

        keys = row.keys()
        changes = {}
        for field, new_value in updates.items():
            if field not in keys or field in ("id", "created_at") or new_value is None:
                continue
            # Convert bool to int for comparison with SQLite storage
            if isinstance(new_value, bool):
                new_value = int(new_value)
            if new_value != row[field]:
                changes[field] = new_value

        if changes:
            set_clause = ", ".join(f"{field} = ?" for field in changes.keys())
            values = list(changes.values()) + [template_id]
            conn.execute(f"UPDATE recurring_templates SET {set_clause} WHERE id = ?", values)
            conn.commit()

        updated_row = conn.execute("SELECT * FROM recurring_templates WHERE id = ?", (template_id,)).fetchone()
        return _row_to_template(updated_row)


def delete_future_entries_for_template_db(template_id: int, from_date: date) -> int:
    """
    Delete every priority generated by template_id on days dated from_date or later.
    Completion is ignored; earlier days are never touched.
    Returns the number of deleted entries.
    """
    with transaction() as conn:
        cursor = conn.execute(
            """DELETE FROM priority_entries
               WHERE template_id = ?
                 AND day_record_id IN (SELECT id FROM day_records WHERE date >= ?)""",
            (template_id, from_date.isoformat())
        )
        return cursor.rowcount


# Day record operations
def get_day(conn, target_date: date) -> Optional[DayRecord]:
    row = conn.execute("SELECT * FROM day_records WHERE date = ?", (target_date.isoformat(),)).fetchone()
    return _load_day(conn, row) if row else None


def get_or_create_day(conn, target_date: date) -> DayRecord:
    """Fetch the day record for target_date, inserting an empty one if absent."""
    day = get_day(conn, target_date)
    if day:
        return day
    cursor = conn.execute("INSERT INTO day_records (date) VALUES (?)", (target_date.isoformat(),))
    return DayRecord(id=cursor.lastrowid, date=target_date)


def get_day_db(target_date: date) -> Optional[DayRecord]:
    with get_db() as conn:
        return get_day(conn, target_date)


def list_days_db(start: date, end: date) -> list[DayRecord]:
    """Day records with start <= date <= end, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM day_records WHERE date >= ? AND date <= ? ORDER BY date DESC",
            (start.isoformat(), end.isoformat())
        ).fetchall()
        return [_load_day(conn, row) for row in rows]


def count_priorities_db(target_date: date, conn=None) -> int:
    query = """SELECT COUNT(*) FROM priority_entries p
               JOIN day_records d ON d.id = p.day_record_id
               WHERE d.date = ?"""
    if conn is not None:
        return conn.execute(query, (target_date.isoformat(),)).fetchone()[0]
    with get_db() as own_conn:
        return own_conn.execute(query, (target_date.isoformat(),)).fetchone()[0]


def day_has_template(conn, target_date: date, template_id: int) -> bool:
    """True when target_date already holds a priority generated by template_id."""
    row = conn.execute(
        """SELECT 1 FROM priority_entries p
           JOIN day_records d ON d.id = p.day_record_id
           WHERE d.date = ? AND p.template_id = ?""",
        (target_date.isoformat(), template_id)
    ).fetchone()
    return row is not None


def insert_priority(conn, day_record_id: int, entry: PriorityEntry) -> PriorityEntry:
    cursor = conn.execute(
        """INSERT INTO priority_entries (day_record_id, name, done, rank, template_id)
           VALUES (?, ?, ?, ?, ?)""",
        (day_record_id, entry.name, int(entry.done), entry.rank, entry.template_id)
    )
    return entry.model_copy(update={"id": cursor.lastrowid})


def get_priority(conn, priority_id: int) -> Optional[tuple[date, PriorityEntry]]:
    """Return (owning day date, entry) for a priority id."""
    row = conn.execute(
        """SELECT p.*, d.date AS day_date FROM priority_entries p
           JOIN day_records d ON d.id = p.day_record_id
           WHERE p.id = ?""",
        (priority_id,)
    ).fetchone()
    if not row:
        return None
    return date.fromisoformat(row["day_date"]), _row_to_priority(row)


def get_priority_db(priority_id: int) -> Optional[tuple[date, PriorityEntry]]:
    with get_db() as conn:
        return get_priority(conn, priority_id)


def move_priority(conn, priority_id: int, day_record_id: int, rank: int) -> PriorityEntry:
    """Re-own a priority: point it at another day record with a new rank, not done."""
    conn.execute(
        "UPDATE priority_entries SET day_record_id = ?, rank = ?, done = 0 WHERE id = ?",
        (day_record_id, rank, priority_id)
    )
    row = conn.execute("SELECT * FROM priority_entries WHERE id = ?", (priority_id,)).fetchone()
    return _row_to_priority(row)


def save_day_db(payload: DayRecordSave) -> tuple[DayRecord, bool]:
    """
    Create or update the day record for payload.date.
    Journal fields are replaced. Priorities are matched by rank: an existing rank is
    updated in place, a new rank with a non-blank name is added, and ranks missing
    from the payload (or sent with a blank name) are removed. Removing a generated
    priority remembers its template so generation will not bring it back that day.

    Returns (day record, created).
    """
    incoming = {p.rank: p for p in payload.priorities if p.name.strip()}
    with transaction() as conn:
        existing = get_day(conn, payload.date)
        created = existing is None
        if created:
            existing = get_or_create_day(conn, payload.date)

        dismissed = list(existing.dismissed_template_ids)
        for priority in existing.priorities:
            wanted = incoming.get(priority.rank)
            if wanted is None:
                conn.execute("DELETE FROM priority_entries WHERE id = ?", (priority.id,))
                if priority.template_id is not None and priority.template_id not in dismissed:
                    dismissed.append(priority.template_id)
            elif wanted.name != priority.name or wanted.done != priority.done:
                conn.execute(
                    "UPDATE priority_entries SET name = ?, done = ? WHERE id = ?",
                    (wanted.name, int(wanted.done), priority.id)
                )

        existing_ranks = existing.taken_ranks()
        for rank, wanted in sorted(incoming.items()):
            if rank not in existing_ranks:
                insert_priority(conn, existing.id, PriorityEntry(name=wanted.name, done=wanted.done, rank=rank))

        conn.execute(
            """UPDATE day_records
               SET brain_dump = ?, worries = ?, worry_time = ?, gratitude = ?, dismissed_template_ids = ?
               WHERE id = ?""",
            (payload.brain_dump, payload.worries, payload.worry_time, payload.gratitude,
             json.dumps(dismissed), existing.id)
        )
        return get_day(conn, payload.date), created


# Goal operations
def _row_to_step(row) -> Step:
    return Step(id=row["id"], goal_id=row["goal_id"], text=row["text"], done=bool(row["done"]))


def _load_goal(conn, row) -> Goal:
    steps = conn.execute(
        "SELECT * FROM steps WHERE goal_id = ? ORDER BY position, id", (row["id"],)
    ).fetchall()
    return Goal(
        id=row["id"],
        title=row["title"],
        type=row["type"],
        created_at=row["created_at"],
        steps=[_row_to_step(s) for s in steps],
    )


def _insert_steps(conn, goal_id: int, steps: list[StepInput]):
    for position, step in enumerate(steps):
        conn.execute(
            "INSERT INTO steps (goal_id, text, done, position) VALUES (?, ?, ?, ?)",
            (goal_id, step.text, int(step.done), position)
        )


def list_goals_db() -> list[Goal]:
    with get_db() as conn:
        rows = conn.execute("SELECT * FROM goals ORDER BY created_at, id").fetchall()
        return [_load_goal(conn, row) for row in rows]


def get_goal_db(goal_id: int) -> Optional[Goal]:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM goals WHERE id = ?", (goal_id,)).fetchone()
        return _load_goal(conn, row) if row else None


def create_goal_db(data: GoalSave) -> Goal:
    created_at = datetime.now(timezone.utc).isoformat()
    with transaction() as conn:
        cursor = conn.execute(
            "INSERT INTO goals (title, type, created_at) VALUES (?, ?, ?)",
            (data.title, data.type, created_at)
        )
        goal_id = cursor.lastrowid
        _insert_steps(conn, goal_id, data.steps)
        row = conn.execute("SELECT * FROM goals WHERE id = ?", (goal_id,)).fetchone()
        return _load_goal(conn, row)


def update_goal_db(goal_id: int, data: GoalSave) -> Optional[Goal]:
    """Replace title, type and the whole step list. Returns None for an unknown goal."""
    with transaction() as conn:
        cursor = conn.execute(
            "UPDATE goals SET title = ?, type = ? WHERE id = ?",
            (data.title, data.type, goal_id)
        )
        if cursor.rowcount == 0:
            return None
        conn.execute("DELETE FROM steps WHERE goal_id = ?", (goal_id,))
        _insert_steps(conn, goal_id, data.steps)
        row = conn.execute("SELECT * FROM goals WHERE id = ?", (goal_id,)).fetchone()
        return _load_goal(conn, row)


def delete_goal_db(goal_id: int) -> bool:
    """Delete a goal and its steps. Returns True if it existed."""
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM goals WHERE id = ?", (goal_id,))
        conn.commit()
        return cursor.rowcount > 0


def update_step_db(step_id: int, data: StepInput) -> Optional[Step]:
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE steps SET text = ?, done = ? WHERE id = ?",
            (data.text, int(data.done), step_id)
        )
        conn.commit()
        if cursor.rowcount == 0:
            return None
        row = conn.execute("SELECT * FROM steps WHERE id = ?", (step_id,)).fetchone()
        return _row_to_step(row)

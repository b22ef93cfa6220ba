"""
Shared pytest fixtures for backend tests.
Uses a temporary SQLite file per test for isolation.
"""
import pytest
import sqlite3
import sys
import os
from datetime import date

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import config
import database

SCHEMA = """
    CREATE TABLE recurring_templates (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        cron_expression TEXT NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1,
        rank INTEGER NOT NULL CHECK (rank BETWEEN 1 AND 3),
        created_at TEXT NOT NULL
    );

    CREATE TABLE day_records (
        id INTEGER PRIMARY KEY,
        date TEXT NOT NULL UNIQUE,
        brain_dump TEXT,
        worries TEXT,
        worry_time TEXT,
        gratitude TEXT,
        dismissed_template_ids TEXT NOT NULL DEFAULT '[]'
    );

    CREATE TABLE priority_entries (
        id INTEGER PRIMARY KEY,
        day_record_id INTEGER NOT NULL REFERENCES day_records(id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        done INTEGER NOT NULL DEFAULT 0,
        rank INTEGER NOT NULL CHECK (rank BETWEEN 1 AND 3),
        template_id INTEGER REFERENCES recurring_templates(id) ON DELETE SET NULL,
        UNIQUE (day_record_id, rank)
    );

    CREATE INDEX ix_priority_entries_template_id ON priority_entries (template_id);
    CREATE UNIQUE INDEX ux_priority_entries_day_template
        ON priority_entries (day_record_id, template_id)
        WHERE template_id IS NOT NULL;

    CREATE TABLE goals (
        id INTEGER PRIMARY KEY,
        title TEXT NOT NULL,
        type TEXT NOT NULL CHECK (type IN ('short', 'medium', 'long')),
        created_at TEXT NOT NULL
    );

    CREATE TABLE steps (
        id INTEGER PRIMARY KEY,
        goal_id INTEGER NOT NULL REFERENCES goals(id) ON DELETE CASCADE,
        text TEXT NOT NULL,
        done INTEGER NOT NULL DEFAULT 0,
        position INTEGER NOT NULL DEFAULT 0
    );
"""


@pytest.fixture
def test_db(monkeypatch, tmp_path):
    """
    Create an isolated test database for each test.
    Uses a temp file (not :memory:) because database.py opens new connections per operation.
    """
    db_path = str(tmp_path / "test.db")
    monkeypatch.setattr(database, "DATABASE_PATH", db_path)
    monkeypatch.setattr(database, "init_db", lambda: None)
    monkeypatch.setattr(config, "APP_TIMEZONE", "UTC")

    # Create tables directly (skip alembic for tests)
    conn = sqlite3.connect(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()

    yield db_path


@pytest.fixture
def add_priority(test_db):
    """Insert a priority directly on a date: add_priority(date, name, rank, done=False, template_id=None)."""
    def _add(day: date, name: str, rank: int, done: bool = False, template_id=None) -> int:
        with database.transaction() as conn:
            record = database.get_or_create_day(conn, day)
            cursor = conn.execute(
                "INSERT INTO priority_entries (day_record_id, name, done, rank, template_id) VALUES (?, ?, ?, ?, ?)",
                (record.id, name, int(done), rank, template_id)
            )
            return cursor.lastrowid
    return _add


@pytest.fixture
def app_client(test_db, monkeypatch):
    """
    Create a test client for the FastAPI app.
    Skips alembic migrations and keeps the background scheduler stopped.
    """
    from fastapi.testclient import TestClient
    import main

    monkeypatch.setattr(config, "ENABLE_SCHEDULER", False)

    with TestClient(main.app) as client:
        yield client

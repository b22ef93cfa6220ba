"""Initial schema - day records and their priorities

Revision ID: 001
Revises: None
Create Date: 2025-11-01

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy import text

revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS day_records (
            id INTEGER PRIMARY KEY,
            date TEXT NOT NULL UNIQUE,
            brain_dump TEXT,
            worries TEXT,
            worry_time TEXT,
            gratitude TEXT
        )
    """))

    # At most one priority per rank per day; ranks are 1..3, so at most 3 per day
    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS priority_entries (
            id INTEGER PRIMARY KEY,
            day_record_id INTEGER NOT NULL REFERENCES day_records(id) ON DELETE CASCADE,
            name TEXT NOT NULL,
            done INTEGER NOT NULL DEFAULT 0,
            rank INTEGER NOT NULL CHECK (rank BETWEEN 1 AND 3),
            UNIQUE (day_record_id, rank)
        )
    """))


def downgrade() -> None:
    conn = op.get_bind()
    conn.execute(text("DROP TABLE IF EXISTS priority_entries"))
    conn.execute(text("DROP TABLE IF EXISTS day_records"))

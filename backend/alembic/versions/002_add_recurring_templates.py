"""Add recurring priority templates with cron schedules

Revision ID: 002
Revises: 001
Create Date: 2025-11-22

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy import text

revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS recurring_templates (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            cron_expression TEXT NOT NULL,
            is_active INTEGER NOT NULL DEFAULT 1,
            rank INTEGER NOT NULL CHECK (rank BETWEEN 1 AND 3),
            created_at TEXT NOT NULL
        )
    """))

    # Check existing columns
    columns = {row[1] for row in conn.execute(text("PRAGMA table_info(priority_entries)")).fetchall()}

    if "template_id" not in columns:
        conn.execute(text(
            "ALTER TABLE priority_entries ADD COLUMN template_id INTEGER "
            "REFERENCES recurring_templates(id) ON DELETE SET NULL"
        ))

    conn.execute(text(
        "CREATE INDEX IF NOT EXISTS ix_priority_entries_template_id ON priority_entries (template_id)"
    ))
    # A template materializes at most once per day
    conn.execute(text("""
        CREATE UNIQUE INDEX IF NOT EXISTS ux_priority_entries_day_template
        ON priority_entries (day_record_id, template_id)
        WHERE template_id IS NOT NULL
    """))


def downgrade() -> None:
    conn = op.get_bind()
    conn.execute(text("DROP INDEX IF EXISTS ux_priority_entries_day_template"))
    conn.execute(text("DROP INDEX IF EXISTS ix_priority_entries_template_id"))
    # SQLite can't drop the template_id column easily; it is left in place
    conn.execute(text("DROP TABLE IF EXISTS recurring_templates"))

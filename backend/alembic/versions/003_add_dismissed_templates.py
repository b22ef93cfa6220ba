"""Remember generated priorities the user removed from a day

Revision ID: 003
Revises: 002
Create Date: 2025-12-03

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy import text

revision: str = '003'
down_revision: Union[str, None] = '002'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()

    columns = {row[1] for row in conn.execute(text("PRAGMA table_info(day_records)")).fetchall()}

    if "dismissed_template_ids" not in columns:
        # JSON array of template ids
        conn.execute(text(
            "ALTER TABLE day_records ADD COLUMN dismissed_template_ids TEXT NOT NULL DEFAULT '[]'"
        ))


def downgrade() -> None:
    # SQLite doesn't support DROP COLUMN easily; downgrade is a no-op
    pass

"""Add direct download flag to users

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-18 15:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str | None = '0002'
down_revision: Union[str, None] = '0001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Apply schema changes."""
    op.add_column(
        "users",
        sa.Column(
            "can_download_directly",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
    )


def downgrade() -> None:
    """Revert schema changes."""
    op.drop_column("users", "can_download_directly")

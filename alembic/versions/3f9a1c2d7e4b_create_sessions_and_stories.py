"""Create sessions and stories tables

Revision ID: 3f9a1c2d7e4b
Revises:
Create Date: 2026-10-18 13:50:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9a1c2d7e4b'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "sessions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("code", sa.String(6), nullable=False),
        sa.Column("anchor_story_id", sa.String(36), nullable=True),
        sa.Column("anchor_story_points", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_modified", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_sessions_code", "sessions", ["code"], unique=True)

    op.create_table(
        "stories",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "session_id",
            sa.String(36),
            sa.ForeignKey("sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("position_x", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("position_y", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_anchor", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_stories_session_id", "stories", ["session_id"])
    op.create_index("ix_stories_is_anchor", "stories", ["is_anchor"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_stories_is_anchor", table_name="stories")
    op.drop_index("ix_stories_session_id", table_name="stories")
    op.drop_table("stories")
    op.drop_index("ix_sessions_code", table_name="sessions")
    op.drop_table("sessions")

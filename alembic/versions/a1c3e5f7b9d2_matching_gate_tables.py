"""matching gate tables: actions, conversations, notifications, match_events

Revision ID: a1c3e5f7b9d2
Revises:
Create Date: 2026-10-18 09:00:00.000000

The `profiles` table belongs to the profile service and is not managed here.
"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a1c3e5f7b9d2"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "actions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("actor_id", sa.String(36), nullable=False, index=True),
        sa.Column("target_id", sa.String(36), nullable=False, index=True),
        sa.Column("kind", sa.String(10), nullable=False),
        sa.Column("is_matched", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("matched_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("actor_id", "target_id", name="uq_actions_actor_target"),
    )
    op.create_index("ix_actions_actor_kind_created", "actions", ["actor_id", "kind", "created_at"])

    op.create_table(
        "conversations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("participant_low", sa.String(36), nullable=False),
        sa.Column("participant_high", sa.String(36), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("participant_low", "participant_high", name="uq_conversations_pair"),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("recipient_id", sa.String(36), nullable=False, index=True),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now(), index=True),
    )

    op.create_table(
        "match_events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("participant_low", sa.String(36), nullable=False),
        sa.Column("participant_high", sa.String(36), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending", index=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("conversation_id", sa.String(36), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("participant_low", "participant_high", name="uq_match_events_pair"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("match_events")
    op.drop_table("notifications")
    op.drop_table("conversations")
    op.drop_index("ix_actions_actor_kind_created", table_name="actions")
    op.drop_table("actions")

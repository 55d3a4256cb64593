"""initial schema

Revision ID: 5c1d2e7a9b30
Revises:
Create Date: 2026-10-17 09:12:44.512093

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1d2e7a9b30"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the projection, message graph and profile tables."""
    op.create_table(
        "communities",
        sa.Column("id", sa.String(length=512), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("allow_member_invites", sa.Boolean(), nullable=True),
        sa.Column("default_channel_permission", sa.String(length=16), nullable=True),
        sa.Column("creator", sa.String(length=512), nullable=True),
        sa.Column("last_marker", sa.BigInteger(), nullable=True),
        sa.Column("snapshot_marker", sa.BigInteger(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "channels",
        sa.Column("community_id", sa.String(length=512), nullable=False),
        sa.Column("id", sa.String(length=512), nullable=False),
        sa.Column("group_ref", sa.String(length=512), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.Text(), nullable=True),
        sa.Column("permission", sa.String(length=16), nullable=False),
        sa.Column("archived", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["community_id"], ["communities.id"]),
        sa.PrimaryKeyConstraint("community_id", "id"),
    )
    op.create_table(
        "roles",
        sa.Column("community_id", sa.String(length=512), nullable=False),
        sa.Column("identity", sa.String(length=512), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.ForeignKeyConstraint(["community_id"], ["communities.id"]),
        sa.PrimaryKeyConstraint("community_id", "identity"),
    )
    op.create_table(
        "bans",
        sa.Column("community_id", sa.String(length=512), nullable=False),
        sa.Column("identity", sa.String(length=512), nullable=False),
        sa.ForeignKeyConstraint(["community_id"], ["communities.id"]),
        sa.PrimaryKeyConstraint("community_id", "identity"),
    )
    op.create_table(
        "applied_events",
        sa.Column("community_id", sa.String(length=512), nullable=False),
        sa.Column("event_hash", sa.String(length=64), nullable=False),
        sa.Column("marker", sa.BigInteger(), nullable=False),
        sa.Column("event_type", sa.String(length=32), nullable=False),
        sa.ForeignKeyConstraint(["community_id"], ["communities.id"]),
        sa.PrimaryKeyConstraint("community_id", "event_hash"),
    )
    op.create_table(
        "messages",
        sa.Column("id", sa.String(length=512), nullable=False),
        sa.Column("channel_id", sa.String(length=512), nullable=False),
        sa.Column("sender", sa.String(length=512), nullable=False),
        sa.Column("sender_handle", sa.String(length=200), nullable=True),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("edit_of", sa.String(length=512), nullable=True),
        sa.Column("delete_of", sa.String(length=512), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("raw_content", sa.LargeBinary(), nullable=True),
        sa.Column("redacted", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_messages_channel", "messages", ["channel_id", "created_at"])
    op.create_table(
        "message_parents",
        sa.Column("message_id", sa.String(length=512), nullable=False),
        sa.Column("parent_id", sa.String(length=512), nullable=False),
        sa.ForeignKeyConstraint(["message_id"], ["messages.id"]),
        sa.PrimaryKeyConstraint("message_id", "parent_id"),
    )
    op.create_index("idx_parents_parent", "message_parents", ["parent_id"])
    op.create_table(
        "pending_redactions",
        sa.Column("message_id", sa.String(length=512), nullable=False),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("message_id"),
    )
    op.create_table(
        "profiles",
        sa.Column("identity", sa.String(length=512), nullable=False),
        sa.Column("inbox_ref", sa.String(length=512), nullable=True),
        sa.Column("handle", sa.String(length=200), nullable=True),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("identity"),
        sa.UniqueConstraint("inbox_ref"),
    )


def downgrade() -> None:
    op.drop_table("profiles")
    op.drop_table("pending_redactions")
    op.drop_index("idx_parents_parent", table_name="message_parents")
    op.drop_table("message_parents")
    op.drop_index("idx_messages_channel", table_name="messages")
    op.drop_table("messages")
    op.drop_table("applied_events")
    op.drop_table("bans")
    op.drop_table("roles")
    op.drop_table("channels")
    op.drop_table("communities")

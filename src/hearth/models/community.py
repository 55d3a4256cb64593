# src/hearth/models/community.py
"""SQLAlchemy models for the replicated community projection."""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hearth.db.session import Base
from hearth.db.time import utcnow

CHANNEL_PERMISSION_OPEN = "open"
CHANNEL_PERMISSION_MODERATED = "moderated"
CHANNEL_PERMISSION_READ_ONLY = "read-only"


class Community(Base):
    """One row per community known locally, keyed by its meta-channel group.

    The row is created on first sync and never deleted. Config columns stay
    NULL until the first ``community.config`` (or snapshot) is folded.
    """

    __tablename__ = "communities"

    id: Mapped[str] = mapped_column(String(512), primary_key=True)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    allow_member_invites: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    default_channel_permission: Mapped[str | None] = mapped_column(String(16), nullable=True)
    # Sender of the first accepted config event; survives snapshots.
    creator: Mapped[str | None] = mapped_column(String(512), nullable=True)
    # Ordering markers as supplied by the transport.
    last_marker: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    snapshot_marker: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class Channel(Base):
    """Chat channel announced on a community's meta channel."""

    __tablename__ = "channels"

    community_id: Mapped[str] = mapped_column(
        String(512),
        ForeignKey("communities.id"),
        primary_key=True,
    )
    id: Mapped[str] = mapped_column(String(512), primary_key=True)
    group_ref: Mapped[str] = mapped_column(String(512), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(Text, nullable=True)
    permission: Mapped[str] = mapped_column(
        String(16), nullable=False, default=CHANNEL_PERMISSION_OPEN
    )
    # Archived channels stay addressable for history.
    archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class Role(Base):
    """Explicit role assignment; identities without a row are members."""

    __tablename__ = "roles"

    community_id: Mapped[str] = mapped_column(
        String(512),
        ForeignKey("communities.id"),
        primary_key=True,
    )
    identity: Mapped[str] = mapped_column(String(512), primary_key=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False)


class Ban(Base):
    """Presence of a row means the identity is banned from the community."""

    __tablename__ = "bans"

    community_id: Mapped[str] = mapped_column(
        String(512),
        ForeignKey("communities.id"),
        primary_key=True,
    )
    identity: Mapped[str] = mapped_column(String(512), primary_key=True)


class AppliedEvent(Base):
    """Ledger of meta events already folded, keyed by BLAKE3 digest."""

    __tablename__ = "applied_events"

    community_id: Mapped[str] = mapped_column(
        String(512),
        ForeignKey("communities.id"),
        primary_key=True,
    )
    event_hash: Mapped[str] = mapped_column(String(64), primary_key=True)
    marker: Mapped[int] = mapped_column(BigInteger, nullable=False)
    event_type: Mapped[str] = mapped_column(String(32), nullable=False)

"""Models for chat messages and their multi-parent reply edges."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, LargeBinary, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hearth.db.session import Base
from hearth.db.time import utcnow


class Message(Base):
    """A chat message as received from a channel group.

    Rows are never edited in place: edits and deletes arrive as new rows that
    point at the original through ``edit_of`` / ``delete_of``. The only
    mutation is a moderator redaction, which blanks ``text``.
    """

    __tablename__ = "messages"
    __table_args__ = (Index("idx_messages_channel", "channel_id", "created_at"),)

    id: Mapped[str] = mapped_column(String(512), primary_key=True)
    # No FK: messages may be delivered before the channel.created event.
    channel_id: Mapped[str] = mapped_column(String(512), nullable=False)
    sender: Mapped[str] = mapped_column(String(512), nullable=False)
    sender_handle: Mapped[str | None] = mapped_column(String(200), nullable=True)
    text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    edit_of: Mapped[str | None] = mapped_column(String(512), nullable=True)
    delete_of: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    raw_content: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    redacted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class MessageParent(Base):
    """Directed reply edge from a message to one of its parents."""

    __tablename__ = "message_parents"
    __table_args__ = (Index("idx_parents_parent", "parent_id"),)

    message_id: Mapped[str] = mapped_column(
        String(512),
        ForeignKey("messages.id"),
        primary_key=True,
    )
    # No FK: a reply may be persisted before its parent arrives.
    parent_id: Mapped[str] = mapped_column(String(512), primary_key=True)


class PendingRedaction(Base):
    """Redaction received for a message that has not been stored yet.

    Consumed by the first write of that message, which is stored blank.
    """

    __tablename__ = "pending_redactions"

    message_id: Mapped[str] = mapped_column(String(512), primary_key=True)
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

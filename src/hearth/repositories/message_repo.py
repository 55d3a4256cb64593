"""Data access helpers for messages and reply edges."""
from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from hearth.models import Message, MessageParent, PendingRedaction

__all__ = ["MessageRepository"]


class MessageRepository:
    """Thin wrapper around database access for message entities."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, message_id: str) -> Message | None:
        return self.session.get(Message, message_id)

    def get_many(self, message_ids: Iterable[str]) -> list[Message]:
        ids = list(message_ids)
        if not ids:
            return []
        return list(self.session.scalars(select(Message).where(Message.id.in_(ids))))

    def upsert(self, message: Message) -> Message:
        """Insert ``message`` or overwrite the stored row with the same id.

        A redacted row is never overwritten, so re-delivery cannot restore it.
        A message with a pending redaction is stored already blanked.
        """
        existing = self.get(message.id)
        if existing is not None and existing.redacted:
            return existing
        pending = self.session.get(PendingRedaction, message.id)
        if pending is not None:
            message.text = ""
            message.raw_content = None
            message.redacted = True
            self.session.delete(pending)
        merged = self.session.merge(message)
        self.session.flush()
        return merged

    def add_parents(self, message_id: str, parent_ids: Iterable[str]) -> int:
        """Record reply edges, skipping ones already stored. Returns the number added."""
        added = 0
        for parent_id in dict.fromkeys(parent_ids):
            if not parent_id or parent_id == message_id:
                continue
            if self.session.get(MessageParent, (message_id, parent_id)) is not None:
                continue
            self.session.add(MessageParent(message_id=message_id, parent_id=parent_id))
            added += 1
        self.session.flush()
        return added

    def parent_ids(self, message_id: str) -> list[str]:
        stmt = (
            select(MessageParent.parent_id)
            .where(MessageParent.message_id == message_id)
            .order_by(MessageParent.parent_id)
        )
        return list(self.session.scalars(stmt))

    def child_ids(self, message_id: str) -> list[str]:
        stmt = (
            select(MessageParent.message_id)
            .where(MessageParent.parent_id == message_id)
            .order_by(MessageParent.message_id)
        )
        return list(self.session.scalars(stmt))

    def children(self, message_id: str) -> list[Message]:
        stmt = (
            select(Message)
            .join(MessageParent, MessageParent.message_id == Message.id)
            .where(MessageParent.parent_id == message_id)
            .order_by(Message.created_at, Message.id)
        )
        return list(self.session.scalars(stmt))

    def parent_map(self, message_ids: Iterable[str]) -> dict[str, list[str]]:
        """Return stored parent ids for each of ``message_ids``."""
        ids = list(message_ids)
        result: dict[str, list[str]] = {message_id: [] for message_id in ids}
        if not ids:
            return result
        stmt = (
            select(MessageParent.message_id, MessageParent.parent_id)
            .where(MessageParent.message_id.in_(ids))
            .order_by(MessageParent.message_id, MessageParent.parent_id)
        )
        for message_id, parent_id in self.session.execute(stmt):
            result[message_id].append(parent_id)
        return result

    def channel_window(
        self,
        channel_id: str,
        limit: int,
        before: datetime | None = None,
        before_id: str | None = None,
    ) -> list[Message]:
        """Return the newest ``limit`` messages older than the cursor, oldest first.

        The cursor is ``(before, before_id)``. Without ``before_id`` every
        message at ``before`` is excluded; with it, messages at the same
        instant whose id sorts below ``before_id`` are still returned.
        """
        stmt = select(Message).where(Message.channel_id == channel_id)
        if before is not None and before_id is not None:
            stmt = stmt.where(
                or_(
                    Message.created_at < before,
                    and_(Message.created_at == before, Message.id < before_id),
                )
            )
        elif before is not None:
            stmt = stmt.where(Message.created_at < before)
        stmt = stmt.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit)
        rows = list(self.session.scalars(stmt))
        rows.reverse()
        return rows

    def revisions_of(self, message_ids: Iterable[str]) -> list[Message]:
        """Return edit and delete messages that target any of ``message_ids``."""
        ids = list(message_ids)
        if not ids:
            return []
        stmt = (
            select(Message)
            .where((Message.edit_of.in_(ids)) | (Message.delete_of.in_(ids)))
            .order_by(Message.created_at, Message.id)
        )
        return list(self.session.scalars(stmt))

    def redact(self, message_id: str) -> bool:
        """Blank a message's text. Returns False when the message is unknown."""
        message = self.get(message_id)
        if message is None:
            return False
        message.text = ""
        message.raw_content = None
        message.redacted = True
        self.session.flush()
        return True

    def add_pending_redaction(self, message_id: str) -> None:
        """Remember a redaction until ``message_id`` is stored."""
        if self.session.get(PendingRedaction, message_id) is None:
            self.session.add(PendingRedaction(message_id=message_id))
            self.session.flush()

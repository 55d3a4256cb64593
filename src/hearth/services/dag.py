# src/hearth/services/dag.py
"""Multi-parent message graph: storage, thread traversal and display folding.

A message may reply to several parents, so threads form a directed graph
rather than a tree. Edges are stored as ``(message_id, parent_id)`` pairs and
traversal treats them as undirected when collecting a thread. Cycles are
tolerated and every traversal is bounded by ``settings.max_thread_nodes``.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session, sessionmaker

from hearth.core.settings import settings
from hearth.db.session import SessionLocal
from hearth.db.time import as_utc
from hearth.models import Message
from hearth.repositories import MessageRepository, ProfileRepository

logger = logging.getLogger(__name__)

# Extra rows read past a channel page, to make room for edit and delete rows.
FETCH_HEADROOM = 500


@dataclass(frozen=True)
class MessageRecord:
    """A message ready to be stored, with the parents it replies to."""

    id: str
    channel_id: str
    sender: str
    text: str
    created_at: datetime
    sender_handle: str | None = None
    edit_of: str | None = None
    delete_of: str | None = None
    parent_ids: tuple[str, ...] = ()
    raw_content: bytes | None = None


@dataclass
class ThreadContext:
    """Everything needed to render one focused message in its thread.

    ``sibling_parent_ids`` are parents of descendants that are neither the
    focus, an ancestor nor a descendant: the other branches a reply merges.
    """

    focus: Message
    ancestors: list[Message] = field(default_factory=list)
    descendants: list[Message] = field(default_factory=list)
    siblings: list[Message] = field(default_factory=list)
    parent_map: dict[str, list[str]] = field(default_factory=dict)
    sibling_parent_ids: frozenset[str] = frozenset()


@dataclass(frozen=True)
class VisibleMessage:
    id: str
    channel_id: str
    sender: str
    sender_handle: str | None
    text: str
    created_at: datetime
    parent_ids: list[str]
    edited: bool = False
    redacted: bool = False


def _chronological(messages: Iterable[Message]) -> list[Message]:
    return sorted(messages, key=lambda message: (as_utc(message.created_at), message.id))


class MessageGraph:
    """Read and write access to the message graph."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory or SessionLocal

    def _limit(self, max_nodes: int | None) -> int:
        return settings.max_thread_nodes if max_nodes is None else max_nodes

    # Writes

    @staticmethod
    def _row(record: MessageRecord) -> Message:
        return Message(
            id=record.id,
            channel_id=record.channel_id,
            sender=record.sender,
            sender_handle=record.sender_handle,
            text=record.text,
            edit_of=record.edit_of,
            delete_of=record.delete_of,
            created_at=as_utc(record.created_at),
            raw_content=record.raw_content,
            redacted=False,
        )

    def insert_message(self, record: MessageRecord) -> None:
        """Store a message, replacing any stored row with the same id."""
        with self._session_factory.begin() as session:
            MessageRepository(session).upsert(self._row(record))

    def insert_parents(self, message_id: str, parent_ids: Iterable[str]) -> int:
        """Record reply edges; re-inserting an existing edge is a no-op."""
        with self._session_factory.begin() as session:
            return MessageRepository(session).add_parents(message_id, parent_ids)

    def ingest(self, record: MessageRecord) -> None:
        """Store a message and its parent edges in one transaction."""
        with self._session_factory.begin() as session:
            repo = MessageRepository(session)
            repo.upsert(self._row(record))
            repo.add_parents(record.id, record.parent_ids)

    def redact(self, message_id: str) -> bool:
        with self._session_factory.begin() as session:
            return MessageRepository(session).redact(message_id)

    # Reads

    def get_message(self, message_id: str) -> Message | None:
        with self._session_factory() as session:
            return MessageRepository(session).get(message_id)

    def get_parent_ids(self, message_id: str) -> list[str]:
        with self._session_factory() as session:
            return MessageRepository(session).parent_ids(message_id)

    def get_children(self, message_id: str) -> list[Message]:
        with self._session_factory() as session:
            return MessageRepository(session).children(message_id)

    def get_parent_map(self, message_ids: Iterable[str]) -> dict[str, list[str]]:
        with self._session_factory() as session:
            return MessageRepository(session).parent_map(message_ids)

    def get_channel_messages(
        self,
        channel_id: str,
        limit: int | None = None,
        before: datetime | None = None,
        before_id: str | None = None,
    ) -> list[Message]:
        """Return up to ``limit`` of the newest messages, oldest first.

        Pass the ``created_at`` and ``id`` of the first returned message as
        ``before`` and ``before_id`` to page further back.
        """
        page = settings.channel_page_size if limit is None else limit
        with self._session_factory() as session:
            return MessageRepository(session).channel_window(
                channel_id, page, as_utc(before) if before is not None else None, before_id
            )

    def get_thread_graph(self, start_id: str, max_nodes: int | None = None) -> list[Message]:
        """Collect the connected component containing ``start_id``.

        Walks parent and child edges breadth first. Stops after visiting
        ``max_nodes`` ids, so results on very large threads are truncated
        rather than unbounded. Ids referenced by an edge but never stored
        are counted as visited but not expanded.
        """
        limit = self._limit(max_nodes)
        found: list[Message] = []
        with self._session_factory() as session:
            repo = MessageRepository(session)
            visited: set[str] = set()
            queue: deque[str] = deque([start_id])
            while queue and len(visited) < limit:
                node = queue.popleft()
                if node in visited:
                    continue
                visited.add(node)
                message = repo.get(node)
                if message is None:
                    continue
                found.append(message)
                for linked in (*repo.parent_ids(node), *repo.child_ids(node)):
                    if linked not in visited:
                        queue.append(linked)
        if queue:
            logger.debug("Thread walk from %s truncated at %d nodes", start_id, limit)
        return _chronological(found)

    def _walk(
        self,
        repo: MessageRepository,
        start: Iterable[str],
        step: Callable[[str], list[str]],
        exclude: set[str],
        limit: int,
    ) -> list[Message]:
        visited: set[str] = set()
        found: list[Message] = []
        queue: deque[str] = deque(start)
        while queue and len(visited) < limit:
            node = queue.popleft()
            if node in visited or node in exclude:
                continue
            visited.add(node)
            message = repo.get(node)
            if message is None:
                continue
            found.append(message)
            queue.extend(linked for linked in step(node) if linked not in visited)
        return found

    def get_thread_context(
        self, focus_id: str, max_nodes: int | None = None
    ) -> ThreadContext | None:
        """Split the thread around ``focus_id`` into ancestors, descendants and siblings.

        Returns None if the focus message is not stored.
        """
        limit = self._limit(max_nodes)
        with self._session_factory() as session:
            repo = MessageRepository(session)
            focus = repo.get(focus_id)
            if focus is None:
                return None

            ancestors = self._walk(
                repo, repo.parent_ids(focus_id), repo.parent_ids, {focus_id}, limit
            )
            descendants = self._walk(
                repo, repo.child_ids(focus_id), repo.child_ids, {focus_id}, limit
            )
            ancestor_ids = {message.id for message in ancestors}
            descendant_ids = {message.id for message in descendants}

            sibling_parent_ids: set[str] = set()
            for message in descendants:
                for parent_id in repo.parent_ids(message.id):
                    if parent_id == focus_id or parent_id in ancestor_ids:
                        continue
                    if parent_id in descendant_ids:
                        continue
                    sibling_parent_ids.add(parent_id)
            siblings = repo.get_many(sorted(sibling_parent_ids)[:limit])

            members = [focus, *ancestors, *descendants, *siblings]
            member_ids = {message.id for message in members}
            parent_map = {
                message_id: [parent for parent in parents if parent in member_ids]
                for message_id, parents in repo.parent_map(member_ids).items()
            }

        return ThreadContext(
            focus=focus,
            ancestors=_chronological(ancestors),
            descendants=_chronological(descendants),
            siblings=_chronological(siblings),
            parent_map={key: value for key, value in parent_map.items() if value},
            sibling_parent_ids=frozenset(sibling_parent_ids),
        )

    def visible_messages(
        self,
        channel_id: str,
        limit: int | None = None,
        before: datetime | None = None,
        before_id: str | None = None,
    ) -> list[VisibleMessage]:
        """Return a channel page with edits and deletes applied.

        Edit and delete messages are hidden. Only the original sender's
        revisions count; the latest edit wins and a delete hides the
        message entirely. Redacted messages keep their place with no text.

        Revisions share the channel timeline with the messages they target,
        so the window read from storage is wider than the page
        (``min(3 * limit, limit + 500)`` rows). The newest ``limit`` visible
        messages of that window are returned; a page can still come back
        short when a burst of edits outnumbers the extra rows.
        """
        page = settings.channel_page_size if limit is None else limit
        fetch = min(page * 3, page + FETCH_HEADROOM)
        with self._session_factory() as session:
            repo = MessageRepository(session)
            window = repo.channel_window(
                channel_id, fetch, as_utc(before) if before is not None else None, before_id
            )
            originals = [m for m in window if m.edit_of is None and m.delete_of is None]
            by_id = {message.id: message for message in originals}

            latest_edit: dict[str, Message] = {}
            deleted: set[str] = set()
            for revision in repo.revisions_of(by_id):
                target_id = revision.delete_of or revision.edit_of
                original = by_id.get(target_id)
                if original is None or revision.sender != original.sender:
                    continue
                if revision.delete_of is not None:
                    deleted.add(original.id)
                else:
                    latest_edit[original.id] = revision

            parent_map = repo.parent_map(by_id)
            handles = ProfileRepository(session).handles_for(m.sender for m in originals)

        visible: list[VisibleMessage] = []
        for message in originals:
            if message.id in deleted:
                continue
            edit = latest_edit.get(message.id)
            text = "" if message.redacted else (edit.text if edit is not None else message.text)
            visible.append(
                VisibleMessage(
                    id=message.id,
                    channel_id=message.channel_id,
                    sender=message.sender,
                    sender_handle=handles.get(message.sender, message.sender_handle),
                    text=text,
                    created_at=as_utc(message.created_at),
                    parent_ids=parent_map.get(message.id, []),
                    edited=edit is not None,
                    redacted=message.redacted,
                )
            )
        return visible[-page:] if page else []

"""Community state engine: fold meta events and persist the projection.

Each accepted event is committed in a single transaction that covers the
projection rows, the applied-event ledger and, for ``redact``, the target
message. The in-memory projection is swapped only after that commit
succeeds, so memory and storage never disagree.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from blake3 import blake3
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from hearth.db.session import SessionLocal
from hearth.errors import PersistenceError
from hearth.repositories import CommunityRepository, MessageRepository
from hearth.schemas.events import ModerationActionEvent
from hearth.services.authorization import AuthorizationPolicy, policy_from_settings
from hearth.services.state import CommunityState, MetaEnvelope, fold_step, is_ephemeral

logger = logging.getLogger(__name__)

NoticeCallback = Callable[[str, MetaEnvelope], None]
Outcome = Literal["applied", "duplicate", "superseded", "unauthorized"]


def event_digest(envelope: MetaEnvelope) -> str:
    """Return a stable BLAKE3 digest identifying one delivered event."""
    canonical = json.dumps(
        {
            "event": envelope.event.model_dump(mode="json", by_alias=True, exclude_none=True),
            "marker": envelope.marker,
            "sender": envelope.sender,
        },
        sort_keys=True,
        separators=(",", ":"),
    )
    return blake3(canonical.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class ApplyResult:
    outcome: Outcome
    state: CommunityState

    @property
    def applied(self) -> bool:
        return self.outcome == "applied"


class CommunityHandle:
    """Live view of one community's projection, owned by the engine."""

    def __init__(self, state: CommunityState) -> None:
        self._state = state
        self.lock = asyncio.Lock()

    @property
    def community_id(self) -> str:
        return self._state.community_id

    @property
    def state(self) -> CommunityState:
        return self._state


class CommunityEngine:
    """Owns the per-community projections for one local node."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        policy: AuthorizationPolicy | None = None,
        on_notice: NoticeCallback | None = None,
    ) -> None:
        self._session_factory = session_factory or SessionLocal
        self.policy = policy or policy_from_settings()
        self._on_notice = on_notice
        self._handles: dict[str, CommunityHandle] = {}
        self._open_lock = asyncio.Lock()

    async def open(self, community_id: str) -> CommunityHandle:
        """Return the handle for ``community_id``, loading it from storage once."""
        handle = self._handles.get(community_id)
        if handle is not None:
            return handle
        # Concurrent first opens would both insert the community row.
        async with self._open_lock:
            handle = self._handles.get(community_id)
            if handle is None:
                state = await asyncio.to_thread(self._load, community_id)
                handle = self._handles[community_id] = CommunityHandle(state)
        return handle

    async def known_communities(self) -> list[str]:
        """Return the ids of every community stored locally."""
        return await asyncio.to_thread(self._list_ids)

    def forget(self, community_id: str) -> None:
        """Drop the cached handle so the next ``open`` reloads from storage."""
        self._handles.pop(community_id, None)

    async def apply(self, community_id: str, envelope: MetaEnvelope) -> ApplyResult:
        """Fold one envelope into the community and persist the result.

        Raises:
            PersistenceError: If the transaction failed. Nothing from this
                event was stored and the in-memory state is unchanged.
        """
        handle = await self.open(community_id)
        # Once started, an apply runs to completion even if the caller is
        # cancelled, so the handle always matches storage.
        return await asyncio.shield(self._apply_locked(handle, envelope))

    async def _apply_locked(self, handle: CommunityHandle, envelope: MetaEnvelope) -> ApplyResult:
        async with handle.lock:
            return await self._apply(handle, envelope)

    async def _apply(self, handle: CommunityHandle, envelope: MetaEnvelope) -> ApplyResult:
        before = handle.state
        step = fold_step(before, envelope, self.policy)
        if not step.accepted:
            return ApplyResult(outcome=step.reason or "unauthorized", state=before)

        digest = event_digest(envelope)
        committed = await asyncio.to_thread(self._commit, before, step.state, envelope, digest)
        if not committed:
            logger.debug("Skipping already applied %s %s", envelope.event_type, digest)
            return ApplyResult(outcome="duplicate", state=before)

        handle._state = step.state
        if is_ephemeral(envelope.event) and self._on_notice is not None:
            self._on_notice(handle.community_id, envelope)
        return ApplyResult(outcome="applied", state=step.state)

    def _list_ids(self) -> list[str]:
        with self._session_factory() as session:
            return CommunityRepository(session).list_ids()

    def _load(self, community_id: str) -> CommunityState:
        try:
            with self._session_factory.begin() as session:
                repo = CommunityRepository(session)
                repo.get_or_create(community_id)
                return repo.load_state(community_id)
        except SQLAlchemyError as err:
            logger.error("Failed to load community %s: %s", community_id, err, exc_info=True)
            raise PersistenceError(f"Could not load community {community_id}") from err

    def _commit(
        self,
        before: CommunityState,
        after: CommunityState,
        envelope: MetaEnvelope,
        digest: str,
    ) -> bool:
        community_id = after.community_id
        try:
            with self._session_factory.begin() as session:
                repo = CommunityRepository(session)
                if repo.is_applied(community_id, digest):
                    return False
                repo.persist(before, after)
                event = envelope.event
                if isinstance(event, ModerationActionEvent) and event.action == "redact":
                    self._redact(session, event)
                repo.record_applied(community_id, digest, envelope.marker, envelope.event_type)
        except SQLAlchemyError as err:
            logger.error(
                "Rolled back %s at marker %s for %s: %s",
                envelope.event_type,
                envelope.marker,
                community_id,
                err,
                exc_info=True,
            )
            raise PersistenceError(
                f"Failed to persist {envelope.event_type} for {community_id}"
            ) from err
        return True

    @staticmethod
    def _redact(session: Session, event: ModerationActionEvent) -> None:
        if not event.target_message_id:
            logger.info("Ignoring redact with no target message")
            return
        repo = MessageRepository(session)
        if not repo.redact(event.target_message_id):
            repo.add_pending_redaction(event.target_message_id)
            logger.info("Holding redact of %s until the message arrives", event.target_message_id)

"""Local cache of public profiles backed by the identity bridge."""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy.orm import Session, sessionmaker

from hearth.db.session import SessionLocal
from hearth.repositories import ProfileRepository
from hearth.services.transport import IdentityBridge

logger = logging.getLogger(__name__)


class ProfileDirectory:
    """Resolves identities to inboxes and handles, caching what it learns."""

    def __init__(
        self,
        identities: IdentityBridge | None = None,
        session_factory: sessionmaker[Session] | None = None,
    ) -> None:
        self.identities = identities
        self._session_factory = session_factory or SessionLocal

    def remember(
        self,
        identity: str,
        *,
        inbox_ref: str | None = None,
        handle: str | None = None,
        display_name: str | None = None,
    ) -> None:
        with self._session_factory.begin() as session:
            ProfileRepository(session).upsert(
                identity, inbox_ref=inbox_ref, handle=handle, display_name=display_name
            )

    def cached_inbox(self, identity: str) -> str | None:
        with self._session_factory() as session:
            profile = ProfileRepository(session).get(identity)
            return profile.inbox_ref if profile is not None else None

    def handle_of(self, identity: str) -> str | None:
        with self._session_factory() as session:
            return ProfileRepository(session).handles_for([identity]).get(identity)

    def identity_for_inbox(self, inbox_ref: str) -> str | None:
        with self._session_factory() as session:
            profile = ProfileRepository(session).get_by_inbox(inbox_ref)
            return profile.identity if profile is not None else None

    async def resolve_inbox(self, identity: str) -> str | None:
        """Return the transport inbox for ``identity``, asking the bridge on a miss."""
        cached = await asyncio.to_thread(self.cached_inbox, identity)
        if cached is not None or self.identities is None:
            return cached
        inbox = await self.identities.resolve_inbox(identity)
        if inbox is None:
            logger.info("No inbox registered for %s", identity)
            return None
        await asyncio.to_thread(self.remember, identity, inbox_ref=inbox)
        return inbox

"""Data access helpers for cached profiles."""
from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from hearth.models import Profile

__all__ = ["ProfileRepository"]


class ProfileRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, identity: str) -> Profile | None:
        return self.session.get(Profile, identity)

    def get_by_inbox(self, inbox_ref: str) -> Profile | None:
        return self.session.scalars(select(Profile).where(Profile.inbox_ref == inbox_ref)).first()

    def upsert(
        self,
        identity: str,
        *,
        inbox_ref: str | None = None,
        handle: str | None = None,
        display_name: str | None = None,
    ) -> Profile:
        """Create or update a profile; ``None`` arguments leave fields untouched."""
        profile = self.get(identity)
        if profile is None:
            profile = Profile(identity=identity)
            self.session.add(profile)
        if inbox_ref is not None:
            profile.inbox_ref = inbox_ref
        if handle is not None:
            profile.handle = handle
        if display_name is not None:
            profile.display_name = display_name
        self.session.flush()
        return profile

    def handles_for(self, identities: Iterable[str]) -> dict[str, str]:
        """Map identities to their cached handle, omitting unknown ones."""
        ids = list(set(identities))
        if not ids:
            return {}
        stmt = select(Profile.identity, Profile.handle).where(
            Profile.identity.in_(ids), Profile.handle.is_not(None)
        )
        return {identity: handle for identity, handle in self.session.execute(stmt)}

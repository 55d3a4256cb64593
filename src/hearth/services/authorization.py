"""Pluggable authorization for meta events.

The fold consults a policy before applying an event. The default accepts
everything, which is appropriate when the transport group itself only admits
trusted members. ``RoleHierarchyPolicy`` enforces the owner > admin >
moderator > member ladder against the current projection.
"""

from __future__ import annotations

import logging
from typing import Protocol

from hearth.core.settings import settings
from hearth.schemas.events import (
    AnnouncementEvent,
    ChannelArchivedEvent,
    ChannelCreatedEvent,
    ChannelUpdatedEvent,
    CommunityConfigEvent,
    ModerationActionEvent,
    RoleAssignedEvent,
    SnapshotEvent,
)
from hearth.services.state import ROLE_RANK, CommunityState, MetaEnvelope

logger = logging.getLogger(__name__)

_ADMIN_EVENTS = (
    ChannelCreatedEvent,
    ChannelUpdatedEvent,
    ChannelArchivedEvent,
    AnnouncementEvent,
)


class AuthorizationPolicy(Protocol):
    def permits(self, state: CommunityState, envelope: MetaEnvelope) -> bool:
        """Return True if ``envelope`` may be applied on top of ``state``."""


class AllowAllPolicy:
    """Accept every event."""

    def permits(self, state: CommunityState, envelope: MetaEnvelope) -> bool:
        return True


class RoleHierarchyPolicy:
    """Check the sender's role in the current projection.

    The first config sender becomes the creator and is treated as owner from
    then on, regardless of role events or bans.
    """

    def _rank(self, state: CommunityState, identity: str) -> int:
        if identity == state.creator:
            return ROLE_RANK["owner"]
        return ROLE_RANK[state.role_of(identity)]

    def permits(self, state: CommunityState, envelope: MetaEnvelope) -> bool:
        sender = envelope.sender
        event = envelope.event
        if sender is None:
            return False
        is_creator = sender == state.creator
        if not is_creator and state.is_banned(sender):
            return False

        rank = self._rank(state, sender)
        if isinstance(event, CommunityConfigEvent):
            return state.creator is None or rank >= ROLE_RANK["admin"]
        if isinstance(event, SnapshotEvent):
            return state.creator is not None and rank >= ROLE_RANK["admin"]
        if isinstance(event, _ADMIN_EVENTS):
            return rank >= ROLE_RANK["admin"]
        if isinstance(event, RoleAssignedEvent):
            if rank < ROLE_RANK["admin"]:
                return False
            if is_creator:
                return True
            if ROLE_RANK[event.role] > rank:
                return False
            return self._rank(state, event.target) < rank
        if isinstance(event, ModerationActionEvent):
            if rank < ROLE_RANK["moderator"]:
                return False
            if event.action in ("ban", "unban", "mute") and event.target and not is_creator:
                return self._rank(state, event.target) < rank
            return True
        logger.warning("No authorization rule for %s", envelope.event_type)
        return False


def policy_from_settings() -> AuthorizationPolicy:
    """Build the policy named by ``settings.authorization_policy``."""
    if settings.authorization_policy == "role-hierarchy":
        return RoleHierarchyPolicy()
    return AllowAllPolicy()

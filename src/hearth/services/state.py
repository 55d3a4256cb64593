# src/hearth/services/state.py
"""Deterministic community projection and the meta-event fold.

``fold`` is a pure function: given the same starting state and the same
sequence of envelopes, every member computes the same projection. Timestamps
come from the envelope, never from the local clock.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import TYPE_CHECKING, Literal

from hearth.errors import UnknownReferenceError
from hearth.schemas.events import (
    AnnouncementEvent,
    ChannelArchivedEvent,
    ChannelCreatedEvent,
    ChannelUpdatedEvent,
    CommunityConfigEvent,
    MetaEvent,
    ModerationActionEvent,
    RoleAssignedEvent,
    SnapshotEvent,
)

if TYPE_CHECKING:
    from hearth.services.authorization import AuthorizationPolicy

logger = logging.getLogger(__name__)

ROLE_RANK: dict[str, int] = {"member": 1, "moderator": 2, "admin": 3, "owner": 4}
DEFAULT_ROLE = "member"


def is_ephemeral(event: MetaEvent) -> bool:
    """True for events that are surfaced to the UI but never persisted."""
    if isinstance(event, AnnouncementEvent):
        return True
    return isinstance(event, ModerationActionEvent) and event.action == "mute"


@dataclass(frozen=True)
class CommunityConfig:
    name: str
    description: str | None = None
    allow_member_invites: bool = True
    default_channel_permission: str = "open"


@dataclass(frozen=True)
class ChannelState:
    """Projection of one channel; ``created_at`` is the creating event's time."""

    id: str
    name: str
    group_ref: str
    created_at: datetime
    description: str | None = None
    category: str | None = None
    permission: str = "open"
    archived: bool = False


@dataclass(frozen=True)
class CommunityState:
    """Immutable projection of a community's meta channel.

    Roles only hold explicit assignments above ``member``; absence means
    member. ``last_marker`` is the highest marker folded so far and
    ``snapshot_marker`` the marker of the last snapshot, below which events
    are discarded.
    """

    community_id: str
    config: CommunityConfig | None = None
    channels: Mapping[str, ChannelState] = field(default_factory=dict)
    roles: Mapping[str, str] = field(default_factory=dict)
    bans: frozenset[str] = frozenset()
    creator: str | None = None
    last_marker: int | None = None
    snapshot_marker: int | None = None

    def role_of(self, identity: str) -> str:
        return self.roles.get(identity, DEFAULT_ROLE)

    def is_banned(self, identity: str) -> bool:
        return identity in self.bans

    def active_channels(self) -> list[ChannelState]:
        """Non-archived channels ordered by creation time."""
        live = [channel for channel in self.channels.values() if not channel.archived]
        return sorted(live, key=lambda channel: (channel.created_at, channel.id))


@dataclass(frozen=True)
class MetaEnvelope:
    """A decoded meta event plus the transport metadata it arrived with."""

    event: MetaEvent
    marker: int
    sent_at: datetime
    sender: str | None = None

    @property
    def event_type(self) -> str:
        return self.event.type


@dataclass(frozen=True)
class FoldStep:
    """Outcome of folding one envelope.

    ``accepted`` is False when the event was discarded outright, either
    because it predates the snapshot barrier or because the authorization
    policy refused it. ``reason`` names which.
    """

    state: CommunityState
    accepted: bool
    reason: Literal["superseded", "unauthorized"] | None = None


def _apply_config(state: CommunityState, envelope: MetaEnvelope) -> CommunityState:
    event: CommunityConfigEvent = envelope.event  # type: ignore[assignment]
    current = state.config
    if current is None:
        config = CommunityConfig(name=event.name, description=event.description)
    else:
        config = replace(
            current,
            name=event.name,
            description=event.description if event.description is not None else current.description,
        )
    if event.settings is not None:
        config = replace(config, **event.settings.model_dump(exclude_none=True))
    creator = state.creator if state.creator is not None else envelope.sender
    if config == current and creator == state.creator:
        return state
    return replace(state, config=config, creator=creator)


def _apply_channel_created(state: CommunityState, envelope: MetaEnvelope) -> CommunityState:
    event: ChannelCreatedEvent = envelope.event  # type: ignore[assignment]
    existing = state.channels.get(event.channel_id)
    channel = ChannelState(
        id=event.channel_id,
        name=event.name,
        group_ref=event.group_ref,
        created_at=existing.created_at if existing else envelope.sent_at,
        description=event.description,
        category=event.category,
        permission=event.permission,
        archived=existing.archived if existing else False,
    )
    if channel == existing:
        return state
    channels = dict(state.channels)
    channels[channel.id] = channel
    return replace(state, channels=channels)


def _apply_channel_updated(state: CommunityState, envelope: MetaEnvelope) -> CommunityState:
    event: ChannelUpdatedEvent = envelope.event  # type: ignore[assignment]
    existing = state.channels.get(event.channel_id)
    if existing is None:
        logger.info("Ignoring update: %s", UnknownReferenceError("channel", event.channel_id))
        return state
    changes = {
        name: value
        for name, value in (
            ("name", event.name),
            ("description", event.description),
            ("category", event.category),
            ("permission", event.permission),
        )
        if value is not None
    }
    channel = replace(existing, **changes)
    if channel == existing:
        return state
    channels = dict(state.channels)
    channels[channel.id] = channel
    return replace(state, channels=channels)


def _apply_channel_archived(state: CommunityState, envelope: MetaEnvelope) -> CommunityState:
    event: ChannelArchivedEvent = envelope.event  # type: ignore[assignment]
    existing = state.channels.get(event.channel_id)
    if existing is None:
        logger.info("Ignoring archive: %s", UnknownReferenceError("channel", event.channel_id))
        return state
    if existing.archived:
        return state
    channels = dict(state.channels)
    channels[existing.id] = replace(existing, archived=True)
    return replace(state, channels=channels)


def _apply_role(state: CommunityState, envelope: MetaEnvelope) -> CommunityState:
    event: RoleAssignedEvent = envelope.event  # type: ignore[assignment]
    target = event.target.strip()
    if not target:
        logger.info("Ignoring role assignment with blank target")
        return state
    if state.role_of(target) == event.role:
        return state
    roles = dict(state.roles)
    if event.role == DEFAULT_ROLE:
        roles.pop(target, None)
    else:
        roles[target] = event.role
    return replace(state, roles=roles)


def _apply_announcement(state: CommunityState, envelope: MetaEnvelope) -> CommunityState:
    return state


def _apply_moderation(state: CommunityState, envelope: MetaEnvelope) -> CommunityState:
    event: ModerationActionEvent = envelope.event  # type: ignore[assignment]
    # redact touches stored messages, mute is a client-side notice; neither
    # changes the projection.
    if event.action not in ("ban", "unban"):
        return state
    target = (event.target or "").strip()
    if not target:
        logger.info("Ignoring %s with no target", event.action)
        return state
    if event.action == "ban":
        if target in state.bans:
            return state
        return replace(state, bans=state.bans | {target})
    if target not in state.bans:
        return state
    return replace(state, bans=state.bans - {target})


def _apply_snapshot(state: CommunityState, envelope: MetaEnvelope) -> CommunityState:
    event: SnapshotEvent = envelope.event  # type: ignore[assignment]
    settings = event.config.settings
    config = CommunityConfig(
        name=event.config.name,
        description=event.config.description,
        allow_member_invites=(
            True
            if settings is None or settings.allow_member_invites is None
            else settings.allow_member_invites
        ),
        default_channel_permission=(
            (settings.default_channel_permission if settings else None) or "open"
        ),
    )
    channels = {
        entry.channel_id: ChannelState(
            id=entry.channel_id,
            name=entry.name,
            group_ref=entry.group_ref,
            created_at=entry.created_at or envelope.sent_at,
            description=entry.description,
            category=entry.category,
            permission=entry.permission,
            archived=entry.archived,
        )
        for entry in event.channels
    }
    roles = {
        entry.target: entry.role
        for entry in event.roles
        if entry.target.strip() and entry.role != DEFAULT_ROLE
    }
    return replace(
        state,
        config=config,
        channels=channels,
        roles=roles,
        bans=frozenset(ban for ban in event.bans if ban.strip()),
        snapshot_marker=envelope.marker,
    )


_HANDLERS: dict[type, Callable[[CommunityState, MetaEnvelope], CommunityState]] = {
    CommunityConfigEvent: _apply_config,
    ChannelCreatedEvent: _apply_channel_created,
    ChannelUpdatedEvent: _apply_channel_updated,
    ChannelArchivedEvent: _apply_channel_archived,
    RoleAssignedEvent: _apply_role,
    AnnouncementEvent: _apply_announcement,
    ModerationActionEvent: _apply_moderation,
    SnapshotEvent: _apply_snapshot,
}


def fold_step(
    state: CommunityState,
    envelope: MetaEnvelope,
    policy: AuthorizationPolicy | None = None,
) -> FoldStep:
    """Fold one envelope and report whether it was accepted."""
    if state.snapshot_marker is not None and envelope.marker < state.snapshot_marker:
        logger.debug(
            "Discarding %s at marker %s below snapshot barrier %s",
            envelope.event_type,
            envelope.marker,
            state.snapshot_marker,
        )
        return FoldStep(state=state, accepted=False, reason="superseded")
    if policy is not None and not policy.permits(state, envelope):
        logger.info(
            "Ignoring %s from unauthorized sender %s", envelope.event_type, envelope.sender
        )
        return FoldStep(state=state, accepted=False, reason="unauthorized")

    next_state = _HANDLERS[type(envelope.event)](state, envelope)
    if state.last_marker is None or envelope.marker > state.last_marker:
        next_state = replace(next_state, last_marker=envelope.marker)
    return FoldStep(state=next_state, accepted=True)


def fold(
    state: CommunityState,
    envelope: MetaEnvelope,
    policy: AuthorizationPolicy | None = None,
) -> CommunityState:
    """Return the state after applying ``envelope``.

    The input is never mutated. When the event changes nothing (including
    the marker) the very same object is returned, which makes re-applying
    an event a cheap identity check.
    """
    return fold_step(state, envelope, policy).state


def fold_all(
    state: CommunityState,
    envelopes: list[MetaEnvelope],
    policy: AuthorizationPolicy | None = None,
) -> CommunityState:
    for envelope in envelopes:
        state = fold(state, envelope, policy)
    return state

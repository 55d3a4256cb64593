"""High-level community operations that publish meta events.

The manager writes to the transport and then relies on sync to fold its
own events, so the local projection follows exactly the same path as every
other member's.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence

from hearth.errors import HearthError
from hearth.schemas.events import (
    ChannelArchivedEvent,
    ChannelCreatedEvent,
    CommunityConfigEvent,
    CommunitySettings,
    MetaEvent,
    ModerationActionEvent,
    RoleAssignedEvent,
    SnapshotChannel,
    SnapshotConfig,
    SnapshotEvent,
    SnapshotRole,
)
from hearth.services.codec import encode_meta
from hearth.services.profiles import ProfileDirectory
from hearth.services.state import CommunityState
from hearth.services.sync import SyncCoordinator
from hearth.services.transport import Transport

logger = logging.getLogger(__name__)

META_GROUP_PREFIX = "[meta] "


class MemberBannedError(HearthError):
    """Raised when adding an identity the community has banned."""


class UnknownCommunityError(HearthError):
    """Raised when an operation needs a community config that was never synced."""


def build_snapshot(state: CommunityState) -> SnapshotEvent:
    """Capture a projection as a snapshot event, archived channels included."""
    if state.config is None:
        raise UnknownCommunityError(f"Community {state.community_id} has no config yet")
    config = state.config
    return SnapshotEvent(
        config=SnapshotConfig(
            name=config.name,
            description=config.description,
            settings=CommunitySettings(
                allow_member_invites=config.allow_member_invites,
                default_channel_permission=config.default_channel_permission,
            ),
        ),
        channels=[
            SnapshotChannel(
                channel_id=channel.id,
                name=channel.name,
                group_ref=channel.group_ref,
                description=channel.description,
                category=channel.category,
                permission=channel.permission,
                archived=channel.archived,
                created_at=channel.created_at,
            )
            for channel in sorted(state.channels.values(), key=lambda c: (c.created_at, c.id))
        ],
        roles=[
            SnapshotRole(target=target, role=role)
            for target, role in sorted(state.roles.items())
        ],
        bans=sorted(state.bans),
    )


class CommunityManager:
    """Creates communities and channels and manages membership."""

    def __init__(
        self,
        transport: Transport,
        coordinator: SyncCoordinator,
        profiles: ProfileDirectory | None = None,
    ) -> None:
        self.transport = transport
        self.coordinator = coordinator
        self.profiles = profiles

    async def publish(self, community_id: str, event: MetaEvent) -> str:
        """Send a meta event to the community's meta channel."""
        return await self.transport.send(community_id, encode_meta(event))

    async def _state(self, community_id: str) -> CommunityState:
        await self.coordinator.sync_once(community_id)
        handle = await self.coordinator.engine.open(community_id)
        return handle.state

    async def create_community(
        self,
        name: str,
        description: str | None = None,
        owner: str | None = None,
        community_settings: CommunitySettings | None = None,
    ) -> str:
        """Create the meta channel, publish the initial config and sync it."""
        community_id = await self.transport.create_group(f"{META_GROUP_PREFIX}{name}")
        await self.publish(
            community_id,
            CommunityConfigEvent(name=name, description=description, settings=community_settings),
        )
        if owner is not None:
            await self.publish(community_id, RoleAssignedEvent(target=owner, role="owner"))
        await self.coordinator.sync_once(community_id)
        logger.info("Created community %s (%s)", name, community_id)
        return community_id

    async def create_channel(
        self,
        community_id: str,
        name: str,
        *,
        description: str | None = None,
        category: str | None = None,
        permission: str | None = None,
        members: Sequence[str] = (),
    ) -> str:
        """Create a channel group and announce it. Returns the channel id."""
        state = await self._state(community_id)
        default = state.config.default_channel_permission if state.config else "open"
        group_ref = await self.transport.create_group(name, members)
        channel_id = uuid.uuid4().hex
        await self.publish(
            community_id,
            ChannelCreatedEvent(
                channel_id=channel_id,
                name=name,
                group_ref=group_ref,
                description=description,
                category=category,
                permission=permission or default,
            ),
        )
        await self.coordinator.sync_once(community_id)
        return channel_id

    async def archive_channel(
        self, community_id: str, channel_id: str, reason: str | None = None
    ) -> None:
        await self.publish(community_id, ChannelArchivedEvent(channel_id=channel_id, reason=reason))
        await self.coordinator.sync_once(community_id)

    async def assign_role(self, community_id: str, identity: str, role: str) -> None:
        await self.publish(community_id, RoleAssignedEvent(target=identity, role=role))
        await self.coordinator.sync_once(community_id)

    async def _inbox(self, identity: str) -> str:
        if self.profiles is None:
            return identity
        inbox = await self.profiles.resolve_inbox(identity)
        if inbox is None:
            raise HearthError(f"No inbox registered for {identity}")
        return inbox

    async def add_member(self, community_id: str, identity: str) -> None:
        """Admit ``identity`` to the meta channel and every active channel.

        Publishes the current config and a snapshot so the newcomer, who
        cannot read earlier history, starts from the full state.

        Raises:
            MemberBannedError: If the identity is banned.
        """
        state = await self._state(community_id)
        if state.is_banned(identity):
            raise MemberBannedError(f"{identity} is banned from {community_id}")
        snapshot = build_snapshot(state)
        inbox = await self._inbox(identity)

        await self.transport.add_members(community_id, [inbox])
        await self.publish(
            community_id,
            CommunityConfigEvent(
                name=snapshot.config.name,
                description=snapshot.config.description,
                settings=snapshot.config.settings,
            ),
        )
        await self.publish(community_id, snapshot)

        for channel in state.active_channels():
            try:
                await self.transport.add_members(channel.group_ref, [inbox])
            except (HearthError, OSError) as err:
                logger.warning(
                    "Could not add %s to channel %s: %s", identity, channel.id, err
                )
        await self.coordinator.sync_once(community_id)

    async def remove_member(self, community_id: str, identity: str, ban: bool = False) -> None:
        """Remove ``identity`` from the meta channel and every channel group."""
        state = await self._state(community_id)
        inbox = await self._inbox(identity)
        if ban:
            await self.publish(community_id, ModerationActionEvent(action="ban", target=identity))
        for channel in state.channels.values():
            try:
                await self.transport.remove_members(channel.group_ref, [inbox])
            except (HearthError, OSError) as err:
                logger.warning(
                    "Could not remove %s from channel %s: %s", identity, channel.id, err
                )
        await self.transport.remove_members(community_id, [inbox])
        await self.coordinator.sync_once(community_id)

    async def list_communities(self) -> list[CommunityState]:
        """Return the projection of every community stored locally."""
        engine = self.coordinator.engine
        states = []
        for community_id in await engine.known_communities():
            handle = await engine.open(community_id)
            states.append(handle.state)
        return states

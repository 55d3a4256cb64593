"""Data access helpers for the persisted community projection."""
from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from hearth.db.time import as_utc
from hearth.models import AppliedEvent, Ban, Channel, Community, Role
from hearth.services.state import ChannelState, CommunityConfig, CommunityState

__all__ = ["CommunityRepository"]

logger = logging.getLogger(__name__)


class CommunityRepository:
    """Thin wrapper around database access for the community projection."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get(self, community_id: str) -> Community | None:
        return self.session.get(Community, community_id)

    def get_or_create(self, community_id: str) -> Community:
        """Return the community row, inserting an empty one on first sight."""
        community = self.get(community_id)
        if community is None:
            community = Community(id=community_id)
            self.session.add(community)
            self.session.flush()
            logger.info("Tracking new community %s", community_id)
        return community

    def list_ids(self) -> list[str]:
        return list(self.session.scalars(select(Community.id).order_by(Community.id)))

    def list_channels(self, community_id: str, include_archived: bool = False) -> list[Channel]:
        stmt = select(Channel).where(Channel.community_id == community_id)
        if not include_archived:
            stmt = stmt.where(Channel.archived.is_(False))
        stmt = stmt.order_by(Channel.created_at, Channel.id)
        return list(self.session.scalars(stmt))

    def load_state(self, community_id: str) -> CommunityState:
        """Rebuild the in-memory projection from the stored rows."""
        community = self.get(community_id)
        if community is None:
            return CommunityState(community_id=community_id)

        config = None
        if community.name is not None:
            config = CommunityConfig(
                name=community.name,
                description=community.description,
                allow_member_invites=(
                    True if community.allow_member_invites is None else community.allow_member_invites
                ),
                default_channel_permission=community.default_channel_permission or "open",
            )
        channels = {
            row.id: ChannelState(
                id=row.id,
                name=row.name,
                group_ref=row.group_ref,
                created_at=as_utc(row.created_at),
                description=row.description,
                category=row.category,
                permission=row.permission,
                archived=row.archived,
            )
            for row in self.list_channels(community_id, include_archived=True)
        }
        roles = {
            row.identity: row.role
            for row in self.session.scalars(select(Role).where(Role.community_id == community_id))
        }
        bans = frozenset(
            self.session.scalars(select(Ban.identity).where(Ban.community_id == community_id))
        )
        return CommunityState(
            community_id=community_id,
            config=config,
            channels=channels,
            roles=roles,
            bans=bans,
            creator=community.creator,
            last_marker=community.last_marker,
            snapshot_marker=community.snapshot_marker,
        )

    def persist(self, before: CommunityState, after: CommunityState) -> None:
        """Write the difference between two projections.

        Only rows that changed are touched. The caller owns the transaction.
        """
        community_id = after.community_id
        community = self.get_or_create(community_id)

        if after.config != before.config and after.config is not None:
            community.name = after.config.name
            community.description = after.config.description
            community.allow_member_invites = after.config.allow_member_invites
            community.default_channel_permission = after.config.default_channel_permission
        community.creator = after.creator
        community.last_marker = after.last_marker
        community.snapshot_marker = after.snapshot_marker

        for channel_id, channel in after.channels.items():
            if before.channels.get(channel_id) == channel:
                continue
            row = self.session.get(Channel, (community_id, channel_id))
            if row is None:
                row = Channel(community_id=community_id, id=channel_id)
                self.session.add(row)
            row.group_ref = channel.group_ref
            row.name = channel.name
            row.description = channel.description
            row.category = channel.category
            row.permission = channel.permission
            row.archived = channel.archived
            row.created_at = channel.created_at
        dropped = set(before.channels) - set(after.channels)
        if dropped:
            self.session.execute(
                delete(Channel).where(
                    Channel.community_id == community_id, Channel.id.in_(dropped)
                )
            )

        for identity, role in after.roles.items():
            if before.roles.get(identity) == role:
                continue
            row = self.session.get(Role, (community_id, identity))
            if row is None:
                self.session.add(Role(community_id=community_id, identity=identity, role=role))
            else:
                row.role = role
        demoted = set(before.roles) - set(after.roles)
        if demoted:
            self.session.execute(
                delete(Role).where(Role.community_id == community_id, Role.identity.in_(demoted))
            )

        for identity in after.bans - before.bans:
            self.session.add(Ban(community_id=community_id, identity=identity))
        lifted = before.bans - after.bans
        if lifted:
            self.session.execute(
                delete(Ban).where(Ban.community_id == community_id, Ban.identity.in_(lifted))
            )
        self.session.flush()

    def is_applied(self, community_id: str, event_hash: str) -> bool:
        return self.session.get(AppliedEvent, (community_id, event_hash)) is not None

    def record_applied(
        self, community_id: str, event_hash: str, marker: int, event_type: str
    ) -> None:
        self.session.add(
            AppliedEvent(
                community_id=community_id,
                event_hash=event_hash,
                marker=marker,
                event_type=event_type,
            )
        )
        self.session.flush()

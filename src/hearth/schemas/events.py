# src/hearth/schemas/events.py
"""Pydantic schemas for control-plane (meta-channel) events.

Every field that can carry attacker-controlled data is bounded here, so a
malicious or buggy peer cannot make a decoder allocate unbounded memory.
Wire names are camelCase; Python attributes are snake_case.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

MAX_NAME = 200
MAX_DESCRIPTION = 5000
MAX_ID = 512
MAX_CHANNELS = 500
MAX_ROLES = 1000
MAX_BANS = 5000

Name = Annotated[str, Field(max_length=MAX_NAME)]
Description = Annotated[str, Field(max_length=MAX_DESCRIPTION)]
OpaqueId = Annotated[str, Field(max_length=MAX_ID)]

ChannelPermission = Literal["open", "moderated", "read-only"]
DefaultPermission = Literal["open", "moderated"]
RoleName = Literal["owner", "admin", "moderator", "member"]
ModerationVerb = Literal["redact", "ban", "unban", "mute"]


class WireModel(BaseModel):
    """Base for immutable wire payloads with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class CommunitySettings(WireModel):
    """Community-wide policy knobs.

    Omitted fields leave the current value alone; a snapshot with a missing
    field falls back to the defaults.
    """

    allow_member_invites: bool | None = None
    default_channel_permission: DefaultPermission | None = None


class CommunityConfigEvent(WireModel):
    """Merge the provided fields into the community config."""

    type: Literal["community.config"] = "community.config"
    name: Name
    description: Description | None = None
    settings: CommunitySettings | None = None


class ChannelCreatedEvent(WireModel):
    """Announce a channel and its underlying transport group."""

    type: Literal["channel.created"] = "channel.created"
    channel_id: OpaqueId
    name: Name
    group_ref: OpaqueId
    description: Description | None = None
    category: Name | None = None
    permission: ChannelPermission = "open"


class ChannelUpdatedEvent(WireModel):
    type: Literal["channel.updated"] = "channel.updated"
    channel_id: OpaqueId
    name: Name | None = None
    description: Description | None = None
    category: Name | None = None
    permission: ChannelPermission | None = None


class ChannelArchivedEvent(WireModel):
    type: Literal["channel.archived"] = "channel.archived"
    channel_id: OpaqueId
    reason: Description | None = None


class RoleAssignedEvent(WireModel):
    type: Literal["community.role"] = "community.role"
    target: OpaqueId
    role: RoleName


class AnnouncementEvent(WireModel):
    """Ephemeral notice for the UI; never written to the projection."""

    type: Literal["community.announcement"] = "community.announcement"
    title: Name
    body: Description
    priority: Literal["normal", "important"] = "normal"


class ModerationActionEvent(WireModel):
    type: Literal["moderation.action"] = "moderation.action"
    action: ModerationVerb
    target: OpaqueId | None = None
    target_message_id: OpaqueId | None = None
    channel_id: OpaqueId | None = None
    reason: Description | None = None


class SnapshotConfig(WireModel):
    name: Name
    description: Description | None = None
    settings: CommunitySettings | None = None


class SnapshotChannel(WireModel):
    channel_id: OpaqueId
    name: Name
    group_ref: OpaqueId
    description: Description | None = None
    category: Name | None = None
    permission: ChannelPermission = "open"
    archived: bool = False
    created_at: datetime | None = None


class SnapshotRole(WireModel):
    target: OpaqueId
    role: RoleName


class SnapshotEvent(WireModel):
    """Full-state transfer for members who cannot read earlier history.

    Replaces config, channels, roles and bans wholesale when folded.
    """

    type: Literal["community.snapshot"] = "community.snapshot"
    config: SnapshotConfig
    channels: list[SnapshotChannel] = Field(default_factory=list, max_length=MAX_CHANNELS)
    roles: list[SnapshotRole] = Field(default_factory=list, max_length=MAX_ROLES)
    bans: list[OpaqueId] = Field(default_factory=list, max_length=MAX_BANS)


MetaEvent = Annotated[
    Union[
        CommunityConfigEvent,
        ChannelCreatedEvent,
        ChannelUpdatedEvent,
        ChannelArchivedEvent,
        RoleAssignedEvent,
        AnnouncementEvent,
        ModerationActionEvent,
        SnapshotEvent,
    ],
    Field(discriminator="type"),
]

META_EVENT_ADAPTER: TypeAdapter[MetaEvent] = TypeAdapter(MetaEvent)

META_EVENT_TYPES = frozenset(
    {
        "community.config",
        "channel.created",
        "channel.updated",
        "channel.archived",
        "community.role",
        "community.announcement",
        "moderation.action",
        "community.snapshot",
    }
)

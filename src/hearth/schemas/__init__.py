# src/hearth/schemas/__init__.py
"""Pydantic schemas for wire payloads and API responses."""

from .events import (
    AnnouncementEvent,
    ChannelArchivedEvent,
    ChannelCreatedEvent,
    ChannelUpdatedEvent,
    CommunityConfigEvent,
    CommunitySettings,
    META_EVENT_ADAPTER,
    MetaEvent,
    ModerationActionEvent,
    RoleAssignedEvent,
    SnapshotChannel,
    SnapshotConfig,
    SnapshotEvent,
    SnapshotRole,
)
from .invite import InviteToken
from .messages import ChatMessage, Quote

__all__ = [
    "AnnouncementEvent",
    "ChannelArchivedEvent",
    "ChannelCreatedEvent",
    "ChannelUpdatedEvent",
    "ChatMessage",
    "CommunityConfigEvent",
    "CommunitySettings",
    "InviteToken",
    "META_EVENT_ADAPTER",
    "MetaEvent",
    "ModerationActionEvent",
    "Quote",
    "RoleAssignedEvent",
    "SnapshotChannel",
    "SnapshotConfig",
    "SnapshotEvent",
    "SnapshotRole",
]

# src/hearth/schemas/community.py
"""Read-side schemas for the local community API."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ChannelResponse(BaseModel):
    """Channel as exposed to local clients."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    group_ref: str
    description: str | None = None
    category: str | None = None
    permission: str
    archived: bool
    created_at: datetime


class CommunityResponse(BaseModel):
    id: str
    name: str | None
    description: str | None
    allow_member_invites: bool
    default_channel_permission: str
    creator: str | None
    last_marker: int | None
    snapshot_marker: int | None
    channel_count: int
    ban_count: int


class RoleResponse(BaseModel):
    identity: str
    role: str
    banned: bool


class MessageResponse(BaseModel):
    """Raw stored message with its parent edges."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    channel_id: str
    sender: str
    sender_handle: str | None = None
    text: str
    edit_of: str | None = None
    delete_of: str | None = None
    created_at: datetime
    redacted: bool
    parent_ids: list[str] = []


class VisibleMessageResponse(BaseModel):
    """Message with edits and deletes already folded in."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    channel_id: str
    sender: str
    sender_handle: str | None = None
    text: str
    created_at: datetime
    parent_ids: list[str]
    edited: bool
    redacted: bool


class ThreadResponse(BaseModel):
    root_id: str
    messages: list[MessageResponse]
    truncated: bool


class ThreadContextResponse(BaseModel):
    focus: MessageResponse
    ancestors: list[MessageResponse]
    descendants: list[MessageResponse]
    siblings: list[MessageResponse]
    parent_map: dict[str, list[str]]
    sibling_parent_ids: list[str]

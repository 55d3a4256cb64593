# src/hearth/services/codec.py
"""Bounded JSON codec for meta events and chat messages.

Decoders check the raw size before parsing and validate every field against
the schema bounds. A failure is *returned* as :class:`ValidationError`
rather than raised, so a sync loop can skip one bad item and carry on.
"""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError as PydanticValidationError

from hearth.errors import ValidationError
from hearth.schemas.events import (
    META_EVENT_ADAPTER,
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
from hearth.schemas.messages import ChatMessage

logger = logging.getLogger(__name__)

MAX_META_BYTES = 1024 * 1024
MAX_MESSAGE_BYTES = 512 * 1024


def _from_pydantic(err: PydanticValidationError) -> ValidationError:
    first = err.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or None
    return ValidationError(first.get("msg", "invalid payload"), field=location)


def _decode_text(data: bytes | str, limit: int) -> str | ValidationError:
    raw = data.encode("utf-8") if isinstance(data, str) else data
    if len(raw) > limit:
        return ValidationError(f"payload is {len(raw)} bytes, limit is {limit}")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return ValidationError("payload is not valid UTF-8")


def _dump(model: MetaEvent | ChatMessage) -> bytes:
    payload = model.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def encode_meta(event: MetaEvent) -> bytes:
    """Serialize a meta event to its wire form.

    Raises:
        ValidationError: If the encoded form exceeds the meta size ceiling.
    """
    data = _dump(event)
    if len(data) > MAX_META_BYTES:
        raise ValidationError(f"encoded event is {len(data)} bytes, limit is {MAX_META_BYTES}")
    return data


def decode_meta(data: bytes | str) -> MetaEvent | ValidationError:
    """Parse and validate a meta event.

    Returns the event, or a :class:`ValidationError` describing why the
    payload was rejected. Never raises for malformed input.
    """
    text = _decode_text(data, MAX_META_BYTES)
    if isinstance(text, ValidationError):
        return text
    try:
        return META_EVENT_ADAPTER.validate_json(text)
    except PydanticValidationError as err:
        return _from_pydantic(err)


def encode_message(message: ChatMessage) -> bytes:
    data = _dump(message)
    if len(data) > MAX_MESSAGE_BYTES:
        raise ValidationError(
            f"encoded message is {len(data)} bytes, limit is {MAX_MESSAGE_BYTES}"
        )
    return data


def decode_message(data: bytes | str) -> ChatMessage | ValidationError:
    """Parse and validate a chat message; same contract as :func:`decode_meta`."""
    text = _decode_text(data, MAX_MESSAGE_BYTES)
    if isinstance(text, ValidationError):
        return text
    try:
        return ChatMessage.model_validate_json(text)
    except PydanticValidationError as err:
        return _from_pydantic(err)


def describe_meta(event: MetaEvent) -> str:
    """Plain-text fallback for clients that cannot render meta events."""
    if isinstance(event, CommunityConfigEvent):
        return f"Community updated: {event.name}"
    if isinstance(event, ChannelCreatedEvent):
        return f"Channel created: #{event.name}"
    if isinstance(event, ChannelUpdatedEvent):
        return f"Channel updated: {event.channel_id}"
    if isinstance(event, ChannelArchivedEvent):
        return f"Channel archived: {event.channel_id}"
    if isinstance(event, RoleAssignedEvent):
        return f"Role assigned: {event.target} is now {event.role}"
    if isinstance(event, AnnouncementEvent):
        return f"Announcement: {event.title}"
    if isinstance(event, ModerationActionEvent):
        return f"Moderation: {event.action}"
    if isinstance(event, SnapshotEvent):
        return "Community state snapshot"
    logger.debug("No description for %s", type(event).__name__)
    return "Community event"

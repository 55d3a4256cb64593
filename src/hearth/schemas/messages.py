# src/hearth/schemas/messages.py
"""Chat message payload schema."""

from pydantic import Field

from hearth.schemas.events import MAX_ID, MAX_NAME, Name, OpaqueId, WireModel

MAX_TEXT = 100_000
MAX_REPLY_TO = 20
MAX_QUOTES = 10
MAX_QUOTED_TEXT = 10_000


class Quote(WireModel):
    parent_message_id: OpaqueId
    quoted_text: str = Field(max_length=MAX_QUOTED_TEXT)


class ChatMessage(WireModel):
    """Body of a message sent to a channel group.

    Edits and deletes are ordinary messages that set ``edit_of`` or
    ``delete_of``; a delete carries empty text.
    """

    text: str = Field(default="", max_length=MAX_TEXT)
    sender_handle: Name | None = None
    reply_to: list[OpaqueId] = Field(default_factory=list, max_length=MAX_REPLY_TO)
    quotes: list[Quote] | None = Field(default=None, max_length=MAX_QUOTES)
    edit_of: OpaqueId | None = None
    delete_of: OpaqueId | None = None


__all__ = [
    "ChatMessage",
    "MAX_ID",
    "MAX_NAME",
    "MAX_QUOTED_TEXT",
    "MAX_QUOTES",
    "MAX_REPLY_TO",
    "MAX_TEXT",
    "Quote",
]

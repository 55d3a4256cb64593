"""Abstractions over the end-to-end encrypted group messaging transport.

Hearth never talks to a concrete messaging network directly. Anything that
can create groups, add and remove members, and deliver opaque payloads with
a sender, a timestamp and an ordering marker can back a node.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from hearth.errors import HearthError


class TransportError(HearthError):
    """Raised by transport implementations when a group operation fails."""


@dataclass(frozen=True)
class TransportItem:
    """One delivered payload.

    ``marker`` is the transport's monotonically comparable ordering value
    for the group (for example a nanosecond timestamp).
    """

    id: str
    group_ref: str
    sender: str
    sent_at: datetime
    marker: int
    payload: bytes


class Transport(Protocol):
    async def create_group(self, name: str, members: Sequence[str] = ()) -> str:
        """Create a group and return its reference."""

    async def add_members(self, group_ref: str, identities: Sequence[str]) -> None: ...

    async def remove_members(self, group_ref: str, identities: Sequence[str]) -> None: ...

    async def send(self, group_ref: str, payload: bytes) -> str:
        """Send a payload and return the transport's message id."""

    async def pull(self, group_ref: str, after: int | None = None) -> Sequence[TransportItem]:
        """Return items with a marker greater than ``after``, oldest first."""

    def subscribe(self, group_ref: str) -> AsyncIterator[TransportItem]:
        """Yield items as they arrive until the iterator is closed."""


class IdentityBridge(Protocol):
    """Maps public identities to transport inboxes."""

    async def resolve_inbox(self, identity: str) -> str | None: ...

    async def resolve_identity(self, inbox_ref: str) -> str | None: ...

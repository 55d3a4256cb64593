"""SQLAlchemy models for the Hearth node."""

from .community import AppliedEvent, Ban, Channel, Community, Role
from .message import Message, MessageParent, PendingRedaction
from .profile import Profile

__all__ = [
    "AppliedEvent", "Ban", "Channel", "Community", "Role",
    "Message", "MessageParent", "PendingRedaction",
    "Profile",
]

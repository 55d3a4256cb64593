"""Repositories wrapping SQLAlchemy sessions."""

from .community_repo import CommunityRepository
from .message_repo import MessageRepository
from .profile_repo import ProfileRepository

__all__ = ["CommunityRepository", "MessageRepository", "ProfileRepository"]

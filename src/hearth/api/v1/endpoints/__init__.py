# src/hearth/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .communities import router as communities_router
from .invites import router as invites_router
from .messages import router as messages_router

__all__ = [
    "communities_router",
    "invites_router",
    "messages_router",
]

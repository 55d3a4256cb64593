# src/hearth/schemas/invite.py
"""Invite token schema."""

from datetime import datetime
from typing import Literal

from pydantic import Field, field_validator

from hearth.schemas.events import Name, OpaqueId, WireModel

InviteRole = Literal["member", "moderator"]


class InviteToken(WireModel):
    """Self-contained admission token signed by the inviter.

    ``expiry`` is kept as the exact ISO-8601 string that was signed so the
    canonical payload can be rebuilt byte for byte.
    """

    community_name: Name
    group_reference: OpaqueId
    inviter_identity: OpaqueId
    inviter_address: OpaqueId
    role: InviteRole = "member"
    expiry: str = Field(max_length=64)
    signature: str = Field(max_length=256)

    @field_validator("expiry")
    @classmethod
    def _expiry_is_iso8601(cls, value: str) -> str:
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            raise ValueError("expiry must carry a UTC offset")
        return value

    @property
    def expires_at(self) -> datetime:
        """Expiry as an aware datetime."""
        return datetime.fromisoformat(self.expiry)


class InviteVerifyRequest(WireModel):
    token: str = Field(max_length=10_240)


class InviteVerifyResponse(WireModel):
    valid: bool
    verdict: str
    community_name: str | None = None
    group_reference: str | None = None
    role: str | None = None
    expiry: str | None = None

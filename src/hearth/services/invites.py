"""Signed, self-contained community invites.

An invite carries everything a recipient needs to request admission and is
signed with the inviter's Ed25519 key over a canonical JSON payload. It can
be shared as a compact base64url token or a ``hearth://invite/`` link.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from datetime import datetime, timedelta
from enum import Enum

from nacl.signing import SigningKey
from pydantic import ValidationError as PydanticValidationError

from hearth.core.security import (
    PUBLIC_ADDRESS_HEX_LENGTH,
    public_address,
    sign_bytes,
    verify_bytes,
)
from hearth.core.settings import settings
from hearth.db.time import utcnow
from hearth.errors import ValidationError
from hearth.schemas.invite import InviteRole, InviteToken

logger = logging.getLogger(__name__)

INVITE_LINK_PREFIX = "hearth://invite/"
MAX_INVITE_TOKEN_CHARS = 10_240
SIGNATURE_HEX_LENGTH = 128


class InviteVerdict(str, Enum):
    VALID = "valid"
    EXPIRED = "expired"
    INVALID_SIGNATURE = "invalid-signature"
    MALFORMED = "malformed"


def canonical_payload(
    *,
    community_name: str,
    group_reference: str,
    inviter_identity: str,
    inviter_address: str,
    role: str,
    expiry: str,
) -> bytes:
    """Return the exact bytes an inviter signs.

    Keys are sorted and no whitespace is emitted, so any implementation can
    rebuild the same bytes from the token fields.
    """
    payload = {
        "communityName": community_name,
        "expiry": expiry,
        "groupReference": group_reference,
        "inviterAddress": inviter_address,
        "inviterIdentity": inviter_identity,
        "role": role,
    }
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode(
        "utf-8"
    )


def _payload_of(token: InviteToken) -> bytes:
    return canonical_payload(
        community_name=token.community_name,
        group_reference=token.group_reference,
        inviter_identity=token.inviter_identity,
        inviter_address=token.inviter_address,
        role=token.role,
        expiry=token.expiry,
    )


def create_invite(
    *,
    community_name: str,
    group_reference: str,
    inviter_identity: str,
    private_key: SigningKey | str | bytes,
    role: InviteRole = "member",
    ttl: timedelta | None = None,
    now: datetime | None = None,
) -> InviteToken:
    """Build and sign an invite.

    Args:
        community_name: Display name shown to the recipient.
        group_reference: Meta-channel group the recipient asks to join.
        inviter_identity: Public identity of the inviter.
        private_key: Inviter's Ed25519 signing key (object, raw seed or hex seed).
        role: Role the invite offers.
        ttl: Lifetime; defaults to ``settings.invite_ttl_hours``.
        now: Override for the current time.

    Raises:
        ValueError: If the private key is unusable.
    """
    issued = now or utcnow()
    lifetime = ttl if ttl is not None else timedelta(hours=settings.invite_ttl_hours)
    expiry = (issued + lifetime).isoformat(timespec="seconds")
    address = public_address(private_key)
    payload = canonical_payload(
        community_name=community_name,
        group_reference=group_reference,
        inviter_identity=inviter_identity,
        inviter_address=address,
        role=role,
        expiry=expiry,
    )
    return InviteToken(
        community_name=community_name,
        group_reference=group_reference,
        inviter_identity=inviter_identity,
        inviter_address=address,
        role=role,
        expiry=expiry,
        signature=sign_bytes(payload, private_key),
    )


def _is_hex(value: str, length: int) -> bool:
    if len(value) != length:
        return False
    try:
        bytes.fromhex(value)
    except ValueError:
        return False
    return True


def check_invite(token: InviteToken, now: datetime | None = None) -> InviteVerdict:
    """Classify an invite without raising."""
    if not _is_hex(token.inviter_address, PUBLIC_ADDRESS_HEX_LENGTH) or not _is_hex(
        token.signature, SIGNATURE_HEX_LENGTH
    ):
        return InviteVerdict.MALFORMED
    if not verify_bytes(_payload_of(token), token.signature, token.inviter_address):
        return InviteVerdict.INVALID_SIGNATURE
    if token.expires_at <= (now or utcnow()):
        return InviteVerdict.EXPIRED
    return InviteVerdict.VALID


def verify_invite(token: InviteToken, now: datetime | None = None) -> bool:
    """True only for an untampered, unexpired invite."""
    verdict = check_invite(token, now)
    if verdict is not InviteVerdict.VALID:
        logger.info("Rejected invite for %s: %s", token.community_name, verdict.value)
    return verdict is InviteVerdict.VALID


def encode_invite(token: InviteToken) -> str:
    """Encode as unpadded base64url JSON."""
    raw = json.dumps(token.model_dump(by_alias=True), separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_invite(encoded: str) -> InviteToken:
    """Decode a token produced by :func:`encode_invite`.

    Raises:
        ValidationError: If the token is oversized or not a well-formed invite.
    """
    cleaned = encoded.strip()
    if len(cleaned) > MAX_INVITE_TOKEN_CHARS:
        raise ValidationError(
            f"invite is {len(cleaned)} characters, limit is {MAX_INVITE_TOKEN_CHARS}"
        )
    padding = "=" * (-len(cleaned) % 4)
    try:
        raw = base64.urlsafe_b64decode(cleaned + padding)
    except (binascii.Error, ValueError) as err:
        raise ValidationError("invite is not valid base64url") from err
    try:
        return InviteToken.model_validate_json(raw)
    except PydanticValidationError as err:
        first = err.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ValidationError(first.get("msg", "invalid invite"), field=field) from err


def invite_link(token: InviteToken) -> str:
    return f"{INVITE_LINK_PREFIX}{encode_invite(token)}"


def parse_invite_link(link: str) -> InviteToken:
    """Decode a ``hearth://invite/`` link or a bare token.

    Raises:
        ValidationError: If the link does not carry a valid invite.
    """
    cleaned = link.strip()
    if cleaned.startswith(INVITE_LINK_PREFIX):
        cleaned = cleaned[len(INVITE_LINK_PREFIX):]
    elif "://" in cleaned:
        raise ValidationError("not a hearth invite link")
    return decode_invite(cleaned)

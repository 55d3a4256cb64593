import base64
import json
from datetime import timedelta

import pytest

from hearth.core.security import generate_private_key, public_address
from hearth.errors import ValidationError
from hearth.services.invites import (
    INVITE_LINK_PREFIX,
    MAX_INVITE_TOKEN_CHARS,
    InviteVerdict,
    canonical_payload,
    check_invite,
    create_invite,
    decode_invite,
    encode_invite,
    invite_link,
    parse_invite_link,
    verify_invite,
)

from factories import at


@pytest.fixture
def private_key() -> str:
    return generate_private_key()


@pytest.fixture
def token(private_key: str):
    return create_invite(
        community_name="Book Club",
        group_reference="group-meta",
        inviter_identity="owner",
        private_key=private_key,
        ttl=timedelta(hours=1),
        now=at(0),
    )


def test_create_invite_signs_canonical_payload(token, private_key: str) -> None:
    assert token.inviter_address == public_address(private_key)
    assert token.expiry == "2026-01-01T01:00:00+00:00"
    assert token.role == "member"
    assert len(token.signature) == 128
    assert check_invite(token, now=at(60)) is InviteVerdict.VALID
    assert verify_invite(token, now=at(60)) is True


def test_canonical_payload_is_sorted_and_compact() -> None:
    payload = canonical_payload(
        community_name="Club",
        group_reference="g",
        inviter_identity="i",
        inviter_address="a",
        role="member",
        expiry="2026-01-01T00:00:00+00:00",
    )
    assert payload.startswith(b'{"communityName":"Club","expiry":')
    assert b" " not in payload


def test_default_ttl_comes_from_settings(private_key: str, monkeypatch) -> None:
    from hearth.core.settings import settings

    monkeypatch.setattr(settings, "invite_ttl_hours", 2)
    token = create_invite(
        community_name="Club",
        group_reference="g",
        inviter_identity="owner",
        private_key=private_key,
        now=at(0),
    )
    assert token.expires_at == at(7200)


def test_expired_invite(token) -> None:
    assert check_invite(token, now=at(3600)) is InviteVerdict.EXPIRED
    assert check_invite(token, now=at(7200)) is InviteVerdict.EXPIRED
    assert verify_invite(token, now=at(7200)) is False


@pytest.mark.parametrize(
    "changes",
    [
        {"community_name": "Evil Club"},
        {"group_reference": "other-group"},
        {"role": "moderator"},
        {"expiry": "2030-01-01T00:00:00+00:00"},
        {"inviter_identity": "someone"},
    ],
)
def test_tampered_invite_fails_signature(token, changes) -> None:
    tampered = token.model_copy(update=changes)
    assert check_invite(tampered, now=at(60)) is InviteVerdict.INVALID_SIGNATURE


def test_invite_signed_by_other_key_fails(token) -> None:
    swapped = token.model_copy(update={"inviter_address": public_address(generate_private_key())})
    assert check_invite(swapped, now=at(60)) is InviteVerdict.INVALID_SIGNATURE


@pytest.mark.parametrize(
    "changes",
    [
        {"signature": "zz" * 64},
        {"signature": "ab"},
        {"inviter_address": "not-hex"},
    ],
)
def test_malformed_key_material(token, changes) -> None:
    assert check_invite(token.model_copy(update=changes), now=at(60)) is InviteVerdict.MALFORMED


def test_link_round_trip(token) -> None:
    link = invite_link(token)
    assert link.startswith(INVITE_LINK_PREFIX)
    assert "=" not in link
    assert parse_invite_link(link) == token
    assert parse_invite_link(encode_invite(token)) == token
    assert parse_invite_link(f"  {link}\n") == token


def test_encoded_token_uses_wire_names(token) -> None:
    encoded = encode_invite(token)
    raw = base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4))
    body = json.loads(raw)
    assert set(body) == {
        "communityName",
        "groupReference",
        "inviterIdentity",
        "inviterAddress",
        "role",
        "expiry",
        "signature",
    }


@pytest.mark.parametrize(
    "value",
    [
        "https://example.com/invite/abc",
        "!!!not base64!!!",
        base64.urlsafe_b64encode(b"[1, 2]").decode(),
        base64.urlsafe_b64encode(b'{"communityName": "x"}').decode(),
    ],
)
def test_parse_rejects_garbage(value: str) -> None:
    with pytest.raises(ValidationError):
        parse_invite_link(value)


def test_decode_rejects_naive_expiry(token) -> None:
    body = token.model_dump(by_alias=True)
    body["expiry"] = "2026-01-01T01:00:00"
    encoded = base64.urlsafe_b64encode(json.dumps(body).encode()).decode()
    with pytest.raises(ValidationError) as excinfo:
        decode_invite(encoded)
    assert excinfo.value.field == "expiry"


def test_decode_rejects_oversized_token() -> None:
    with pytest.raises(ValidationError):
        decode_invite("A" * (MAX_INVITE_TOKEN_CHARS + 1))


def test_create_invite_rejects_bad_key() -> None:
    with pytest.raises(ValueError):
        create_invite(
            community_name="Club",
            group_reference="g",
            inviter_identity="owner",
            private_key="abc",
        )

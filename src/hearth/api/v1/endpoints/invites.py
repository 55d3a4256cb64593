# src/hearth/api/v1/endpoints/invites.py
"""Invite verification endpoint."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from hearth.errors import ValidationError
from hearth.schemas.invite import InviteVerifyRequest, InviteVerifyResponse
from hearth.services.invites import InviteVerdict, check_invite, parse_invite_link

router = APIRouter(prefix="/invites", tags=["invites"])


@router.post("/verify", response_model=InviteVerifyResponse, response_model_by_alias=True)
async def verify(payload: InviteVerifyRequest) -> InviteVerifyResponse:
    """Check an invite token or ``hearth://invite/`` link.

    A token that cannot be decoded at all is a 422; a decodable token that
    fails verification is reported in the body.
    """
    try:
        token = parse_invite_link(payload.token)
    except ValidationError as err:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(err),
        ) from err

    verdict = check_invite(token)
    return InviteVerifyResponse(
        valid=verdict is InviteVerdict.VALID,
        verdict=verdict.value,
        community_name=token.community_name,
        group_reference=token.group_reference,
        role=token.role,
        expiry=token.expiry,
    )

# src/hearth/api/v1/endpoints/communities.py
"""Community projection endpoints for local clients."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from hearth.db.session import get_db
from hearth.models import Channel
from hearth.repositories import CommunityRepository
from hearth.schemas.community import ChannelResponse, CommunityResponse, RoleResponse
from hearth.services.state import CommunityState

router = APIRouter(prefix="/communities", tags=["communities"])
SessionDep = Annotated[Session, Depends(get_db)]


def _load_known(db: Session, community_id: str) -> CommunityState:
    repo = CommunityRepository(db)
    if repo.get(community_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Community not found",
        )
    return repo.load_state(community_id)


@router.get("/", response_model=list[str])
async def list_communities(db: SessionDep) -> list[str]:
    """List the ids of every community this node syncs."""
    return CommunityRepository(db).list_ids()


@router.get("/{community_id}", response_model=CommunityResponse)
async def get_community(community_id: str, db: SessionDep) -> CommunityResponse:
    """Return the folded config and cursor state of a community."""
    state = _load_known(db, community_id)
    config = state.config
    return CommunityResponse(
        id=community_id,
        name=config.name if config else None,
        description=config.description if config else None,
        allow_member_invites=config.allow_member_invites if config else True,
        default_channel_permission=config.default_channel_permission if config else "open",
        creator=state.creator,
        last_marker=state.last_marker,
        snapshot_marker=state.snapshot_marker,
        channel_count=len(state.active_channels()),
        ban_count=len(state.bans),
    )


@router.get("/{community_id}/channels", response_model=list[ChannelResponse])
async def list_channels(
    community_id: str,
    db: SessionDep,
    include_archived: Annotated[bool, Query()] = False,
) -> list[Channel]:
    """List channels ordered by creation time."""
    _load_known(db, community_id)
    return CommunityRepository(db).list_channels(community_id, include_archived=include_archived)


@router.get("/{community_id}/roles/{identity}", response_model=RoleResponse)
async def get_role(community_id: str, identity: str, db: SessionDep) -> RoleResponse:
    """Return an identity's effective role; unknown identities are members."""
    state = _load_known(db, community_id)
    role = "owner" if identity == state.creator else state.role_of(identity)
    return RoleResponse(identity=identity, role=role, banned=state.is_banned(identity))

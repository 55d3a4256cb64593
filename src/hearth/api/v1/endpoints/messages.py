# src/hearth/api/v1/endpoints/messages.py
"""Message graph endpoints: channel pages, threads and thread context."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from hearth.core.settings import settings
from hearth.models import Message
from hearth.schemas.community import (
    MessageResponse,
    ThreadContextResponse,
    ThreadResponse,
    VisibleMessageResponse,
)
from hearth.services.dag import MessageGraph

router = APIRouter(tags=["messages"])


def get_message_graph() -> MessageGraph:
    """Return a graph bound to the node's database."""
    return MessageGraph()


GraphDep = Annotated[MessageGraph, Depends(get_message_graph)]


def _responses(graph: MessageGraph, messages: Iterable[Message]) -> list[MessageResponse]:
    rows = list(messages)
    parents = graph.get_parent_map(row.id for row in rows)
    return [
        MessageResponse.model_validate(row).model_copy(update={"parent_ids": parents[row.id]})
        for row in rows
    ]


@router.get("/channels/{channel_id}/messages", response_model=list[VisibleMessageResponse])
async def list_channel_messages(
    channel_id: str,
    graph: GraphDep,
    limit: Annotated[int, Query(ge=1, le=500)] = settings.channel_page_size,
    before: Annotated[datetime | None, Query()] = None,
    before_id: Annotated[str | None, Query(max_length=512)] = None,
) -> list[VisibleMessageResponse]:
    """Return the newest page of a channel with edits and deletes applied.

    Page back with the ``created_at`` and ``id`` of the oldest message seen.
    """
    visible = graph.visible_messages(
        channel_id, limit=limit, before=before, before_id=before_id
    )
    return [VisibleMessageResponse.model_validate(message) for message in visible]


@router.get("/messages/{message_id}/thread", response_model=ThreadResponse)
async def get_thread(
    message_id: str,
    graph: GraphDep,
    max_nodes: Annotated[
        int, Query(ge=1, le=settings.max_thread_nodes)
    ] = settings.max_thread_nodes,
) -> ThreadResponse:
    """Return every stored message connected to ``message_id``."""
    messages = graph.get_thread_graph(message_id, max_nodes=max_nodes)
    if not messages:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    return ThreadResponse(
        root_id=message_id,
        messages=_responses(graph, messages),
        truncated=len(messages) >= max_nodes,
    )


@router.get("/messages/{message_id}/context", response_model=ThreadContextResponse)
async def get_thread_context(message_id: str, graph: GraphDep) -> ThreadContextResponse:
    """Return ancestors, descendants and sibling branches around a message."""
    context = graph.get_thread_context(message_id)
    if context is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    return ThreadContextResponse(
        focus=_responses(graph, [context.focus])[0],
        ancestors=_responses(graph, context.ancestors),
        descendants=_responses(graph, context.descendants),
        siblings=_responses(graph, context.siblings),
        parent_map=context.parent_map,
        sibling_parent_ids=sorted(context.sibling_parent_ids),
    )

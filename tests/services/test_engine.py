import asyncio

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from hearth.errors import PersistenceError
from hearth.models import AppliedEvent, Channel, Community, PendingRedaction
from hearth.repositories import CommunityRepository
from hearth.schemas.events import (
    AnnouncementEvent,
    ChannelCreatedEvent,
    ChannelUpdatedEvent,
    CommunityConfigEvent,
    ModerationActionEvent,
    RoleAssignedEvent,
    SnapshotConfig,
    SnapshotEvent,
)
from hearth.services.authorization import RoleHierarchyPolicy
from hearth.services.engine import CommunityEngine, event_digest

from factories import at, envelope, record

COMMUNITY = "group-meta"


@pytest.mark.asyncio
async def test_open_creates_empty_community(community_engine, session_factory) -> None:
    handle = await community_engine.open(COMMUNITY)
    assert handle.community_id == COMMUNITY
    assert handle.state.config is None
    assert handle.state.last_marker is None

    with session_factory() as session:
        assert session.get(Community, COMMUNITY) is not None
    assert await community_engine.known_communities() == [COMMUNITY]


@pytest.mark.asyncio
async def test_concurrent_first_opens_share_one_handle(community_engine) -> None:
    first, second = await asyncio.gather(
        community_engine.open(COMMUNITY), community_engine.open(COMMUNITY)
    )
    assert first is second
    assert await community_engine.known_communities() == [COMMUNITY]


@pytest.mark.asyncio
async def test_apply_persists_projection(community_engine, session_factory) -> None:
    await community_engine.apply(COMMUNITY, envelope(CommunityConfigEvent(name="Book Club"), 1))
    result = await community_engine.apply(
        COMMUNITY,
        envelope(ChannelCreatedEvent(channel_id="c1", name="general", group_ref="g1"), 2),
    )
    assert result.applied
    assert result.state.last_marker == 2

    with session_factory() as session:
        community = session.get(Community, COMMUNITY)
        assert community.name == "Book Club"
        assert community.creator == "owner"
        assert community.last_marker == 2
        channel = session.get(Channel, (COMMUNITY, "c1"))
        assert channel.group_ref == "g1"
        assert channel.archived is False


@pytest.mark.asyncio
async def test_restart_reproduces_state(community_engine, session_factory) -> None:
    events = [
        envelope(CommunityConfigEvent(name="Book Club", description="reads"), 1),
        envelope(ChannelCreatedEvent(channel_id="c1", name="general", group_ref="g1"), 2),
        envelope(RoleAssignedEvent(target="alice", role="admin"), 3),
        envelope(ModerationActionEvent(action="ban", target="mallory"), 4),
        envelope(RoleAssignedEvent(target="alice", role="member"), 5),
    ]
    for item in events:
        await community_engine.apply(COMMUNITY, item)
    live = (await community_engine.open(COMMUNITY)).state

    restarted = CommunityEngine(session_factory)
    reloaded = (await restarted.open(COMMUNITY)).state
    assert reloaded == live
    assert reloaded.channels["c1"].created_at == at(2)
    assert reloaded.role_of("alice") == "member"


@pytest.mark.asyncio
async def test_redelivered_event_is_a_duplicate(community_engine, session_factory) -> None:
    created = envelope(ChannelCreatedEvent(channel_id="c1", name="general", group_ref="g1"), 2)
    await community_engine.apply(COMMUNITY, envelope(CommunityConfigEvent(name="Club"), 1))
    await community_engine.apply(COMMUNITY, created)
    await community_engine.apply(
        COMMUNITY, envelope(ChannelUpdatedEvent(channel_id="c1", name="lobby"), 3)
    )

    result = await community_engine.apply(COMMUNITY, created)
    assert result.outcome == "duplicate"
    assert result.state.channels["c1"].name == "lobby"

    with session_factory() as session:
        hashes = session.scalars(select(AppliedEvent.event_hash)).all()
        assert len(hashes) == 3
        assert event_digest(created) in hashes


def test_event_digest_depends_on_marker_and_sender() -> None:
    event = AnnouncementEvent(title="hi", body="there")
    assert event_digest(envelope(event, 1)) == event_digest(envelope(event, 1))
    assert event_digest(envelope(event, 1)) != event_digest(envelope(event, 2))
    assert event_digest(envelope(event, 1)) != event_digest(envelope(event, 1, sender="bob"))


@pytest.mark.asyncio
async def test_event_below_snapshot_is_superseded(community_engine) -> None:
    await community_engine.apply(COMMUNITY, envelope(CommunityConfigEvent(name="Club"), 1))
    await community_engine.apply(
        COMMUNITY, envelope(SnapshotEvent(config=SnapshotConfig(name="Restored")), 10)
    )
    result = await community_engine.apply(
        COMMUNITY,
        envelope(ChannelCreatedEvent(channel_id="late", name="late", group_ref="g"), 9),
    )
    assert result.outcome == "superseded"
    assert "late" not in result.state.channels


@pytest.mark.asyncio
async def test_unauthorized_event_is_not_persisted(session_factory) -> None:
    engine = CommunityEngine(session_factory, policy=RoleHierarchyPolicy())
    await engine.apply(COMMUNITY, envelope(CommunityConfigEvent(name="Club"), 1))
    result = await engine.apply(
        COMMUNITY,
        envelope(RoleAssignedEvent(target="bob", role="owner"), 2, sender="bob"),
    )
    assert result.outcome == "unauthorized"
    assert result.state.role_of("bob") == "member"
    assert result.state.last_marker == 1


@pytest.mark.asyncio
async def test_redact_blanks_stored_message(community_engine, graph) -> None:
    graph.ingest(record("m1", 1, text="something rude"))
    await community_engine.apply(COMMUNITY, envelope(CommunityConfigEvent(name="Club"), 1))
    result = await community_engine.apply(
        COMMUNITY, envelope(ModerationActionEvent(action="redact", target_message_id="m1"), 2)
    )
    assert result.applied
    message = graph.get_message("m1")
    assert message.redacted is True
    assert message.text == ""

    # Re-delivering the original payload does not bring the text back.
    graph.ingest(record("m1", 1, text="something rude"))
    assert graph.get_message("m1").text == ""


@pytest.mark.asyncio
async def test_redact_of_unknown_message_still_advances_marker(community_engine) -> None:
    result = await community_engine.apply(
        COMMUNITY, envelope(ModerationActionEvent(action="redact", target_message_id="nope"), 7)
    )
    assert result.applied
    assert result.state.last_marker == 7


@pytest.mark.asyncio
async def test_redact_before_message_arrives_blanks_it_on_arrival(
    community_engine, graph, session_factory
) -> None:
    await community_engine.apply(COMMUNITY, envelope(CommunityConfigEvent(name="Club"), 1))
    result = await community_engine.apply(
        COMMUNITY, envelope(ModerationActionEvent(action="redact", target_message_id="m1"), 2)
    )
    assert result.applied
    assert graph.get_message("m1") is None
    with session_factory() as session:
        assert session.get(PendingRedaction, "m1") is not None

    graph.ingest(record("m1", 1, text="something rude", parents=["m0"]))
    message = graph.get_message("m1")
    assert message.redacted is True
    assert message.text == ""
    assert message.raw_content is None
    assert graph.get_parent_ids("m1") == ["m0"]
    with session_factory() as session:
        assert session.get(PendingRedaction, "m1") is None

    graph.ingest(record("m1", 1, text="something rude"))
    assert graph.get_message("m1").text == ""


@pytest.mark.asyncio
async def test_ephemeral_events_raise_notices(session_factory) -> None:
    notices = []
    engine = CommunityEngine(
        session_factory, on_notice=lambda community_id, item: notices.append((community_id, item))
    )
    announcement = envelope(AnnouncementEvent(title="Meetup", body="Friday"), 1)
    mute = envelope(ModerationActionEvent(action="mute", target="bob"), 2)
    ban = envelope(ModerationActionEvent(action="ban", target="bob"), 3)
    for item in (announcement, mute, ban):
        await engine.apply(COMMUNITY, item)

    assert [item for _, item in notices] == [announcement, mute]
    assert all(community_id == COMMUNITY for community_id, _ in notices)


@pytest.mark.asyncio
async def test_failed_commit_leaves_state_and_storage_untouched(
    community_engine, session_factory, mocker
) -> None:
    await community_engine.apply(COMMUNITY, envelope(CommunityConfigEvent(name="Club"), 1))
    created = envelope(ChannelCreatedEvent(channel_id="c1", name="general", group_ref="g1"), 2)

    patched = mocker.patch.object(
        CommunityRepository, "persist", side_effect=SQLAlchemyError("disk full")
    )
    with pytest.raises(PersistenceError):
        await community_engine.apply(COMMUNITY, created)
    patched.assert_called_once()

    handle = await community_engine.open(COMMUNITY)
    assert "c1" not in handle.state.channels
    assert handle.state.last_marker == 1
    with session_factory() as session:
        assert session.get(Channel, (COMMUNITY, "c1")) is None
        assert session.get(AppliedEvent, (COMMUNITY, event_digest(created))) is None

    mocker.stopall()
    result = await community_engine.apply(COMMUNITY, created)
    assert result.applied
    assert "c1" in result.state.channels


@pytest.mark.asyncio
async def test_forget_reloads_from_storage(community_engine) -> None:
    await community_engine.apply(COMMUNITY, envelope(CommunityConfigEvent(name="Club"), 1))
    first = await community_engine.open(COMMUNITY)
    community_engine.forget(COMMUNITY)
    second = await community_engine.open(COMMUNITY)
    assert second is not first
    assert second.state == first.state

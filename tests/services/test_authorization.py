import pytest

from hearth.schemas.events import (
    AnnouncementEvent,
    ChannelCreatedEvent,
    CommunityConfigEvent,
    ModerationActionEvent,
    RoleAssignedEvent,
    SnapshotConfig,
    SnapshotEvent,
)
from hearth.services.authorization import (
    AllowAllPolicy,
    RoleHierarchyPolicy,
    policy_from_settings,
)
from hearth.services.state import CommunityState, fold, fold_all, fold_step

from factories import envelope

policy = RoleHierarchyPolicy()


@pytest.fixture
def state() -> CommunityState:
    """Community created by ``owner`` with an admin, a moderator and a banned user."""
    base = CommunityState(community_id="community-1")
    return fold_all(
        base,
        [
            envelope(CommunityConfigEvent(name="Book Club"), 1),
            envelope(RoleAssignedEvent(target="ada", role="admin"), 2),
            envelope(RoleAssignedEvent(target="mo", role="moderator"), 3),
            envelope(ModerationActionEvent(action="ban", target="mallory"), 4),
        ],
        policy,
    )


def test_setup_events_are_all_accepted(state: CommunityState) -> None:
    assert state.creator == "owner"
    assert state.role_of("ada") == "admin"
    assert state.role_of("mo") == "moderator"
    assert state.is_banned("mallory")


def test_allow_all_policy_accepts_anything(state: CommunityState) -> None:
    item = envelope(CommunityConfigEvent(name="Hijack"), 10, sender="stranger")
    assert AllowAllPolicy().permits(state, item) is True


def test_first_config_from_anyone_then_admins_only() -> None:
    empty = CommunityState(community_id="c")
    assert policy.permits(empty, envelope(CommunityConfigEvent(name="Mine"), 1, sender="zed"))

    created = fold(empty, envelope(CommunityConfigEvent(name="Mine"), 1, sender="zed"), policy)
    rename = envelope(CommunityConfigEvent(name="Yours"), 2, sender="bob")
    step = fold_step(created, rename, policy)
    assert step.accepted is False
    assert step.reason == "unauthorized"
    assert step.state is created


def test_missing_sender_is_rejected(state: CommunityState) -> None:
    item = envelope(AnnouncementEvent(title="hi", body="there"), 10, sender=None)
    assert policy.permits(state, item) is False


@pytest.mark.parametrize(
    ("sender", "allowed"),
    [("owner", True), ("ada", True), ("mo", False), ("bob", False)],
)
def test_channel_events_need_admin(state: CommunityState, sender: str, allowed: bool) -> None:
    item = envelope(
        ChannelCreatedEvent(channel_id="c1", name="general", group_ref="g1"), 10, sender=sender
    )
    assert policy.permits(state, item) is allowed


def test_banned_sender_is_rejected_even_with_role(state: CommunityState) -> None:
    promoted = fold(state, envelope(RoleAssignedEvent(target="mallory", role="admin"), 5), policy)
    item = envelope(AnnouncementEvent(title="x", body="y"), 6, sender="mallory")
    assert policy.permits(promoted, item) is False


def test_creator_cannot_be_locked_out_by_ban(state: CommunityState) -> None:
    banned_owner = fold(state, envelope(ModerationActionEvent(action="ban", target="owner"), 5))
    item = envelope(AnnouncementEvent(title="still here", body="."), 6)
    assert policy.permits(banned_owner, item) is True


def test_admin_cannot_grant_above_own_rank(state: CommunityState) -> None:
    assert policy.permits(
        state, envelope(RoleAssignedEvent(target="bob", role="admin"), 10, sender="ada")
    )
    assert not policy.permits(
        state, envelope(RoleAssignedEvent(target="bob", role="owner"), 10, sender="ada")
    )


def test_admin_cannot_change_peer_or_creator(state: CommunityState) -> None:
    peer = fold(state, envelope(RoleAssignedEvent(target="ana", role="admin"), 5), policy)
    assert not policy.permits(
        peer, envelope(RoleAssignedEvent(target="ana", role="member"), 6, sender="ada")
    )
    assert not policy.permits(
        peer, envelope(RoleAssignedEvent(target="owner", role="member"), 6, sender="ada")
    )


def test_creator_may_assign_any_role(state: CommunityState) -> None:
    assert policy.permits(state, envelope(RoleAssignedEvent(target="ada", role="owner"), 10))


def test_moderator_moderates_members_only(state: CommunityState) -> None:
    assert policy.permits(
        state, envelope(ModerationActionEvent(action="ban", target="bob"), 10, sender="mo")
    )
    assert policy.permits(
        state,
        envelope(ModerationActionEvent(action="redact", target_message_id="m1"), 10, sender="mo"),
    )
    assert not policy.permits(
        state, envelope(ModerationActionEvent(action="ban", target="ada"), 10, sender="mo")
    )
    assert not policy.permits(
        state, envelope(ModerationActionEvent(action="mute", target="bob"), 10, sender="bob")
    )


def test_snapshot_requires_existing_creator_and_admin(state: CommunityState) -> None:
    snapshot = SnapshotEvent(config=SnapshotConfig(name="Restored"))
    assert policy.permits(state, envelope(snapshot, 10, sender="ada"))
    assert not policy.permits(state, envelope(snapshot, 10, sender="mo"))

    empty = CommunityState(community_id="c")
    assert not policy.permits(empty, envelope(snapshot, 1))


def test_policy_from_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    from hearth.core.settings import settings

    monkeypatch.setattr(settings, "authorization_policy", "role-hierarchy")
    assert isinstance(policy_from_settings(), RoleHierarchyPolicy)
    monkeypatch.setattr(settings, "authorization_policy", "open")
    assert isinstance(policy_from_settings(), AllowAllPolicy)

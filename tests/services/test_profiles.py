import pytest

from hearth.services.profiles import ProfileDirectory

from factories import FakeIdentityBridge


@pytest.fixture
def bridge() -> FakeIdentityBridge:
    return FakeIdentityBridge({"alice": "inbox-alice"})


@pytest.fixture
def directory(bridge, session_factory) -> ProfileDirectory:
    return ProfileDirectory(bridge, session_factory)


def test_remember_merges_fields(directory: ProfileDirectory) -> None:
    directory.remember("bob", handle="bobby")
    directory.remember("bob", inbox_ref="inbox-bob")

    assert directory.handle_of("bob") == "bobby"
    assert directory.cached_inbox("bob") == "inbox-bob"
    assert directory.identity_for_inbox("inbox-bob") == "bob"
    assert directory.identity_for_inbox("inbox-unknown") is None
    assert directory.handle_of("carol") is None


@pytest.mark.asyncio
async def test_resolve_inbox_caches_bridge_answer(directory, bridge) -> None:
    assert await directory.resolve_inbox("alice") == "inbox-alice"
    assert await directory.resolve_inbox("alice") == "inbox-alice"
    assert bridge.lookups == ["alice"]
    assert directory.cached_inbox("alice") == "inbox-alice"


@pytest.mark.asyncio
async def test_resolve_inbox_miss(directory, bridge) -> None:
    assert await directory.resolve_inbox("ghost") is None
    assert bridge.lookups == ["ghost"]
    assert directory.cached_inbox("ghost") is None


@pytest.mark.asyncio
async def test_resolve_without_bridge_uses_cache_only(session_factory) -> None:
    directory = ProfileDirectory(session_factory=session_factory)
    assert await directory.resolve_inbox("alice") is None
    directory.remember("alice", inbox_ref="inbox-alice")
    assert await directory.resolve_inbox("alice") == "inbox-alice"

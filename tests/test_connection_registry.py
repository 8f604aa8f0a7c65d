import asyncio

import pytest

from app.realtime.registry import ConnectionRegistry


@pytest.mark.asyncio
async def test_register_returns_private_room():
    registry = ConnectionRegistry("chat")
    room = await registry.register(7, "sid-1")

    assert room == "user:7"
    assert registry.user_for("sid-1") == 7
    assert registry.is_online(7)


@pytest.mark.asyncio
async def test_multiple_connections_per_user():
    registry = ConnectionRegistry()
    await registry.register(1, "a")
    await registry.register(1, "b")

    assert registry.connections(1) == {"a", "b"}

    assert await registry.unregister("a") == 1
    assert registry.is_online(1)
    assert registry.connections(1) == {"b"}

    await registry.unregister("b")
    # Entry removed once the last connection is gone
    assert not registry.is_online(1)
    assert 1 not in registry.online_users()


@pytest.mark.asyncio
async def test_unregister_unknown_connection():
    registry = ConnectionRegistry()
    assert await registry.unregister("ghost") is None
    assert registry.online_users() == frozenset()


@pytest.mark.asyncio
async def test_registries_are_independent():
    chat = ConnectionRegistry("chat")
    notifications = ConnectionRegistry("notifications")
    await chat.register(1, "sid-1")

    assert chat.is_online(1)
    assert not notifications.is_online(1)


@pytest.mark.asyncio
async def test_registry_concurrent_access():
    registry = ConnectionRegistry()
    user_id = 1
    sids = [f"sid-{i}" for i in range(100)]

    await asyncio.gather(*(registry.register(user_id, sid) for sid in sids))
    assert len(registry.connections(user_id)) == 100

    # Concurrent disconnects of half, reconnects of others
    await asyncio.gather(
        *(registry.unregister(sid) for sid in sids[:50]),
        *(registry.register(2, f"other-{i}") for i in range(10)),
    )
    assert registry.connections(user_id) == set(sids[50:])
    assert len(registry.connections(2)) == 10

    await asyncio.gather(*(registry.unregister(sid) for sid in sids[50:]))
    assert not registry.is_online(user_id)
    assert registry.online_users() == {2}

import logging

import pytest
import trio
import trio.testing

from hammer import protocol
from hammer.admin import AdminService
from hammer.bridge import (ChannelJoin, ChannelLeave, EventBridge, UserUpdate,
                           open_event_channel)
from hammer.structures import SYSTEM_AUTHOR

from conftest import StallingTarget


@pytest.fixture
def bridge(storage, gateway):
    return EventBridge(storage, gateway.registry, snowflake=storage.snowflake)


@pytest.fixture
def lounge(storage, users):
    return storage.create_channel("lounge", "Somewhere else", users["bob"].id)


async def test_join_pushes_notice_to_the_joining_user_only(
    connect, bridge, storage, users, general, lounge
):
    alice, alice_target = await connect(users["alice"])
    bob, bob_target = await connect(users["bob"])
    alice_target.clear()
    bob_target.clear()

    storage.add_user_to_channel(lounge.id, users["alice"].id)
    await bridge.dispatch(ChannelJoin(users["alice"].id, lounge.id))

    join, notice = alice_target.sent

    assert join["op"] == 0
    assert join["type"] == "CHANNEL_JOIN"
    assert join["data"]["channel"]["id"] == str(lounge.id)
    assert join["data"]["channel"]["name"] == "lounge"

    assert notice["type"] == "MESSAGE"
    assert notice["data"]["author"] == SYSTEM_AUTHOR
    assert notice["data"]["content"] == "alice has joined the channel!"
    assert notice["data"]["channel"] == str(lounge.id)

    assert bob_target.sent == []


async def test_leave_pushes_notice(connect, bridge, storage, users, general):
    alice, alice_target = await connect(users["alice"])
    alice_target.clear()

    storage.remove_user_from_channel(general.id, users["alice"].id)
    await bridge.dispatch(ChannelLeave(users["alice"].id, general.id))

    assert [frame["type"] for frame in alice_target.sent] == ["CHANNEL_LEAVE"]
    assert alice_target.sent[0]["data"]["channel"]["id"] == str(general.id)


async def test_events_for_offline_users_are_not_queued(
    connect, bridge, storage, users, lounge
):
    await bridge.dispatch(ChannelJoin(users["alice"].id, lounge.id))

    alice, alice_target = await connect(users["alice"])

    assert protocol.Kind.CHANNEL_JOIN.value not in [f["type"] for f in alice_target.sent]


async def test_user_update_pushes_nothing(connect, bridge, users, general):
    alice, alice_target = await connect(users["alice"])
    alice_target.clear()

    seen = []

    @bridge.listen(UserUpdate.kind)
    async def on_update(event):
        seen.append(event)

    await bridge.dispatch(UserUpdate(users["alice"].id))

    assert alice_target.sent == []
    assert seen == [UserUpdate(users["alice"].id)]


async def test_unknown_ids_are_ignored(bridge, caplog):
    with caplog.at_level(logging.WARNING, logger="hammer.bridge"):
        await bridge.dispatch(ChannelJoin(1, 2))
        await bridge.dispatch(ChannelLeave(1, 2))
        await bridge.dispatch(UserUpdate(1))

    assert caplog.text.count("Ignoring") == 3


async def test_failing_listener_does_not_stop_the_bridge(
    connect, bridge, storage, users, general, lounge, nursery, caplog
):
    alice, alice_target = await connect(users["alice"])
    alice_target.clear()

    @bridge.listen(ChannelJoin.kind)
    async def explode(event):
        raise RuntimeError("listener exploded")

    emitter, events = open_event_channel()
    nursery.start_soon(bridge.run, events)

    with caplog.at_level(logging.ERROR, logger="hammer.bridge"):
        emitter.emit(ChannelJoin(users["alice"].id, lounge.id))
        emitter.emit(ChannelLeave(users["alice"].id, general.id))
        await trio.testing.wait_all_tasks_blocked()

    assert [frame["type"] for frame in alice_target.sent] == [
        "CHANNEL_JOIN",
        "MESSAGE",
        "CHANNEL_LEAVE",
    ]
    assert "listener exploded" in caplog.text


async def test_admin_mutations_reach_live_connections(
    connect, bridge, storage, users, lounge, nursery
):
    emitter, events = open_event_channel()
    admin = AdminService(storage, emitter)
    nursery.start_soon(bridge.run, events)

    alice, alice_target = await connect(users["alice"])
    alice_target.clear()

    admin.join_channel(users["alice"].id, lounge.id)
    await trio.testing.wait_all_tasks_blocked()

    assert storage.is_member(lounge.id, users["alice"].id)
    assert [frame["type"] for frame in alice_target.sent] == ["CHANNEL_JOIN", "MESSAGE"]

    alice_target.clear()
    admin.leave_channel(users["alice"].id, lounge.id)
    await trio.testing.wait_all_tasks_blocked()

    assert not storage.is_member(lounge.id, users["alice"].id)
    assert [frame["type"] for frame in alice_target.sent] == ["CHANNEL_LEAVE"]


async def test_bridge_stops_when_emitter_closes(bridge, nursery):
    emitter, events = open_event_channel()
    done = trio.Event()

    async def run():
        await bridge.run(events)
        done.set()

    nursery.start_soon(run)
    await emitter.aclose()

    with trio.fail_after(1):
        await done.wait()


def test_full_buffer_drops_events(caplog):
    emitter, _events = open_event_channel(1)

    with caplog.at_level(logging.WARNING, logger="hammer.bridge"):
        assert emitter.emit(UserUpdate(1))
        assert not emitter.emit(UserUpdate(2))

    assert "dropped" in caplog.text


async def test_emit_after_close_warns():
    emitter, events = open_event_channel()
    await events.aclose()

    with pytest.warns(UserWarning):
        assert not emitter.emit(UserUpdate(1))


async def test_stalled_peer_does_not_hold_up_later_events(
    connect, bridge, storage, users, lounge, nursery, autojump_clock
):
    bob, bob_target = await connect(users["bob"], target=StallingTarget())
    dave, dave_target = await connect(users["dave"])
    bob_target.stalled = True
    dave_target.clear()

    emitter, events = open_event_channel()
    nursery.start_soon(bridge.run, events)

    for name in ("bob", "dave"):
        storage.add_user_to_channel(lounge.id, users[name].id)
        assert emitter.emit(ChannelJoin(users[name].id, lounge.id))

    await trio.sleep(60)

    assert [frame["data"]["channel"]["id"] for frame in dave_target.frames("CHANNEL_JOIN")] == [
        str(lounge.id)
    ]
    assert bob.closed

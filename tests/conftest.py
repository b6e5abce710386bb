import json
import math

import pytest
import trio

from hammer.auth import Authenticator
from hammer.config import GatewayConfig
from hammer.errors import TransportClosed
from hammer.gateway import Gateway
from hammer.storage import MemoryStorage
from hammer.structures import Permissions


class FakeTarget:
    """An in-memory transport target that records the frames sent to it."""

    def __init__(self):
        self.sent = []
        self.closed = False
        self._inbound, self._inbox = trio.open_memory_channel(math.inf)

    async def send_text(self, text):
        if self.closed:
            raise TransportClosed("target is closed")

        self.sent.append(json.loads(text))

    async def receive_text(self):
        try:
            return await self._inbox.receive()

        except trio.EndOfChannel:
            raise TransportClosed("client disconnected")

    async def close(self):
        self.closed = True

    def feed(self, frame):
        self._inbound.send_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def disconnect(self):
        self._inbound.close()

    def frames(self, type=None):
        return [frame for frame in self.sent if type is None or frame["type"] == type]

    def clear(self):
        self.sent.clear()


class BrokenTarget(FakeTarget):
    """A target whose socket starts failing once it is marked broken."""

    def __init__(self):
        super().__init__()
        self.broken = False

    async def send_text(self, text):
        if self.broken:
            raise RuntimeError("socket exploded")

        await super().send_text(text)


class StallingTarget(FakeTarget):
    """A target whose peer stops reading once it is marked stalled."""

    def __init__(self):
        super().__init__()
        self.stalled = False

    async def send_text(self, text):
        if self.stalled:
            await trio.sleep_forever()

        await super().send_text(text)


class HangingCloseTarget(FakeTarget):
    """A target whose peer never answers the close handshake."""

    async def close(self):
        await trio.sleep_forever()


def identify_frame(interval=5000):
    return {"op": 11, "type": "IDENTIFY", "data": {"heartbeat_interval": interval}}


def message_frame(channel, content):
    return {"op": 0, "type": "MESSAGE", "data": {"channel": str(channel), "content": content}}


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def config():
    return GatewayConfig(
        jwt_secret="test-secret",
        heartbeat_default=5000,
        heartbeat_min=1000,
        heartbeat_max=10000,
    )


@pytest.fixture
def authenticator(storage, config):
    return Authenticator(storage, config.jwt_secret, config.jwt_algorithm)


@pytest.fixture
def gateway(storage, authenticator, config):
    return Gateway(storage, authenticator, config, snowflake=storage.snowflake)


@pytest.fixture
def users(storage):
    return {
        name: storage.add_user(
            "{}@example.org".format(name),
            name,
            Permissions.everything() if name == "alice" else None,
        )
        for name in ("alice", "bob", "dave", "erin")
    }


@pytest.fixture
def general(storage, users):
    channel = storage.create_channel("general", "The general channel", users["alice"].id)

    for user in users.values():
        storage.add_user_to_channel(channel.id, user.id)

    return channel


@pytest.fixture
async def connect(gateway, nursery):
    """Opens (and by default identifies) a gateway connection for an user."""

    async def _connect(user, identify=True, interval=5000, target=None):
        target = target if target is not None else FakeTarget()
        conn = await gateway.open(target, user, nursery, user.username)

        if conn is not None and identify:
            await conn.handle_text(json.dumps(identify_frame(interval)))

        return conn, target

    return _connect

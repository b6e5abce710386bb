"""
The gateway: a WebSocket server that runs the Hammer protocol on
every accepted connection.

Each connection goes through two states. Right after it is
accepted, it waits for an IDENTIFY frame; anything else closes it.
Once identified, a heartbeat starts and the connection can send
channel messages and status updates.
"""

import logging
import typing
import urllib.parse

import attr
import trio
from trio_websocket import WebSocketRequest, serve_websocket

from . import protocol
from .auth import UNKNOWN_NAME, Authenticator
from .config import GatewayConfig
from .errors import ProtocolError, TransportClosed
from .fanout import ChannelFanout
from .registry import ConnectionRegistry
from .snowflake import Snowflake
from .statedhandler import HandlerStateMachine, HandlingState
from .storage import Storage, parse_id
from .structures import Message, User
from .transport import Target, WebSocketTarget

AWAITING_IDENTIFY = "awaiting_identify"
READY = "ready"


def token_from_path(path: str) -> typing.Optional[str]:
    """Extracts the connection token from a request target.

        >>> token_from_path('/?token=abc.def')
        'abc.def'
        >>> print(token_from_path('/gateway'))
        None
    """

    query = urllib.parse.parse_qs(urllib.parse.urlsplit(path).query)
    tokens = query.get("token")

    return tokens[0] if tokens else None


class AwaitingIdentifyState(HandlingState):
    """Handle a connection that has not completed the handshake yet."""

    id = AWAITING_IDENTIFY

    async def handle(
        self, machine: "GatewayStateMachine", frame: protocol.Frame
    ) -> typing.Optional[str]:
        conn = machine.connection

        if frame.kind is not protocol.Kind.IDENTIFY:
            conn.logger.info("Rejected improper handshake from %s!", conn.name)
            await conn.close()
            return None

        conn.start_heartbeat(frame.data.get("heartbeat_interval"))
        await conn.send(protocol.ready())

        conn.logger.info(
            "%s identified, heartbeat every %d ms", conn.name, conn.heartbeat_interval
        )

        return READY


class ReadyState(HandlingState):
    """Handle an identified connection."""

    id = READY

    handlers = {
        protocol.Kind.HEARTBEAT_ACK: "on_heartbeat_ack",
        protocol.Kind.MESSAGE: "on_message",
        protocol.Kind.STATUS_UPDATE: "on_status_update",
        protocol.Kind.CLIENT_ERROR: "on_client_error",
    }

    async def handle(
        self, machine: "GatewayStateMachine", frame: protocol.Frame
    ) -> typing.Optional[str]:
        conn = machine.connection
        handler = getattr(conn, self.handlers.get(frame.kind, "on_invalid"))

        await handler(frame)
        return None


@attr.s(auto_attribs=True)
class GatewayStateMachine(HandlerStateMachine):
    connection: typing.Optional["GatewayConnection"] = None


@attr.s(auto_attribs=True, eq=False)
class GatewayConnection:
    """A live, authenticated client connection to the gateway."""

    gateway: "Gateway"
    target: Target
    user: User
    name: str = UNKNOWN_NAME
    nursery: typing.Optional[trio.Nursery] = None

    machine: GatewayStateMachine = attr.Factory(GatewayStateMachine)

    heartbeat_scope: typing.Optional[trio.CancelScope] = None
    heartbeat_interval: typing.Optional[int] = None
    heartbeats_sent: int = 0
    last_heartbeat_ack: typing.Optional[float] = None

    status: typing.Optional[int] = None
    closed: bool = False

    def __attrs_post_init__(self):
        self.machine.connection = self
        self.machine.register_state(AwaitingIdentifyState())
        self.machine.register_state(ReadyState())

    @property
    def logger(self) -> logging.Logger:
        return self.gateway.logger

    @property
    def identified(self) -> bool:
        return self.machine.state_id == READY

    async def send(self, frame: dict) -> bool:
        """Sends a frame to this connection.

        Returns:
            bool -- Whether the frame was written. False once the connection is
                    closed, and when a stalled write made us close it.
        """

        if self.closed:
            return False

        with trio.move_on_after(self.gateway.config.send_timeout / 1000) as scope:
            try:
                await self.target.send_text(protocol.encode(frame))

            except TransportClosed:
                self.logger.debug("Dropped a frame to %s: transport closed", self.name)
                return False

        if scope.cancelled_caught:
            self.logger.warning("%s stopped reading frames, closing connection", self.name)
            await self.close()
            return False

        return True

    async def send_error(self, message: str) -> bool:
        return await self.send(protocol.error(message))

    def start_heartbeat(self, requested_interval: typing.Any):
        """Starts the recurring heartbeat of this connection, once.

        Arguments:
            requested_interval {typing.Any} -- The client-supplied interval in
                                               milliseconds. It is clamped to the
                                               configured bounds.
        """

        if self.heartbeat_scope is not None:
            return

        self.heartbeat_interval = self.gateway.config.clamp_heartbeat(requested_interval)
        self.heartbeat_scope = trio.CancelScope()

        self.nursery.start_soon(
            self._heartbeat, self.heartbeat_scope, self.heartbeat_interval / 1000
        )

    async def _heartbeat(self, scope: trio.CancelScope, period: float):
        with scope:
            while not self.closed:
                await trio.sleep(period)

                # close() may have run while we slept.
                if self.closed:
                    break

                if await self.send(protocol.heartbeat()):
                    self.heartbeats_sent += 1

    async def close(self):
        """Closes this connection. Closing more than once does nothing."""

        if self.closed:
            return

        self.closed = True

        if self.heartbeat_scope is not None:
            self.heartbeat_scope.cancel()

        self.gateway.registry.unbind(self.user.id, self)

        with trio.CancelScope(shield=True):
            with trio.move_on_after(self.gateway.config.close_timeout / 1000) as scope:
                await self.target.close()

        if scope.cancelled_caught:
            self.logger.warning("Gave up waiting for %s to close cleanly", self.name)

        self.logger.info("User %s has left the server!", self.name)

    async def handle_text(self, text: typing.Union[str, bytes]):
        """Handles a single frame received from this connection."""

        if self.closed:
            return

        try:
            frame = protocol.parse_frame(text)

        except ProtocolError as err:
            self.logger.info("%s sent invalid JSON, closing connection: %s", self.name, err)

            await self.send_error(protocol.INVALID_JSON)
            await self.close()
            return

        await self.machine.handle_data(frame)

    async def receive_loop(self):
        """Handles frames from this connection, in order, until it closes."""

        while not self.closed:
            try:
                text = await self.target.receive_text()

            except TransportClosed:
                break

            await self.handle_text(text)

    # === Ready state handlers ===

    async def on_heartbeat_ack(self, frame: protocol.Frame):
        self.last_heartbeat_ack = trio.current_time()

    async def on_message(self, frame: protocol.Frame):
        storage = self.gateway.storage
        raw_channel = frame.data.get("channel")

        if raw_channel in (None, "", 0):
            self.logger.info("%s sent a message without a channel!", self.name)
            await self.send_error(protocol.MISSING_CHANNEL)
            return

        channel_id = parse_id(raw_channel)
        channel = storage.get_channel(channel_id) if channel_id is not None else None

        if channel is None:
            self.logger.info("%s requested non-existent channel %r!", self.name, raw_channel)
            await self.send_error(protocol.UNKNOWN_CHANNEL)
            return

        if not storage.is_member(channel.id, self.user.id):
            self.logger.info(
                "%s sent a message to %s, which they're not in!", self.name, channel.name
            )
            await self.send_error(protocol.NOT_A_MEMBER)
            return

        content = frame.data.get("content", frame.data.get("message"))

        if not isinstance(content, str) or not content.strip():
            await self.send_error(protocol.EMPTY_MESSAGE)
            return

        message = Message(self.gateway.snowflake.next(), content, self.user.id, channel.id)
        await self.gateway.fanout.fanout(channel, message, self.user)

    async def on_status_update(self, frame: protocol.Frame):
        status = frame.data.get("status")

        if (
            isinstance(status, bool)
            or not isinstance(status, int)
            or not protocol.MIN_STATUS <= status <= protocol.MAX_STATUS
        ):
            await self.send_error(protocol.INVALID_STATUS)
            return

        self.status = status
        self.logger.debug("%s is now in status %d", self.name, status)

    async def on_client_error(self, frame: protocol.Frame):
        self.logger.error("Client %s thinks we had an error! %r", self.name, frame.data)

    async def on_invalid(self, frame: protocol.Frame):
        self.logger.warning(
            "Client %s sent an invalid op code: %r (type %r)",
            self.name,
            frame.op,
            frame.type,
        )


@attr.s(auto_attribs=True)
class Gateway:
    """The gateway server and the state it shares across connections."""

    storage: Storage
    authenticator: Authenticator
    config: GatewayConfig = attr.Factory(GatewayConfig)

    registry: ConnectionRegistry = attr.Factory(ConnectionRegistry)
    snowflake: Snowflake = attr.Factory(Snowflake)
    logger: logging.Logger = attr.Factory(lambda: logging.getLogger("hammer.gateway"))

    fanout: ChannelFanout = attr.Factory(
        lambda self: ChannelFanout(self.registry), takes_self=True
    )

    async def open(
        self,
        target: Target,
        user: User,
        nursery: trio.Nursery,
        name: str = UNKNOWN_NAME,
    ) -> typing.Optional[GatewayConnection]:
        """Opens a gateway connection for an authenticated user.

        The connection is bound in the registry, greeted with HELLO and left
        waiting for IDENTIFY. Its heartbeat, once started, runs in the given
        nursery.

        Returns:
            typing.Optional[GatewayConnection] -- The connection, or None if the
                                                  user already had a live one, in
                                                  which case the target is closed.
        """

        conn = GatewayConnection(self, target, user, name, nursery)

        if not self.registry.bind(user.id, conn):
            self.logger.info("User %s is already connected!", name)
            await target.close()
            return None

        await conn.machine.next_state(AWAITING_IDENTIFY)

        self.logger.info("User %s has joined the server!", name)
        await conn.send(protocol.hello())

        return conn

    async def serve(self, target: Target, user: User, name: str = UNKNOWN_NAME):
        """Runs the protocol on a target until it disconnects."""

        async with trio.open_nursery() as nursery:
            conn = await self.open(target, user, nursery, name)

            if conn is None:
                return

            try:
                await conn.receive_loop()

            finally:
                await conn.close()

    async def handle_request(self, request: WebSocketRequest):
        """Handles an incoming WebSocket handshake request."""

        token = token_from_path(request.path)
        user = self.authenticator.verify_connection_token(token)

        if user is None:
            self.logger.info("Rejected a connection with a missing or invalid token")
            await request.reject(401)
            return

        name = self.authenticator.decode_display_name(token)
        self.logger.info("Received connection from %s!", name)

        connection = await request.accept()

        try:
            await self.serve(WebSocketTarget(connection), user, name)

        except Exception:
            self.logger.exception("Connection from %s failed", name)

    async def run(self, task_status=trio.TASK_STATUS_IGNORED):
        """Serves the gateway on the configured host and port, forever."""

        await serve_websocket(
            self.handle_request,
            self.config.host,
            self.config.port,
            ssl_context=None,
            task_status=task_status,
        )

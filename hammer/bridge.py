"""
The event bridge.

Administrative mutations (joining or leaving a channel, editing an
user) happen outside of any gateway connection. They are emitted as
events into a trio memory channel; the EventBridge consumes that
channel and turns each event into pushes to the live connection of
the affected user, if there is one.

Emission is fire-and-forget: events that do not fit in the channel's
buffer are dropped, and events for users that are not connected are
not kept for later.
"""

import logging
import typing
import warnings

import attr
import trio

from . import protocol
from .registry import ConnectionRegistry
from .snowflake import Snowflake
from .storage import Storage
from .structures import Message

ListenerType = typing.Callable[[typing.Any], typing.Awaitable[None]]


@attr.s(auto_attribs=True, frozen=True)
class ChannelJoin:
    """An user was added to a channel."""

    kind: typing.ClassVar[str] = "channel_join"

    user_id: int
    channel_id: int


@attr.s(auto_attribs=True, frozen=True)
class ChannelLeave:
    """An user was removed from a channel."""

    kind: typing.ClassVar[str] = "channel_leave"

    user_id: int
    channel_id: int


@attr.s(auto_attribs=True, frozen=True)
class UserUpdate:
    """An user's profile was changed."""

    kind: typing.ClassVar[str] = "user_update"

    user_id: int


Event = typing.Union[ChannelJoin, ChannelLeave, UserUpdate]


@attr.s(auto_attribs=True)
class EventEmitter:
    """The sending end of the event bridge, held by the administrative side."""

    send_channel: trio.MemorySendChannel
    logger: logging.Logger = attr.Factory(lambda: logging.getLogger("hammer.bridge"))

    def emit(self, event: Event) -> bool:
        """Emits an event without waiting.

        Returns:
            bool -- Whether the event was queued for the bridge.
        """

        try:
            self.send_channel.send_nowait(event)

        except trio.WouldBlock:
            self.logger.warning("Event bridge is falling behind, dropped %r", event)
            return False

        except (trio.BrokenResourceError, trio.ClosedResourceError):
            warnings.warn("Emitted {!r} after the event bridge was closed".format(event))
            return False

        return True

    async def aclose(self):
        await self.send_channel.aclose()


def open_event_channel(
    max_buffer_size: int = 64,
) -> typing.Tuple[EventEmitter, trio.MemoryReceiveChannel]:
    """Opens the channel between the administrative side and an EventBridge.

    Returns:
        (EventEmitter, trio.MemoryReceiveChannel) -- The emitter, and the receiving
                                                     end to pass to EventBridge.run.
    """

    send_channel, receive_channel = trio.open_memory_channel(max_buffer_size)

    return EventEmitter(send_channel), receive_channel


@attr.s(auto_attribs=True)
class EventBridge:
    """Turns administrative events into pushes to live gateway connections."""

    storage: Storage
    registry: ConnectionRegistry
    snowflake: Snowflake = attr.Factory(Snowflake)
    logger: logging.Logger = attr.Factory(lambda: logging.getLogger("hammer.bridge"))

    listeners: dict[str, list[ListenerType]] = attr.Factory(dict)

    def __attrs_post_init__(self):
        self.listen(ChannelJoin.kind)(self.on_channel_join)
        self.listen(ChannelLeave.kind)(self.on_channel_leave)
        self.listen(UserUpdate.kind)(self.on_user_update)

    def listen(self, kind: str):
        """Adds a listener for a kind of event.
        Use as a decorator generating method.

        Arguments:
            kind {str} -- The kind of event to listen for, e.g. ChannelJoin.kind.

        Returns:
            function -- The decorator method.
        """

        def _decorator(func: ListenerType) -> ListenerType:
            self.listeners.setdefault(kind, []).append(func)
            return func

        return _decorator

    async def dispatch(self, event: Event):
        """Hands an event to every listener of its kind.

        A failing listener is logged, and does not keep the
        others from running.
        """

        for listener in self.listeners.get(event.kind, []):
            try:
                await listener(event)

            except Exception:
                self.logger.exception("Event bridge listener failed on %r", event)

    async def run(self, events: trio.MemoryReceiveChannel):
        """Consumes events until every emitter is closed."""

        async with events:
            async for event in events:
                await self.dispatch(event)

    # === Built-in listeners ===

    async def on_channel_join(self, event: ChannelJoin):
        user = self.storage.get_user(event.user_id)
        channel = self.storage.get_channel(event.channel_id)

        if user is None or channel is None:
            self.logger.warning("Ignoring join of unknown user or channel: %r", event)
            return

        connection = self.registry.get(user.id)

        if connection is None:
            return

        await connection.send(protocol.channel_join(channel))

        notice = Message.system(
            self.snowflake.next(),
            "{} has joined the channel!".format(user.username),
            channel.id,
        )
        await connection.send(protocol.message(notice))

    async def on_channel_leave(self, event: ChannelLeave):
        user = self.storage.get_user(event.user_id)
        channel = self.storage.get_channel(event.channel_id)

        if user is None or channel is None:
            self.logger.warning("Ignoring leave of unknown user or channel: %r", event)
            return

        connection = self.registry.get(user.id)

        if connection is None:
            return

        await connection.send(protocol.channel_leave(channel))

    async def on_user_update(self, event: UserUpdate):
        user = self.storage.get_user(event.user_id)

        if user is None:
            self.logger.warning("Ignoring update of unknown user: %r", event)
            return

        for channel in self.storage.user_channels(user.id):
            self.logger.debug("Updated user %s is in channel %s", user.username, channel.name)

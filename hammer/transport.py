"""
Transport targets: the duplex, message-oriented pipes the gateway
speaks its protocol through.
"""

import typing

import attr
import trio
from trio_websocket import ConnectionClosed, WebSocketConnection

from .errors import TransportClosed


class Target(typing.Protocol):
    """A remote client the gateway can exchange text frames with."""

    async def send_text(self, text: str):
        """Send a text frame to this target.

        Raises:
            TransportClosed: The target is no longer connected.
        """
        ...

    async def receive_text(self) -> typing.Union[str, bytes]:
        """Wait for the next frame from this target.

        Raises:
            TransportClosed: The target disconnected.
        """
        ...

    async def close(self):
        """Ask to close this target. Closing twice is harmless."""
        ...


@attr.s(auto_attribs=True)
class WebSocketTarget:
    """A remote target over a trio-websocket connection."""

    connection: WebSocketConnection

    async def send_text(self, text: str):
        try:
            await self.connection.send_message(text)

        except (ConnectionClosed, trio.BrokenResourceError, trio.ClosedResourceError) as err:
            raise TransportClosed(str(err)) from err

    async def receive_text(self) -> typing.Union[str, bytes]:
        try:
            return await self.connection.get_message()

        except (ConnectionClosed, trio.BrokenResourceError, trio.ClosedResourceError) as err:
            raise TransportClosed(str(err)) from err

    async def close(self):
        await self.connection.aclose()

    def __str__(self) -> str:
        return str(self.connection.remote)

"""
Channel fanout: delivering a message to the members of a channel.
"""

import logging
import typing

import attr

from . import protocol
from .errors import FanoutError
from .registry import ConnectionRegistry
from .structures import Channel, Message, User


@attr.s(auto_attribs=True)
class ChannelFanout:
    """Delivers channel messages to the live connections of channel members."""

    registry: ConnectionRegistry
    logger: logging.Logger = attr.Factory(lambda: logging.getLogger("hammer.fanout"))

    async def fanout(
        self, channel: Channel, message: Message, sender: typing.Optional[User]
    ) -> int:
        """Sends a message to every member of a channel except its sender.

        Members without a live connection are skipped; there is no offline
        queue. A member whose delivery fails is logged and skipped, and
        delivery to the remaining members carries on.

        Arguments:
            channel {Channel} -- The channel whose members receive the message.
            message {Message} -- The message to deliver.
            sender {User} -- The author, who does not receive their own message.

        Raises:
            FanoutError: No sender was given.

        Returns:
            int -- How many members the message was delivered to.
        """

        if sender is None:
            raise FanoutError(
                "Fanout of message {} in channel {} has no sender".format(
                    message.id, channel.id
                )
            )

        frame = protocol.message(message)
        delivered = 0

        # Membership may change while we are suspended in a send.
        for member_id in list(channel.members):
            if member_id == sender.id:
                continue

            connection = self.registry.get(member_id)

            if connection is None:
                continue

            try:
                if await connection.send(frame):
                    delivered += 1

            except Exception:
                self.logger.exception(
                    "Could not deliver message %s to member %s of channel %s",
                    message.id,
                    member_id,
                    channel.name,
                )

        return delivered

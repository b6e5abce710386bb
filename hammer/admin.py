"""
The administrative service: the in-process side that mutates users
and channels, and tells the event bridge about it.
"""

import logging
import typing

import attr

from .bridge import ChannelJoin, ChannelLeave, EventEmitter, UserUpdate
from .storage import MemoryStorage
from .structures import Channel, Permissions, User


@attr.s(auto_attribs=True)
class AdminService:
    """Mutates the store on behalf of administrators, emitting bridge events."""

    storage: MemoryStorage
    events: EventEmitter
    logger: logging.Logger = attr.Factory(lambda: logging.getLogger("hammer.admin"))

    def add_user(
        self,
        email: str,
        username: str,
        permissions: typing.Optional[Permissions] = None,
    ) -> User:
        user = self.storage.add_user(email, username, permissions)
        self.logger.info("Added user %s (%s)", user.username, user.id)

        return user

    def create_channel(self, name: str, description: str, owner_id: int) -> Channel:
        channel = self.storage.create_channel(name, description, owner_id)
        self.logger.info("Created channel %s (%s)", channel.name, channel.id)

        return channel

    def join_channel(self, user_id: int, channel_id: int) -> Channel:
        """Adds an user to a channel, and notifies their live connection if any."""

        channel = self.storage.add_user_to_channel(channel_id, user_id)
        self.events.emit(ChannelJoin(user_id, channel_id))

        return channel

    def leave_channel(self, user_id: int, channel_id: int) -> Channel:
        """Removes an user from a channel, and notifies their live connection if any."""

        channel = self.storage.remove_user_from_channel(channel_id, user_id)
        self.events.emit(ChannelLeave(user_id, channel_id))

        return channel

    def update_user(
        self,
        user_id: int,
        username: typing.Optional[str] = None,
        avatar_url: typing.Optional[str] = None,
    ) -> User:
        """Edits an user's profile.

        Member projections already listed in channels are not refreshed.

        Raises:
            UnknownUserError: There is no such user.
            ValidationError: The new username or avatar URL is invalid.
        """

        user = self.storage.require_user(user_id)

        if username is not None:
            user.set_username(username)

        if avatar_url is not None:
            user.set_avatar_url(avatar_url)

        self.events.emit(UserUpdate(user_id))

        return user

"""
Storage of users, channels and connection tokens.

The gateway only depends on the read side, described by the
Storage protocol. MemoryStorage is the in-process implementation,
which also carries the mutations used by the administrative
service and the bootstrap code.
"""

import typing
from collections.abc import Iterable

import attr

from .errors import (DuplicateUserError, UnknownChannelError,
                     UnknownUserError)
from .snowflake import Snowflake
from .structures import Channel, Permissions, User


class Storage(typing.Protocol):
    """The read-only view of the store that the gateway core relies on."""

    def get_channel(self, channel_id: int) -> typing.Optional[Channel]:
        """Returns a channel by id, or None if it does not exist."""
        ...

    def is_member(self, channel_id: int, user_id: int) -> bool:
        """Whether an user belongs to a channel."""
        ...

    def get_user(self, user_id: int) -> typing.Optional[User]:
        """Returns an user by id, or None if it does not exist."""
        ...

    def get_user_by_token(self, token: str) -> typing.Optional[User]:
        """Returns the user a live connection token belongs to, if any."""
        ...

    def user_channels(self, user_id: int) -> Iterable[Channel]:
        """Generates every channel an user belongs to."""
        ...


def parse_id(value: typing.Any) -> typing.Optional[int]:
    """Coerces an identifier received over the wire.

        >>> parse_id('1234')
        1234
        >>> parse_id(5)
        5
        >>> print(parse_id('general'))
        None
        >>> print(parse_id(True))
        None

    Arguments:
        value {typing.Any} -- An integer, or a string of decimal digits.

    Returns:
        typing.Optional[int] -- The identifier, or None if it is not one.
    """

    if isinstance(value, bool):
        return None

    if isinstance(value, int):
        return value

    if isinstance(value, str) and value.isascii() and value.isdigit():
        return int(value)

    return None


@attr.s(auto_attribs=True)
class MemoryStorage:
    """An in-memory, single-process Storage implementation."""

    snowflake: Snowflake = attr.Factory(Snowflake)

    users: dict[int, User] = attr.Factory(dict)
    channels: dict[int, Channel] = attr.Factory(dict)
    tokens: dict[str, int] = attr.Factory(dict)

    # == Storage protocol ==

    def get_channel(self, channel_id: int) -> typing.Optional[Channel]:
        return self.channels.get(channel_id)

    def is_member(self, channel_id: int, user_id: int) -> bool:
        channel = self.channels.get(channel_id)
        return channel is not None and channel.has_member(user_id)

    def get_user(self, user_id: int) -> typing.Optional[User]:
        return self.users.get(user_id)

    def get_user_by_token(self, token: str) -> typing.Optional[User]:
        user_id = self.tokens.get(token)

        if user_id is None:
            return None

        return self.users.get(user_id)

    def user_channels(self, user_id: int) -> Iterable[Channel]:
        user = self.users.get(user_id)

        if user is None:
            return

        for channel_id in sorted(user.channels):
            channel = self.channels.get(channel_id)

            if channel is not None:
                yield channel

    # == Mutations ==

    def require_user(self, user_id: int) -> User:
        user = self.users.get(user_id)

        if user is None:
            raise UnknownUserError("No such user: {}".format(user_id))

        return user

    def require_channel(self, channel_id: int) -> Channel:
        channel = self.channels.get(channel_id)

        if channel is None:
            raise UnknownChannelError("No such channel: {}".format(channel_id))

        return channel

    def get_user_by_name(self, username: str) -> typing.Optional[User]:
        for user in self.users.values():
            if user.username == username:
                return user

        return None

    def add_user(
        self,
        email: str,
        username: str,
        permissions: typing.Optional[Permissions] = None,
    ) -> User:
        """Creates and stores a new user.

        Raises:
            DuplicateUserError: The username is already taken.
        """

        if self.get_user_by_name(username) is not None:
            raise DuplicateUserError("Username already taken: {}".format(username))

        user = User(
            self.snowflake.next(),
            username,
            email,
            permissions if permissions is not None else Permissions(),
        )
        self.users[user.id] = user

        return user

    def create_channel(self, name: str, description: str, owner_id: int) -> Channel:
        self.require_user(owner_id)

        channel = Channel(self.snowflake.next(), name, description, owner_id)
        self.channels[channel.id] = channel

        return channel

    def add_user_to_channel(self, channel_id: int, user_id: int) -> Channel:
        channel = self.require_channel(channel_id)
        user = self.require_user(user_id)

        channel.add_member(user.as_member())
        user.channels.add(channel.id)

        return channel

    def remove_user_from_channel(self, channel_id: int, user_id: int) -> Channel:
        channel = self.require_channel(channel_id)
        user = self.require_user(user_id)

        channel.remove_member(user.id)
        user.channels.discard(channel.id)

        return channel

    def register_token(self, token: str, user_id: int):
        self.require_user(user_id)
        self.tokens[token] = user_id

    def revoke_token(self, token: str):
        self.tokens.pop(token, None)

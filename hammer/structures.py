"""
The data structures shared by the store, the gateway and the
event bridge: users, their member projections, channels and
messages.
"""

import datetime
import re
import typing

import attr

from .errors import ValidationError

SYSTEM_AUTHOR = "SYSTEM"

AVATAR_URL_PATTERN = re.compile(r'^(http|https)://[^ "]+$')
AVATAR_EXTENSIONS = (".png", ".jpg", ".jpeg")


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _timestamp(when: typing.Optional[datetime.datetime]) -> typing.Optional[str]:
    return when.isoformat() if when is not None else None


@attr.s(auto_attribs=True, frozen=True)
class Permissions:
    """The permission set of an user."""

    administrator: bool = False
    manage_channels: bool = False
    manage_messages: bool = False

    @classmethod
    def everything(cls) -> "Permissions":
        return cls(True, True, True)

    def to_json(self) -> dict:
        return {
            "ADMINISTRATOR": self.administrator,
            "MANAGE_CHANNELS": self.manage_channels,
            "MANAGE_MESSAGES": self.manage_messages,
        }


@attr.s(auto_attribs=True)
class User:
    """
    An identity known to the store.

    The gateway only ever reads users; mutations go through the
    store and the administrative service.
    """

    id: int
    username: str
    email: str
    permissions: Permissions = attr.Factory(Permissions)

    joined_at: datetime.datetime = attr.Factory(_utcnow)
    avatar_url: typing.Optional[str] = None

    channels: set[int] = attr.Factory(set)

    def set_username(self, username: str):
        if not username or not username.strip():
            raise ValidationError("Username must not be empty")

        self.username = username

    def set_avatar_url(self, url: str):
        """Sets the avatar URL of this user.

            >>> user = User(1, 'chrono', 'me@example.org')
            >>> user.set_avatar_url('https://example.org/me.png')
            >>> user.avatar_url
            'https://example.org/me.png'
            >>> user.set_avatar_url('ftp://example.org/me.png')
            Traceback (most recent call last):
                ...
            hammer.errors.ValidationError: Invalid URL

        Arguments:
            url {str} -- An http(s) URL pointing at a PNG or JPEG image.

        Raises:
            ValidationError: The URL is malformed or does not point at an image.
        """

        if not AVATAR_URL_PATTERN.match(url):
            raise ValidationError("Invalid URL")

        if not url.endswith(AVATAR_EXTENSIONS):
            raise ValidationError("URL is not an image")

        self.avatar_url = url

    def as_member(self) -> "Member":
        return Member.from_user(self)


@attr.s(auto_attribs=True, frozen=True)
class Member:
    """
    A point-in-time snapshot of an User, as listed in a channel.

    It is not refreshed when the user changes, so it may go stale.
    """

    id: int
    username: str
    joined_at: datetime.datetime
    avatar_url: typing.Optional[str]
    permissions: Permissions

    @classmethod
    def from_user(cls, user: User) -> "Member":
        return cls(
            user.id, user.username, user.joined_at, user.avatar_url, user.permissions
        )

    def to_json(self) -> dict:
        return {
            "id": str(self.id),
            "username": self.username,
            "joined_at": _timestamp(self.joined_at),
            "avatar_url": self.avatar_url,
            "permissions": self.permissions.to_json(),
        }


@attr.s(auto_attribs=True)
class Channel:
    """A chat channel, and the members that belong to it."""

    id: int
    name: str
    description: str
    owner_id: int

    members: dict[int, Member] = attr.Factory(dict)

    def add_member(self, member: Member):
        self.members[member.id] = member

    def remove_member(self, member_id: int):
        self.members.pop(member_id, None)

    def has_member(self, member_id: int) -> bool:
        return member_id in self.members

    def set_owner(self, owner_id: int):
        self.owner_id = owner_id

    def to_json(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "description": self.description,
            "owner": str(self.owner_id),
            "members": [member.to_json() for member in self.members.values()],
        }


@attr.s(auto_attribs=True, frozen=True)
class Message:
    """
    A chat message, as delivered to channel members.

    The author is an user id, or SYSTEM_AUTHOR for notices
    generated by the server itself.
    """

    id: int
    content: str
    author: typing.Union[int, str]
    channel_id: int

    created_at: datetime.datetime = attr.Factory(_utcnow)
    reply: bool = False

    @classmethod
    def system(cls, id: int, content: str, channel_id: int) -> "Message":
        return cls(id, content, SYSTEM_AUTHOR, channel_id)

    def to_json(self) -> dict:
        return {
            "id": str(self.id),
            "content": self.content,
            "author": str(self.author),
            "channel": str(self.channel_id),
            "created_at": _timestamp(self.created_at),
            "reply": self.reply,
        }

"""
Connection token handling.

A token is valid for the gateway only while it is registered in
the store; the signed claims inside it are used for cosmetics
(the display name in logs), never to decide access.
"""

import datetime
import typing
import uuid

import attr
from jose import JWTError, jwt

from .storage import Storage
from .structures import User

UNKNOWN_NAME = "Unknown"


@attr.s(auto_attribs=True)
class Authenticator:
    """Verifies connection tokens against the store."""

    storage: Storage
    secret: str
    algorithm: str = "HS256"

    def verify_connection_token(self, token: typing.Optional[str]) -> typing.Optional[User]:
        """Returns the user a connection token belongs to, or None if it is invalid."""

        if not token:
            return None

        return self.storage.get_user_by_token(token)

    def decode_display_name(self, token: typing.Optional[str]) -> str:
        """Reads the username claim of a token, for logging purposes.

        Any failure degrades to UNKNOWN_NAME.
        """

        if not token:
            return UNKNOWN_NAME

        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])

        except JWTError:
            return UNKNOWN_NAME

        username = claims.get("username")

        if not isinstance(username, str) or not username:
            return UNKNOWN_NAME

        return username

    def issue_token(self, user: User) -> str:
        """Mints a signed connection token for an user and registers it in the store.

        The store must accept registrations, as MemoryStorage does.
        """

        now = datetime.datetime.now(datetime.timezone.utc)
        claims = {
            "sub": str(user.id),
            "username": user.username,
            "iat": int(now.timestamp()),
            "jti": str(uuid.uuid4()),
        }

        token = jwt.encode(claims, self.secret, algorithm=self.algorithm)
        self.storage.register_token(token, user.id)

        return token

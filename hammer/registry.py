"""The registry of live gateway connections, one per identity."""

import typing

import attr

if typing.TYPE_CHECKING:
    from .gateway import GatewayConnection


@attr.s(auto_attribs=True)
class ConnectionRegistry:
    """
    Maps user ids to their live connection.

    An identity has at most one live connection at a time. Neither
    bind nor unbind ever yields to the scheduler, so interleaved
    accepts and closes for the same identity cannot both win.
    """

    connections: dict[int, "GatewayConnection"] = attr.Factory(dict)

    def bind(self, user_id: int, connection: "GatewayConnection") -> bool:
        """Binds a connection to an identity.

        Returns True if and only if the connection was bound; False means
        the identity already has a live connection, which is left untouched.
        """

        if self.connections.get(user_id) is not None:
            return False

        self.connections[user_id] = connection
        return True

    def unbind(self, user_id: int, connection: "GatewayConnection"):
        """Unbinds a connection from its identity, if it is still the bound one."""

        if self.connections.get(user_id) is connection:
            del self.connections[user_id]

    def get(self, user_id: int) -> typing.Optional["GatewayConnection"]:
        return self.connections.get(user_id)

    def is_connected(self, user_id: int) -> bool:
        return user_id in self.connections

    def __len__(self) -> int:
        return len(self.connections)

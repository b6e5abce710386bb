"""
Command line entry point: prints the banner, seeds the store with a
default administrator and channel, and runs the gateway together
with the event bridge.
"""

import argparse
import logging
import typing

import attr
import trio

from . import __version__
from .admin import AdminService
from .auth import Authenticator
from .bridge import EventBridge, open_event_channel
from .config import GatewayConfig
from .errors import ConfigError
from .gateway import Gateway
from .storage import MemoryStorage
from .structures import Permissions

BANNER = """\
Hammer - Version {version}
Hammer - A simple WebSocket-based chat server & client.

This software is provided 'as-is', without any express or implied warranty. In no event will
the authors be held liable for any damages arising from the use of this software.
"""


def banner() -> str:
    return BANNER.format(version=__version__)


@attr.s(auto_attribs=True)
class Server:
    """Everything a running Hammer process is made of."""

    config: GatewayConfig
    storage: MemoryStorage
    gateway: Gateway
    bridge: EventBridge
    admin: AdminService
    events: trio.MemoryReceiveChannel

    @classmethod
    def create(cls, config: GatewayConfig) -> "Server":
        storage = MemoryStorage()
        authenticator = Authenticator(storage, config.jwt_secret, config.jwt_algorithm)

        gateway = Gateway(storage, authenticator, config, snowflake=storage.snowflake)
        bridge = EventBridge(storage, gateway.registry, snowflake=storage.snowflake)

        emitter, events = open_event_channel(config.event_buffer)
        admin = AdminService(storage, emitter)

        return cls(config, storage, gateway, bridge, admin, events)

    def seed(self) -> typing.Dict[str, str]:
        """Creates the default users and the general channel.

        Returns:
            typing.Dict[str, str] -- Connection tokens of the seeded users, by username.
        """

        admin = self.admin.add_user("admin@disilla.org", "admin", Permissions.everything())
        general = self.admin.create_channel("general", "The general channel", admin.id)
        self.admin.join_channel(admin.id, general.id)

        chrono = self.admin.add_user("me@disilla.org", "chrono")
        self.admin.join_channel(chrono.id, general.id)

        authenticator = self.gateway.authenticator

        return {
            user.username: authenticator.issue_token(user) for user in (admin, chrono)
        }

    async def run(self):
        async with trio.open_nursery() as nursery:
            nursery.start_soon(self.bridge.run, self.events)
            await nursery.start(self.gateway.run)

            logging.getLogger("hammer").info(
                "Gateway listening on ws://%s:%d", self.config.host, self.config.port
            )


def parse_args(argv: typing.Optional[typing.Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="hammer", description="Run the Hammer chat gateway."
    )
    parser.add_argument(
        "port", nargs="?", type=int, default=None, help="port to listen on"
    )
    parser.add_argument("--host", default=None, help="address to bind to")
    parser.add_argument("--env-file", default=None, help="path of a .env file to load")

    return parser.parse_args(argv)


def main(argv: typing.Optional[typing.Sequence[str]] = None):
    args = parse_args(argv)

    overrides = {}

    if args.port is not None:
        overrides["port"] = args.port

    if args.host is not None:
        overrides["host"] = args.host

    try:
        config = GatewayConfig.from_env(dotenv_path=args.env_file, **overrides)

    except ConfigError as err:
        raise SystemExit("Error: {}".format(err))

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print(banner())

    server = Server.create(config)
    tokens = server.seed()

    for username, token in tokens.items():
        logging.getLogger("hammer").info("Token for %s: %s", username, token)

    try:
        trio.run(server.run)

    except KeyboardInterrupt:
        pass

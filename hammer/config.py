"""
Gateway configuration.

Values come from the environment, optionally seeded from a
.env file; the real environment always wins over the file.
"""

import math
import os
import typing

import attr
from dotenv import load_dotenv

from .errors import ConfigError


def _env_int(environ: typing.Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)

    if raw is None or raw == "":
        return default

    try:
        return int(raw)

    except ValueError as err:
        raise ConfigError("{} must be an integer, got {!r}".format(name, raw)) from err


@attr.s(auto_attribs=True, frozen=True)
class GatewayConfig:
    """Settings for the gateway and its collaborators.

    Heartbeat values and timeouts are in milliseconds.

        >>> config = GatewayConfig(
        ...     heartbeat_default=2000, heartbeat_min=1000, heartbeat_max=5000
        ... )
        >>> config.clamp_heartbeat(10)
        1000
        >>> config.clamp_heartbeat(99999)
        5000
        >>> config.clamp_heartbeat(None)
        2000
        >>> config.clamp_heartbeat("fast")
        2000
    """

    host: str = "127.0.0.1"
    port: int = 8080

    jwt_secret: str = "hammer-dev-secret"
    jwt_algorithm: str = "HS256"

    heartbeat_default: int = 41250
    heartbeat_min: int = 1000
    heartbeat_max: int = 60000

    send_timeout: int = 10000
    close_timeout: int = 5000

    event_buffer: int = 64
    log_level: str = "INFO"

    def __attrs_post_init__(self):
        if not 0 < self.port < 65536:
            raise ConfigError("Port out of range: {}".format(self.port))

        if self.heartbeat_min <= 0 or self.heartbeat_min > self.heartbeat_max:
            raise ConfigError(
                "Invalid heartbeat bounds: {}..{}".format(
                    self.heartbeat_min, self.heartbeat_max
                )
            )

        if self.send_timeout <= 0 or self.close_timeout <= 0:
            raise ConfigError("Send and close timeouts must be positive")

        if self.event_buffer < 0:
            raise ConfigError("Event buffer size must not be negative")

    @classmethod
    def from_env(
        cls,
        environ: typing.Optional[typing.Mapping[str, str]] = None,
        dotenv_path: typing.Optional[str] = None,
        **overrides
    ) -> "GatewayConfig":
        """Builds a configuration from environment variables.

        Keyword Arguments:
            environ {Mapping[str, str]} -- The environment to read. When None, a .env
                                           file is loaded into os.environ first and
                                           os.environ is read. (default: {None})
            dotenv_path {str} -- An explicit .env file to load. (default: {None})

            **overrides -- Field values that take precedence over the environment.

        Raises:
            ConfigError: A variable holds an unusable value.
        """

        if environ is None:
            load_dotenv(dotenv_path, override=False)
            environ = os.environ

        values = dict(
            host=environ.get("HAMMER_HOST", "127.0.0.1"),
            port=_env_int(environ, "PORT", 8080),
            jwt_secret=environ.get("JWT_SECRET", "hammer-dev-secret"),
            jwt_algorithm=environ.get("JWT_ALGORITHM", "HS256"),
            heartbeat_default=_env_int(environ, "HAMMER_HEARTBEAT_DEFAULT", 41250),
            heartbeat_min=_env_int(environ, "HAMMER_HEARTBEAT_MIN", 1000),
            heartbeat_max=_env_int(environ, "HAMMER_HEARTBEAT_MAX", 60000),
            send_timeout=_env_int(environ, "HAMMER_SEND_TIMEOUT", 10000),
            close_timeout=_env_int(environ, "HAMMER_CLOSE_TIMEOUT", 5000),
            event_buffer=_env_int(environ, "HAMMER_EVENT_BUFFER", 64),
            log_level=environ.get("HAMMER_LOG_LEVEL", "INFO").upper(),
        )
        values.update(overrides)

        return cls(**values)

    def clamp_heartbeat(self, requested: typing.Any) -> int:
        """Turns a client-supplied heartbeat interval into one the server accepts."""

        if (
            isinstance(requested, bool)
            or not isinstance(requested, (int, float))
            or not math.isfinite(requested)
        ):
            requested = self.heartbeat_default

        return int(min(max(requested, self.heartbeat_min), self.heartbeat_max))

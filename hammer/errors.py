class HammerError(Exception):
    """
    A common superclass for all
    exceptions regarding Hammer.
    """
    pass

# == Configuration errors ==

class ConfigError(HammerError):
    """
    Raised when the gateway configuration
    holds a value that cannot be used.
    """
    pass

# == Model errors ==

class ValidationError(HammerError):
    """
    Raised when a model mutation is given
    invalid input (e.g. a bad avatar URL).
    """
    pass

# == Storage errors ==

class StorageError(HammerError):
    """
    A common superclass for all exceptions
    involving hammer.storage.Storage and
    implementations thereof.
    """
    pass

class UnknownUserError(StorageError):
    """
    Raised when a mutation refers to a user
    id that the store does not know about.
    """
    pass

class UnknownChannelError(StorageError):
    """
    Raised when a mutation refers to a channel
    id that the store does not know about.
    """
    pass

class DuplicateUserError(StorageError):
    """
    Raised when adding a user whose username
    is already taken.
    """
    pass

# == Gateway errors ==

class GatewayError(HammerError):
    """
    A common superclass for all exceptions
    involving the gateway and its connections.
    """
    pass

class ProtocolError(GatewayError):
    """
    Raised when an inbound frame cannot be
    decoded into a protocol envelope.
    """
    pass

class TransportClosed(GatewayError):
    """
    Raised by transport targets when the
    underlying connection is already gone.
    """
    pass

class FanoutError(GatewayError):
    """
    Raised when a fanout is requested without
    the sending identity, which would otherwise
    echo the message back to its author.
    """
    pass

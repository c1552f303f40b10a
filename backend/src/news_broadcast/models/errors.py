class NewsBroadcastError(Exception):
    """Base class for errors raised by the broadcast engine."""


class ServiceClosedError(NewsBroadcastError):
    """Publish or subscribe was attempted after shutdown."""

    def __init__(self, message: str = "service closing"):
        super().__init__(message)


class BusClosedError(NewsBroadcastError):
    """The bus a tap was attached to has been closed."""


class SlowConsumerError(NewsBroadcastError):
    """A bounded tap overflowed; its subscriber is being disconnected."""


class TapDetachedError(NewsBroadcastError):
    """The subscriber released its tap while a consumer was waiting on it."""

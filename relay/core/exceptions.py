"""
Relay error types.

Startup errors (configuration, connection) stop the process. Request errors
are mapped to HTTP responses by the handlers registered in ``relay.main``:
a ``RequestShapeError`` becomes a 400, a ``DomainError`` a 500.
"""


class RelayError(Exception):
    """Base class for all relay errors."""


class ConfigurationError(RelayError):
    """A required environment value is missing or invalid."""


class RobotConnectionError(RelayError):
    """Dialling the robot or resolving its board failed."""


class RequestShapeError(RelayError):
    """The request body is not JSON or does not match the relay request schema."""


class DomainError(RelayError):
    pass


class PinNotFoundError(DomainError):
    pass


class InvalidPinStateError(DomainError):
    pass


class PinCallError(DomainError):
    """The remote get/set call on a pin failed or timed out."""


class ClientDisconnectedError(RelayError):
    """The client went away before its pin call finished; the call was cancelled."""

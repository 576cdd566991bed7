"""
Askpass relay exceptions
"""


class AskpassError(Exception):
    """Base class for relay failures."""
    pass


class BindError(AskpassError):
    """Raised when the relay server cannot acquire its local address."""
    pass


class RelayConnectionError(AskpassError):
    """Raised when a stub cannot reach the relay server."""
    pass


class MalformedRequestError(AskpassError):
    """Raised when a connection sends an unreadable or unauthenticated payload."""
    pass

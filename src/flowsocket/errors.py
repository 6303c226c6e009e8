"""Exceptions raised by the connection client."""


class FlowSocketError(Exception):
    """Base class for all flowsocket errors."""


class InvalidArgumentType(FlowSocketError, TypeError):
    """A setter or write received a value of the wrong type."""


class InvalidHost(FlowSocketError, ValueError):
    """Host is neither ``localhost`` nor a valid IP address."""


class NoConnection(FlowSocketError, ConnectionError):
    """An operation that needs an open socket was called while idle."""

"""Single-connection TCP client with an event-driven lifecycle."""

from flowsocket.client import ConnectionClient, ConnectionState, create_client
from flowsocket.config.settings import ClientConfig
from flowsocket.errors import (
    FlowSocketError,
    InvalidArgumentType,
    InvalidHost,
    NoConnection,
)
from flowsocket.events import EventEmitter
from flowsocket.transports.tcp.socket_stream import SocketStream

__version__ = "0.1.0"
__all__ = [
    "ConnectionClient",
    "ConnectionState",
    "create_client",
    "ClientConfig",
    "EventEmitter",
    "SocketStream",
    "FlowSocketError",
    "InvalidArgumentType",
    "InvalidHost",
    "NoConnection",
    "__version__",
]

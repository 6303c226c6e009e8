"""Single-connection TCP client with a guarded lifecycle."""

import ipaddress
import logging
import math
import numbers
from enum import Enum
from typing import Any, Callable, List, Optional

from flowsocket.config.settings import ClientConfig
from flowsocket.errors import InvalidArgumentType, InvalidHost, NoConnection
from flowsocket.events import EventEmitter, Listener
from flowsocket.transports.tcp.socket_stream import SocketStream

logger = logging.getLogger(__name__)

_MISSING = object()

REDUNDANT_CONNECT_MESSAGE = (
    "Socket connection already exists. To create a new connection, end the "
    "current connection. To create an additional connection, create a new "
    "client instance."
)


class ConnectionState(Enum):
    """Client connection state."""

    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def is_valid_host(value: str) -> bool:
    """Return True for ``localhost`` or an IPv4/IPv6 address literal."""
    if value == "localhost":
        return True
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


class ConnectionClient:
    """
    TCP client owning at most one socket connection.

    Configure with the fluent setters, subscribe to events, then connect():

        client = create_client().set_host("127.0.0.1").set_port(9000)
        client.on("connect", lambda: client.write("beep\\n"))
        client.connect()

    connect() never blocks. The outcome arrives as a ``connect`` or
    ``error`` event, followed eventually by ``close(had_error)``. Events are
    emitted from the connection's background thread. Calling connect() while
    a connection exists emits ``warning`` instead of opening a second one.

    Transport failures are only reported through the ``error`` event;
    without an ``error`` listener they are logged and dropped.
    """

    def __init__(self, config: Optional[ClientConfig] = None):
        """
        Initialize the client. No connection is made.

        Args:
            config: Optional initial configuration. Host, port and strict
                    are validated as if passed to their setters.
        """
        config = config if config is not None else ClientConfig()
        self._events = EventEmitter()
        self._host = ClientConfig.host
        self._port = ClientConfig.port
        self._strict = ClientConfig.strict
        self._connect_timeout = config.connect_timeout
        self._buffer_size = config.buffer_size
        self._encoding = config.encoding
        self._handle: Optional[SocketStream] = None

        self.set_host(config.host).set_port(config.port).set_strict(config.strict)

    # Configuration

    def get_host(self) -> str:
        return self._host

    def set_host(self, value: str) -> "ConnectionClient":
        """
        Set the server host. Takes effect on the next connect().

        Raises:
            InvalidArgumentType: If value is not a string
            InvalidHost: If value is not ``localhost`` or an IP address
        """
        if not isinstance(value, str):
            raise InvalidArgumentType(
                f"host must be a string, not {type(value).__name__}"
            )
        if not is_valid_host(value):
            raise InvalidHost(
                f"invalid host {value!r}, expected an IP address or 'localhost'"
            )
        self._host = value
        return self

    def get_port(self) -> Any:
        return self._port

    def set_port(self, value: Any) -> "ConnectionClient":
        """
        Set the server port. Takes effect on the next connect().

        Any finite number is accepted; an unusable port is reported by
        the transport as an ``error`` event when connecting.

        Raises:
            InvalidArgumentType: If value is not a finite number
        """
        if (
            isinstance(value, bool)
            or not isinstance(value, numbers.Real)
            or not math.isfinite(value)
        ):
            raise InvalidArgumentType(f"port must be a number, not {value!r}")
        self._port = value
        return self

    def get_strict(self) -> bool:
        return self._strict

    def set_strict(self, value: bool) -> "ConnectionClient":
        """
        Turn type checking in write() on or off.

        Raises:
            InvalidArgumentType: If value is not a bool
        """
        if not isinstance(value, bool):
            raise InvalidArgumentType(
                f"strict must be a bool, not {type(value).__name__}"
            )
        self._strict = value
        return self

    def get_config(self) -> ClientConfig:
        """Return a snapshot of the current configuration."""
        return ClientConfig(
            host=self._host,
            port=self._port,
            strict=self._strict,
            connect_timeout=self._connect_timeout,
            buffer_size=self._buffer_size,
            encoding=self._encoding,
        )

    # Lifecycle

    def connect(self) -> "ConnectionClient":
        """
        Start connecting to the configured host and port.

        Returns immediately. Does nothing but emit ``warning`` when a
        connection already exists.
        """
        if self._handle is not None:
            logger.warning(
                "connect() ignored, already connected to %s:%s",
                self._host,
                self._port,
            )
            self._events.emit("warning", REDUNDANT_CONNECT_MESSAGE)
            return self

        handle = SocketStream(self.get_config())
        handle.on("connect", self._forward("connect"))
        handle.on("data", self._forward("data"))
        handle.on("error", self._on_error)
        handle.on("close", lambda had_error: self._on_close(handle, had_error))
        self._handle = handle

        logger.debug("Connecting to %s:%s", self._host, self._port)
        handle.connect(self._port, self._host)
        return self

    def status(self) -> bool:
        """Return True while a connection exists or is being established."""
        return self._handle is not None

    def get_state(self) -> ConnectionState:
        """
        Get the current connection state.

        Returns:
            Current ConnectionState
        """
        handle = self._handle
        if handle is None:
            return ConnectionState.IDLE
        if handle.connected:
            return ConnectionState.CONNECTED
        return ConnectionState.CONNECTING

    def write(self, data: Any, callback: Any = _MISSING) -> "ConnectionClient":
        """
        Write data to the socket.

        In strict mode the connection is checked first, then that data is
        a string, then that the callback (when given) is callable. With
        strict mode off the arguments go straight to the socket stream.

        Args:
            data: String to write
            callback: Called with no arguments once the data is flushed

        Raises:
            NoConnection: If there is no connection
            InvalidArgumentType: In strict mode, if data is not a string
                                 or callback is not callable
        """
        if self._strict:
            if self._handle is None:
                raise NoConnection("cannot write, no socket connection")
            if not isinstance(data, str):
                raise InvalidArgumentType(
                    f"data must be a string, not {type(data).__name__}"
                )
            if callback is not _MISSING and not callable(callback):
                raise InvalidArgumentType("callback must be callable")
        elif self._handle is None:
            raise NoConnection("cannot write, no socket connection")

        if callback is _MISSING:
            self._handle.write(data)
        else:
            self._handle.write(data, callback)
        return self

    def stream(self) -> SocketStream:
        """
        Return the underlying socket stream.

        Writes made directly on the stream bypass strict mode.

        Raises:
            NoConnection: If there is no connection
        """
        if self._handle is None:
            raise NoConnection("cannot return stream, no socket connection")
        return self._handle

    def end(self) -> "ConnectionClient":
        """
        Close the connection.

        The client is idle as soon as this returns; ``close`` is emitted
        later once the socket has shut down. A pending handshake is
        aborted. Does nothing when there is no connection.
        """
        handle = self._handle
        if handle is None:
            logger.debug("end() called without a connection, ignoring")
            return self
        self._handle = None
        if handle.connected:
            handle.end()
        else:
            handle.destroy()
        return self

    # Events

    def on(self, event: str, listener: Listener) -> "ConnectionClient":
        self._events.on(event, listener)
        return self

    def once(self, event: str, listener: Listener) -> "ConnectionClient":
        self._events.once(event, listener)
        return self

    def off(self, event: str, listener: Listener) -> bool:
        return self._events.off(event, listener)

    def emit(self, event: str, *args: Any) -> bool:
        return self._events.emit(event, *args)

    def listeners(self, event: str) -> List[Listener]:
        return self._events.listeners(event)

    def remove_all_listeners(self, event: Optional[str] = None) -> None:
        self._events.remove_all_listeners(event)

    def _forward(self, event: str) -> Callable[..., None]:
        def _emit(*args):
            self._events.emit(event, *args)

        return _emit

    def _on_error(self, exc: BaseException) -> None:
        if not self._events.emit("error", exc):
            logger.warning(
                "Unhandled connection error for %s:%s: %s",
                self._host,
                self._port,
                exc,
            )

    def _on_close(self, handle: SocketStream, had_error: bool) -> None:
        # A late close from an ended handle must not clear a newer one
        if self._handle is handle:
            self._handle = None
        self._events.emit("close", had_error)

    def __enter__(self):
        """Context manager entry."""
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.end()

    def __repr__(self) -> str:
        return (
            f"<ConnectionClient {self._host}:{self._port} "
            f"strict={self._strict} state={self.get_state().value}>"
        )


def create_client(config: Optional[ClientConfig] = None) -> ConnectionClient:
    """
    Create an unconnected client.

    Args:
        config: Optional initial configuration

    Returns:
        New ConnectionClient
    """
    return ConnectionClient(config)

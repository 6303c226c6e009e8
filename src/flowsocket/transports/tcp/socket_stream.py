"""Event-emitting TCP socket stream backed by a private event loop thread."""

import asyncio
import logging
import threading
from typing import Any, Callable, Iterable, Optional, Union

from flowsocket.config.settings import ClientConfig
from flowsocket.events import EventEmitter, Listener
from flowsocket.transports.tcp.async_client import AsyncTCPClient

logger = logging.getLogger(__name__)

_EOF = object()

Chunk = Union[str, bytes, bytearray, memoryview]


class SocketStream:
    """
    A single TCP connection that reports its lifecycle through events.

    connect() returns immediately; the handshake, reads and writes run on a
    daemon thread with its own asyncio loop. Events are emitted from that
    thread in the order they happen:

        connect          handshake completed
        data(bytes)      a chunk arrived from the peer
        error(exc)       the connection failed
        close(had_error) the connection is gone (always last, exactly once)

    A stream connects once; create a new one to reconnect.
    """

    def __init__(self, config: Optional[ClientConfig] = None):
        config = config if config is not None else ClientConfig()
        self.timeout = config.connect_timeout
        self.buffer_size = config.buffer_size
        self.encoding = config.encoding
        self._events = EventEmitter()
        self._client: Optional[AsyncTCPClient] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._task: Optional[asyncio.Task] = None
        self._outbox: Optional[asyncio.Queue] = None
        self._connected = False
        self._had_error = False
        self._finished = False

    # Events

    def on(self, event: str, listener: Listener) -> "SocketStream":
        self._events.on(event, listener)
        return self

    def once(self, event: str, listener: Listener) -> "SocketStream":
        self._events.once(event, listener)
        return self

    def off(self, event: str, listener: Listener) -> bool:
        return self._events.off(event, listener)

    # Lifecycle

    @property
    def connected(self) -> bool:
        """True between the connect and close events."""
        return self._connected and not self._finished

    @property
    def finished(self) -> bool:
        """True once the close event has been emitted."""
        return self._finished

    def connect(self, port: Any, host: str) -> "SocketStream":
        """
        Start connecting to host:port in the background.

        Failures, including an unusable port, are reported through the
        error event rather than raised.
        """
        if self._thread is not None:
            raise RuntimeError("SocketStream is already connected or closed")
        self._client = AsyncTCPClient(host=host, port=port, timeout=self.timeout)
        self._loop = asyncio.new_event_loop()
        self._outbox = asyncio.Queue()
        self._thread = threading.Thread(
            target=self._run, name=f"flowsocket-{host}:{port}", daemon=True
        )
        self._thread.start()
        return self

    def write(
        self, data: Chunk, callback: Optional[Callable[[], Any]] = None
    ) -> "SocketStream":
        """
        Queue data for sending.

        Writes issued during the handshake are sent once it completes.
        The callback is called with no arguments after the data is flushed.

        Raises:
            TypeError: If data is not str or bytes-like
            ConnectionError: If connect() was never called
        """
        if isinstance(data, str):
            payload = data.encode(self.encoding)
        elif isinstance(data, (bytes, bytearray, memoryview)):
            payload = bytes(data)
        else:
            raise TypeError(
                f"data must be str or bytes-like, not {type(data).__name__}"
            )
        self._enqueue((payload, callback))
        return self

    def pipe_from(self, source: Iterable[Chunk], end: bool = True) -> "SocketStream":
        """
        Write every chunk of an iterable in order.

        Args:
            source: Iterable of str or bytes chunks
            end: Close the stream after the last chunk
        """
        for chunk in source:
            self.write(chunk)
        if end:
            self.end()
        return self

    def end(self) -> None:
        """Close gracefully once queued writes are flushed."""
        if self._loop is None or self._finished:
            return
        self._enqueue(_EOF)

    def destroy(self) -> None:
        """Close immediately, dropping queued writes."""
        if self._loop is None or self._finished:
            return
        self._call_soon(self._abort)

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the background thread to exit.

        Returns:
            True if the thread has finished
        """
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    # Loop thread

    def _enqueue(self, item: Any) -> None:
        if self._loop is None:
            raise ConnectionError("Not connected")
        self._call_soon(self._outbox.put_nowait, item)

    def _call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        try:
            self._loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            # Loop already closed
            logger.debug(
                "Stream to %s:%s is closed, dropping request",
                self._client.host,
                self._client.port,
            )

    def _abort(self) -> None:
        self._client.abort()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def _run(self) -> None:
        """Run the connection on this thread's event loop."""
        asyncio.set_event_loop(self._loop)
        try:
            self._task = self._loop.create_task(self._main())
            self._loop.run_until_complete(self._task)
        except asyncio.CancelledError:
            logger.debug(
                "Connection to %s:%s aborted",
                self._client.host,
                self._client.port,
            )
        finally:
            try:
                pending = asyncio.all_tasks(self._loop)
                for task in pending:
                    task.cancel()
                if pending:
                    self._loop.run_until_complete(
                        asyncio.gather(*pending, return_exceptions=True)
                    )
            finally:
                self._loop.close()
                self._finished = True
                logger.debug(
                    "Connection to %s:%s closed (had_error=%s)",
                    self._client.host,
                    self._client.port,
                    self._had_error,
                )
                self._events.emit("close", self._had_error)

    async def _main(self) -> None:
        client = self._client
        try:
            await client.connect()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._fail(exc)
            return

        self._connected = True
        logger.debug("Connected to %s:%s", client.host, client.port)
        self._events.emit("connect")

        writer_task = asyncio.create_task(self._drain_outbox())
        try:
            while True:
                data = await client.receive(self.buffer_size)
                if not data:
                    break
                self._events.emit("data", data)
        except (ConnectionError, OSError) as exc:
            self._fail(exc)
        finally:
            if not writer_task.done():
                writer_task.cancel()
            await asyncio.gather(writer_task, return_exceptions=True)
            if self._had_error:
                client.abort()
            else:
                await client.close()

    async def _drain_outbox(self) -> None:
        client = self._client
        while True:
            item = await self._outbox.get()
            if item is _EOF:
                await client.close()
                return
            payload, callback = item
            try:
                await client.send(payload)
            except (ConnectionError, OSError) as exc:
                self._fail(exc)
                client.abort()
                return
            if callback is not None:
                try:
                    callback()
                except Exception:
                    logger.exception("Write callback raised")

    def _fail(self, exc: BaseException) -> None:
        if self._had_error:
            return
        self._had_error = True
        logger.debug(
            "Connection to %s:%s failed: %s",
            self._client.host,
            self._client.port,
            exc,
        )
        self._events.emit("error", exc)

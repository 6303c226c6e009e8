"""Asynchronous TCP client primitive."""

import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class AsyncTCPClient:
    """Asynchronous TCP connection over asyncio streams."""

    def __init__(self, host: str, port: int, timeout: Optional[float] = None):
        """
        Initialize async TCP client.

        Args:
            host: Server hostname or IP
            port: Server port
            timeout: Seconds to wait for the handshake, None to wait forever
        """
        self.host = host
        self.port = port
        self.timeout = timeout
        self.reader: Optional[asyncio.StreamReader] = None
        self.writer: Optional[asyncio.StreamWriter] = None

    @property
    def connected(self) -> bool:
        return self.writer is not None

    async def connect(self) -> None:
        """
        Establish connection to server.

        Raises:
            OSError: If the connection is refused or unreachable
            TimeoutError: If the handshake exceeds the timeout
        """
        logger.debug("Opening connection to %s:%s", self.host, self.port)
        self.reader, self.writer = await asyncio.wait_for(
            asyncio.open_connection(self.host, self.port), self.timeout
        )

    async def send(self, data: bytes) -> None:
        """
        Send data to server and wait until it is flushed.

        Raises:
            ConnectionError: If not connected
        """
        if not self.writer:
            raise ConnectionError("Not connected")
        self.writer.write(data)
        await self.writer.drain()

    async def receive(self, buffer_size: int = 4096) -> bytes:
        """
        Receive data from server.

        Args:
            buffer_size: Size of receive buffer

        Returns:
            Received bytes, empty once the peer has closed

        Raises:
            ConnectionError: If not connected
        """
        if not self.reader:
            raise ConnectionError("Not connected")
        return await self.reader.read(buffer_size)

    async def close(self) -> None:
        """Close connection after flushing buffered data."""
        if self.writer:
            writer = self.writer
            self.writer = None
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError) as exc:
                # Peer may reset while we are already closing
                logger.debug("Error while closing: %s", exc)

    def abort(self) -> None:
        """Close connection immediately, discarding buffered data."""
        if self.writer:
            self.writer.transport.abort()
            self.writer = None

    async def __aenter__(self):
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

"""Tiny TCP server shared by the demos: prints every line it receives."""

import logging
import socket
import threading
from typing import Tuple

logger = logging.getLogger("demo.server")


class PrintingTCPServer:
    """Accept one client and print what it sends until it disconnects."""

    def __init__(self, host: str = "127.0.0.1", port: int = 0):
        self.socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.socket.bind((host, port))
        self.socket.listen(1)
        self.closed = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)

    @property
    def address(self) -> Tuple[str, int]:
        return self.socket.getsockname()

    def start(self) -> None:
        logger.info("...server is listening on %s:%s...", *self.address)
        self._thread.start()

    def _serve(self) -> None:
        client_socket, client_address = self.socket.accept()
        logger.info("...client connected from %s:%s...", *client_address)
        with client_socket:
            while True:
                data = client_socket.recv(4096)
                if not data:
                    break
                print(data.decode(), end="")
        logger.info("...socket closed by client...")
        self.socket.close()
        logger.info("...server closed...")
        self.closed.set()

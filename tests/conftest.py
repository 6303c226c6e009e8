"""Shared fixtures: a recording TCP server and an event recorder."""

import queue
import socket
import threading
from typing import Any, List, Optional, Tuple

import pytest


class RecordedConnection:
    """Server side of one accepted client connection."""

    def __init__(self, client_socket: socket.socket, address: Tuple[str, int]):
        self.socket = client_socket
        self.address = address
        self.closed = threading.Event()
        self._data = bytearray()
        self._lock = threading.Lock()
        self._thread = threading.Thread(target=self._read, daemon=True)
        self._thread.start()

    @property
    def received(self) -> bytes:
        with self._lock:
            return bytes(self._data)

    def wait_closed(self, timeout: float = 5.0) -> bool:
        return self.closed.wait(timeout)

    def send(self, data: bytes) -> None:
        self.socket.sendall(data)

    def close(self) -> None:
        """Close from the server side."""
        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.socket.close()

    def _read(self) -> None:
        try:
            while True:
                data = self.socket.recv(4096)
                if not data:
                    break
                with self._lock:
                    self._data.extend(data)
        except OSError:
            pass
        finally:
            self.closed.set()


class RecordingTCPServer:
    """TCP server on an ephemeral port that records what each client sends."""

    def __init__(self, host: str = "127.0.0.1", port: int = 0):
        self.socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.socket.bind((host, port))
        self.socket.listen(5)
        self.socket.settimeout(0.1)
        self.connections: List[RecordedConnection] = []
        self._accepted: "queue.Queue[RecordedConnection]" = queue.Queue()
        self.running = False
        self._thread: Optional[threading.Thread] = None

    @property
    def host(self) -> str:
        return self.socket.getsockname()[0]

    @property
    def port(self) -> int:
        return self.socket.getsockname()[1]

    def start(self) -> None:
        self.running = True
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self) -> None:
        while self.running:
            try:
                client_socket, client_address = self.socket.accept()
            except socket.timeout:
                continue
            except OSError:
                break
            client_socket.settimeout(None)
            connection = RecordedConnection(client_socket, client_address)
            self.connections.append(connection)
            self._accepted.put(connection)

    def next_connection(self, timeout: float = 5.0) -> RecordedConnection:
        """Wait for the next accepted connection."""
        return self._accepted.get(timeout=timeout)

    def stop(self) -> None:
        self.running = False
        if self._thread:
            self._thread.join(timeout=2.0)
        self.socket.close()
        for connection in self.connections:
            connection.close()


class EventRecorder:
    """Records events emitted by a client or stream, across threads."""

    EVENTS = ("connect", "data", "error", "close", "warning")

    def __init__(self, emitter: Any, events: Tuple[str, ...] = EVENTS):
        self.events: List[Tuple[str, tuple]] = []
        self._condition = threading.Condition()
        for name in events:
            emitter.on(name, self._recorder(name))

    def _recorder(self, name: str):
        def record(*args):
            with self._condition:
                self.events.append((name, args))
                self._condition.notify_all()

        return record

    def count(self, name: str) -> int:
        with self._condition:
            return sum(1 for event, _ in self.events if event == name)

    def names(self) -> List[str]:
        with self._condition:
            return [event for event, _ in self.events]

    def args(self, name: str, index: int = 0) -> tuple:
        with self._condition:
            return [args for event, args in self.events if event == name][index]

    def wait_for(self, name: str, count: int = 1, timeout: float = 5.0) -> bool:
        with self._condition:
            return self._condition.wait_for(
                lambda: sum(1 for event, _ in self.events if event == name) >= count,
                timeout,
            )


def free_port() -> int:
    """Return a local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        probe.bind(("127.0.0.1", 0))
        return probe.getsockname()[1]


@pytest.fixture
def server():
    """Running RecordingTCPServer, stopped after the test."""
    tcp_server = RecordingTCPServer()
    tcp_server.start()
    yield tcp_server
    tcp_server.stop()


@pytest.fixture
def make_server():
    """Factory for extra running servers, all stopped after the test."""
    started = []

    def _make():
        tcp_server = RecordingTCPServer()
        tcp_server.start()
        started.append(tcp_server)
        return tcp_server

    yield _make
    for tcp_server in started:
        tcp_server.stop()


@pytest.fixture
def unused_port():
    """A local port that refuses connections."""
    return free_port()


@pytest.fixture
def recorder():
    """Factory attaching an EventRecorder to an emitter."""
    return EventRecorder

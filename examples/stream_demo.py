"""Example: pipe an iterable of JSON lines into the raw socket stream."""

import json
import logging
import random
import sys
import time
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from flowsocket import create_client
from _demo_server import PrintingTCPServer

NUM_LINES = 5


def new_line() -> str:
    """Create a JSON line holding the current time and a random value."""
    return json.dumps({"value": [int(time.time() * 1000), random.random()]}) + "\n"


def main():
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")
    server = PrintingTCPServer()
    server.start()
    host, port = server.address

    client = create_client().set_host(host).set_port(port).set_strict(False)

    def on_error(error):
        print(f"Connection error: {error}", file=sys.stderr)
        server.closed.set()

    def on_connect():
        lines = (new_line() for _ in range(NUM_LINES))
        # Closes the stream once every line is written
        client.stream().pipe_from(lines)

    client.on("error", on_error)
    client.on("connect", on_connect)
    client.connect()

    server.closed.wait(timeout=10)


if __name__ == "__main__":
    main()

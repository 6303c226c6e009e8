"""Client configuration settings."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class ClientConfig:
    """Connection client configuration."""

    host: str = "127.0.0.1"
    port: int = 7331

    # Type checking on write()
    strict: bool = True

    # Transport settings
    connect_timeout: Optional[float] = 30.0
    buffer_size: int = 4096
    encoding: str = "utf-8"

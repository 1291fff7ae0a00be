"""
Async base class for rate-limited transports used by the download benchmark.
"""

import logging
from typing import Tuple

logger = logging.getLogger(__name__)


class TransportError(ConnectionError):
    """Connect, write or close failure on a throttled connection."""


class WriteError(TransportError):
    """Sending the request over a throttled connection failed."""


def parse_address(address: str) -> Tuple[str, int]:
    """Split a "host:port" address.

    Raises:
        TransportError: If the address has no valid port
    """
    host, sep, port = address.rpartition(":")
    if not sep or not host:
        raise TransportError(f"Invalid address (expected host:port): {address!r}")
    try:
        return host.strip("[]"), int(port)
    except ValueError as e:
        raise TransportError(f"Invalid port in address {address!r}") from e


class ThrottledConnection:
    """A connection that delivers bytes no faster than a configured cap.

    Reads return short (or empty at end of stream) rather than buffering
    unboundedly. Implementations must make close() idempotent.
    """

    def __init__(self, address: str):
        self.address = address
        self.bandwidth_limit: int = 0
        self.receive_buffer: int = 0
        self.closed = False

    @classmethod
    async def connect(cls, address: str) -> "ThrottledConnection":
        """Open a connection to address.

        Raises:
            TransportError: On refusal, timeout or name resolution failure
        """
        raise NotImplementedError

    def set_bandwidth_limit(self, bytes_per_second: int) -> None:
        """Set the rate cap. Must be called before the first read."""
        if bytes_per_second <= 0:
            raise ValueError("Bandwidth limit must be positive")
        self.bandwidth_limit = int(bytes_per_second)

    def set_receive_buffer(self, size_bytes: int) -> None:
        """Receive-buffer size hint; has no effect on correctness."""
        self.receive_buffer = int(size_bytes)

    async def write(self, data: bytes) -> None:
        raise NotImplementedError

    async def read_with_throttle(self, max_bytes: int) -> bytes:
        """Return between 0 and max_bytes bytes; empty bytes signal end of stream."""
        raise NotImplementedError

    async def close(self) -> None:
        raise NotImplementedError

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        try:
            await self.close()
        except ConnectionError as e:
            logger.warning(f"Error closing connection to {self.address}: {e}")

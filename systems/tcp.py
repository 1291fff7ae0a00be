"""
Raw TCP implementation of the throttled connection on top of asyncio streams.
"""

import asyncio
import logging
import socket
import time
from typing import Optional

from configuration import CONNECT_TIMEOUT_SECONDS
from systems.base import ThrottledConnection, TransportError, WriteError, parse_address

logger = logging.getLogger(__name__)


class TcpThrottledConnection(ThrottledConnection):
    """TCP connection that paces reads to a per-second byte budget.

    Bytes are read first and the pause is applied afterwards: once the bytes
    read inside the current one-second window exceed the limit, the next read
    waits for the window to end.
    """

    def __init__(self, address: str, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        super().__init__(address)
        self._reader = reader
        self._writer = writer
        self._window_start: float = time.monotonic()
        self._window_bytes: int = 0

    @classmethod
    async def connect(cls, address: str, timeout: Optional[float] = None) -> "TcpThrottledConnection":
        host, port = parse_address(address)
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=timeout or CONNECT_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError as e:
            raise TransportError(f"Timed out connecting to {address}") from e
        except OSError as e:
            raise TransportError(f"Failed to connect to {address}: {e}") from e

        logger.debug(f"Connected to {address}")
        return cls(address, reader, writer)

    def set_bandwidth_limit(self, bytes_per_second: int) -> None:
        super().set_bandwidth_limit(bytes_per_second)
        self._window_start = time.monotonic()
        self._window_bytes = 0

    def set_receive_buffer(self, size_bytes: int) -> None:
        super().set_receive_buffer(size_bytes)
        if size_bytes <= 0:
            return
        sock = self._writer.get_extra_info("socket")
        if sock is None:
            return
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, size_bytes)
        except OSError as e:
            logger.warning(f"Could not set SO_RCVBUF={size_bytes} on {self.address}: {e}")

    async def write(self, data: bytes) -> None:
        if self.closed:
            raise WriteError(f"Connection to {self.address} is closed")
        try:
            self._writer.write(data)
            await self._writer.drain()
        except OSError as e:
            raise WriteError(f"Failed to write to {self.address}: {e}") from e

    async def read_with_throttle(self, max_bytes: int) -> bytes:
        if max_bytes <= 0:
            return b""
        if self.bandwidth_limit > 0:
            max_bytes = min(max_bytes, self.bandwidth_limit)

        try:
            data = await self._reader.read(max_bytes)
        except OSError as e:
            raise TransportError(f"Read from {self.address} failed: {e}") from e

        if data and self.bandwidth_limit > 0:
            await self._pace(len(data))
        return data

    async def read_with_delay(self, max_bytes: int, delay_ms: int) -> bytes:
        """Read once, then sleep a fixed delay regardless of the bandwidth limit."""
        if max_bytes <= 0:
            return b""
        try:
            data = await self._reader.read(max_bytes)
        except OSError as e:
            raise TransportError(f"Read from {self.address} failed: {e}") from e

        await asyncio.sleep(delay_ms / 1000)
        return data

    async def _pace(self, bytes_read: int) -> None:
        now = time.monotonic()
        elapsed = now - self._window_start
        self._window_bytes += bytes_read

        if elapsed >= 1.0:
            self._window_start = now
            self._window_bytes = bytes_read
            return

        if self._window_bytes > self.bandwidth_limit:
            await asyncio.sleep(1.0 - elapsed)
            self._window_start = time.monotonic()
            self._window_bytes = 0

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError as e:
            # Peer already reset the connection; nothing left to release
            logger.debug(f"Error while closing {self.address}: {e}")

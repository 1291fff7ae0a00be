"""
In-memory throttled connections used by the tests.
"""

import asyncio
from typing import List, Optional

from systems.base import ThrottledConnection, TransportError, WriteError


class ScriptedConnection(ThrottledConnection):
    """Replays a fixed list of chunks, then reports end of stream.

    A chunk longer than the requested size is split, the remainder being
    delivered by the next read.
    """

    def __init__(
        self,
        chunks: List[bytes],
        address: str = "server:8080",
        pace: bool = False,
        fail_write: bool = False,
        fail_after_reads: Optional[int] = None,
        fail_close: bool = False,
    ):
        super().__init__(address)
        self.pending = [bytes(c) for c in chunks if c]
        self.pace = pace
        self.fail_write = fail_write
        self.fail_after_reads = fail_after_reads
        self.fail_close = fail_close
        self.written = b""
        self.requested_sizes: List[int] = []
        self.close_calls = 0

    async def write(self, data: bytes) -> None:
        if self.fail_write:
            raise WriteError("connection reset by peer")
        self.written += data

    async def read_with_throttle(self, max_bytes: int) -> bytes:
        self.requested_sizes.append(max_bytes)
        if self.fail_after_reads is not None and len(self.requested_sizes) > self.fail_after_reads:
            raise TransportError("connection reset by peer")
        if not self.pending:
            return b""

        chunk = self.pending.pop(0)
        if len(chunk) > max_bytes:
            self.pending.insert(0, chunk[max_bytes:])
            chunk = chunk[:max_bytes]

        if self.pace and self.bandwidth_limit:
            await asyncio.sleep(len(chunk) / self.bandwidth_limit)
        return chunk

    async def close(self) -> None:
        self.close_calls += 1
        self.closed = True
        if self.fail_close:
            raise TransportError("connection reset during close")


def http_response(body: bytes, extra_headers: str = "") -> bytes:
    head = (
        "HTTP/1.1 200 OK\r\n"
        "Content-Type: application/octet-stream\r\n"
        f"Content-Length: {len(body)}\r\n"
        f"{extra_headers}"
        "\r\n"
    )
    return head.encode("ascii") + body


def split_every(data: bytes, size: int) -> List[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


def split_at(data: bytes, cuts: List[int]) -> List[bytes]:
    points = [0] + sorted(set(c for c in cuts if 0 < c < len(data))) + [len(data)]
    return [data[a:b] for a, b in zip(points, points[1:])]

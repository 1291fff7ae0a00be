"""
Incremental HTTP response framing over a throttled read loop.

Bytes arrive in rate-limited chunks whose boundaries have no relation to the
header terminator. The scan keeps the last 3 bytes of everything seen so far,
so a terminator split across any number of chunks is still found.
"""

import enum
import logging
import time
from typing import Callable, Optional

from configuration import CHUNK_SIZE_BYTES
from persistence.record import Sample

logger = logging.getLogger(__name__)

HEADER_TERMINATOR = b"\r\n\r\n"
CARRY_OVER_BYTES = len(HEADER_TERMINATOR) - 1

# Lower bound on a measured duration once bytes have been received
MIN_DURATION_SECONDS = 1e-9


class FramingMode(enum.Enum):
    READING_HEADERS = "reading_headers"
    READING_BODY = "reading_body"
    TERMINATED = "terminated"


class FramingAbort(Exception):
    """The stream ended before the header terminator was observed.

    Carries the zero-payload sample produced for the run so the caller can
    still record a (degenerate) data point.
    """

    def __init__(self, sample: Sample):
        super().__init__(
            f"Stream for stage {sample.stage_id} ended after {sample.total_bytes} bytes "
            f"without a header terminator"
        )
        self.sample = sample


class TerminationPolicy:
    """When a read loop stops: on a zero-length read, or at a known total."""

    def __init__(self, expected_total: Optional[int] = None):
        if expected_total is not None and expected_total <= 0:
            raise ValueError("Expected total must be positive")
        self.expected_total = expected_total

    @classmethod
    def on_close(cls) -> "TerminationPolicy":
        return cls()

    @classmethod
    def at_total(cls, expected_total: int) -> "TerminationPolicy":
        return cls(expected_total)

    def next_request_size(self, chunk_size: int, total_received: int) -> int:
        if self.expected_total is None:
            return chunk_size
        return min(chunk_size, self.expected_total - total_received)

    def is_complete(self, total_received: int) -> bool:
        return self.expected_total is not None and total_received >= self.expected_total

    def __repr__(self) -> str:
        if self.expected_total is None:
            return "TerminationPolicy(on_close)"
        return f"TerminationPolicy(expected_total={self.expected_total})"


class FramingState:
    """Per-run parser state. Never shared between runs."""

    def __init__(self, track_header_boundary: bool = True):
        self.track_header_boundary = track_header_boundary
        self.mode = FramingMode.READING_HEADERS if track_header_boundary else FramingMode.READING_BODY
        self.total_received = 0
        self.payload_received = 0
        self.pending_header_buffer = b""
        self.header_complete = not track_header_boundary

    def consume(self, chunk: bytes) -> int:
        """Account for one received chunk.

        Returns:
            Number of payload bytes contained in the chunk
        """
        if self.mode is FramingMode.TERMINATED:
            raise RuntimeError("Cannot consume data after termination")

        self.total_received += len(chunk)

        if self.mode is FramingMode.READING_BODY:
            self.payload_received += len(chunk)
            return len(chunk)

        window = self.pending_header_buffer + chunk
        index = window.find(HEADER_TERMINATOR)
        if index == -1:
            self.pending_header_buffer = window[-CARRY_OVER_BYTES:]
            return 0

        # Offset within this chunk of the first byte after the terminator
        body_start = index + len(HEADER_TERMINATOR) - len(self.pending_header_buffer)
        payload = len(chunk) - body_start

        self.mode = FramingMode.READING_BODY
        self.header_complete = True
        self.pending_header_buffer = b""
        self.payload_received += payload
        return payload

    def terminate(self) -> None:
        self.mode = FramingMode.TERMINATED
        self.pending_header_buffer = b""


class FramingReader:
    """Drives a throttled read loop and splits the stream into header and payload bytes."""

    def __init__(
        self,
        connection,
        chunk_size: int = None,
        termination: TerminationPolicy = None,
        track_header_boundary: bool = True,
        clock: Callable[[], float] = time.perf_counter,
    ):
        """Initialize the reader.

        Args:
            connection: Open ThrottledConnection with its bandwidth cap already set
            chunk_size: Maximum bytes requested per read (default: from configuration)
            termination: Stop policy (default: stop on zero-length read)
            track_header_boundary: If False, every received byte counts as payload
            clock: Monotonic clock used for the duration measurement
        """
        self.connection = connection
        self.chunk_size = chunk_size or CHUNK_SIZE_BYTES
        if self.chunk_size <= 0:
            raise ValueError("Chunk size must be positive")
        self.termination = termination or TerminationPolicy.on_close()
        self.state = FramingState(track_header_boundary)
        self.clock = clock

    async def run(self, stage) -> Sample:
        """Read until the termination policy is met and build the run's sample.

        Raises:
            FramingAbort: Header tracking was on and no terminator was seen
            TransportError: Propagated from the connection
        """
        start_ts = time.time()
        started = self.clock()

        while True:
            request_size = self.termination.next_request_size(self.chunk_size, self.state.total_received)
            chunk = await self.connection.read_with_throttle(request_size)
            if not chunk:
                break
            self.state.consume(chunk)
            if self.termination.is_complete(self.state.total_received):
                break

        duration = self.clock() - started
        self.state.terminate()

        if self.state.total_received > 0:
            duration = max(duration, MIN_DURATION_SECONDS)

        sample = Sample(
            stage_id=stage.stage_id,
            stage_name=stage.name,
            bandwidth_limit_bytes_per_sec=stage.bandwidth_bytes_per_sec,
            payload_bytes=self.state.payload_received,
            total_bytes=self.state.total_received,
            duration_seconds=max(duration, 0.0),
            header_complete=self.state.header_complete,
            start_ts=start_ts,
            end_ts=time.time(),
        )

        if not sample.header_complete:
            raise FramingAbort(sample)
        return sample

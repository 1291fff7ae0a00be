"""
One throttled download measurement: connect, request, frame the response, record.
"""

import logging
from typing import Awaitable, Callable, Optional

from configuration import (
    CHUNK_SIZE_BYTES,
    PAYLOAD_SIZE_BYTES,
    RECEIVE_BUFFER_BYTES,
    REQUEST_TEMPLATE,
    TEST_PATH,
)
from algorithms.framing import FramingAbort, FramingReader, TerminationPolicy
from common.metrics_utils import record_sample
from persistence.record import Sample
from systems.base import ThrottledConnection, parse_address

logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[ThrottledConnection]]


def build_request(address: str, size: int) -> bytes:
    host, _ = parse_address(address)
    return REQUEST_TEMPLATE.format(path=TEST_PATH, size=size, host=host).encode("ascii")


class ThrottledDownload:
    """Measures one rate-capped download for a stage and appends the result to the store."""

    def __init__(
        self,
        connector: Connector,
        metric_store,
        server_address: str,
        payload_size: int = None,
        chunk_size: int = None,
        receive_buffer: int = None,
        expected_total: Optional[int] = None,
        track_header_boundary: bool = True,
        persistence=None,
    ):
        """Initialize the measurement.

        Args:
            connector: Coroutine function opening a ThrottledConnection to an address
            metric_store: Shared append-only store receiving the tagged sample
            server_address: "host:port" of the test server
            payload_size: Requested body size in bytes (default: from configuration)
            chunk_size: Maximum bytes per read (default: from configuration)
            receive_buffer: Receive buffer hint, 0 to leave the OS default
            expected_total: Stop once this many bytes (headers included) arrived
                instead of waiting for the peer to close
            track_header_boundary: Separate header bytes from payload bytes
            persistence: Optional sink that also keeps each sample
        """
        self.connector = connector
        self.metric_store = metric_store
        self.server_address = server_address
        self.payload_size = payload_size or PAYLOAD_SIZE_BYTES
        self.chunk_size = chunk_size or CHUNK_SIZE_BYTES
        self.receive_buffer = RECEIVE_BUFFER_BYTES if receive_buffer is None else receive_buffer
        self.expected_total = expected_total
        self.track_header_boundary = track_header_boundary
        self.persistence = persistence

    def _termination(self) -> TerminationPolicy:
        if self.expected_total:
            return TerminationPolicy.at_total(self.expected_total)
        return TerminationPolicy.on_close()

    async def execute(self, stage) -> Optional[Sample]:
        """Run the measurement for a stage.

        Returns:
            The recorded sample, or None when a transport failure abandoned the run
        """
        try:
            connection = await self.connector(self.server_address)
        except ConnectionError as e:
            logger.error(f"Stage {stage.stage_id}: connect to {self.server_address} failed: {e}")
            return None

        try:
            async with connection:
                sample = await self._transfer(connection, stage)
        except ConnectionError as e:
            logger.error(f"Stage {stage.stage_id}: throttled transfer failed: {e}")
            return None

        record_sample(self.metric_store, sample)
        if self.persistence is not None:
            self.persistence.store_sample(sample)

        logger.info(
            f"TCP Throttled [{stage.name}]: {sample.payload_bytes} bytes payload "
            f"({sample.total_bytes} total) in {sample.duration_seconds:.2f}s "
            f"({sample.throughput_mbps:.2f} MB/s)"
        )
        return sample

    async def _transfer(self, connection, stage) -> Sample:
        connection.set_bandwidth_limit(stage.bandwidth_bytes_per_sec)
        if self.receive_buffer:
            connection.set_receive_buffer(self.receive_buffer)

        await connection.write(build_request(self.server_address, self.payload_size))

        reader = FramingReader(
            connection,
            chunk_size=self.chunk_size,
            termination=self._termination(),
            track_header_boundary=self.track_header_boundary,
        )
        try:
            return await reader.run(stage)
        except FramingAbort as e:
            logger.warning(f"Stage {stage.stage_id}: {e}; recording zero payload")
            return e.sample

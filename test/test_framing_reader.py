"""
Tests for incremental header/payload framing over throttled chunked reads.
"""

import asyncio
import os
import random
import sys
import unittest

# Add the parent directory and this directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from algorithms.framing import (
    HEADER_TERMINATOR,
    FramingAbort,
    FramingMode,
    FramingReader,
    FramingState,
    TerminationPolicy,
)
from common.stage_plan import Stage
from configuration import BYTES_PER_KB, BYTES_PER_MB
from fakes import ScriptedConnection, http_response, split_at, split_every

STAGE = Stage("1", "Stage 1: 500 KB/s", 500 * BYTES_PER_KB)


def run_reader(chunks, **kwargs):
    connection = ScriptedConnection(chunks)
    connection.set_bandwidth_limit(STAGE.bandwidth_bytes_per_sec)
    reader = FramingReader(connection, **kwargs)
    return asyncio.run(reader.run(STAGE)), connection, reader


class TestFramingScenarios(unittest.TestCase):
    """Concrete chunk sequences with known header/payload split."""

    def test_status_line_and_headers_in_separate_chunks(self):
        chunks = [b"HTTP/1.1 200 OK\r\n", b"Content-Length: 10\r\n\r\n1234567890"]
        self.assertEqual(len(chunks[0]), 17)
        self.assertEqual(len(chunks[1]), 32)

        sample, _, reader = run_reader(chunks)

        self.assertEqual(sample.payload_bytes, 10)
        self.assertEqual(sample.total_bytes, 49)
        self.assertEqual(sample.header_bytes, 39)
        self.assertTrue(sample.header_complete)
        self.assertEqual(reader.state.mode, FramingMode.TERMINATED)

    def test_whole_response_in_one_chunk(self):
        body = bytes(range(256)) * 4
        response = http_response(body)

        sample, _, _ = run_reader([response])

        self.assertEqual(sample.payload_bytes, len(body))
        self.assertEqual(sample.total_bytes, len(response))

    def test_zero_byte_body_is_complete(self):
        response = http_response(b"")

        sample, _, _ = run_reader(split_every(response, 5))

        self.assertEqual(sample.payload_bytes, 0)
        self.assertEqual(sample.total_bytes, len(response))
        self.assertTrue(sample.header_complete)

    def test_sample_carries_stage_identity(self):
        sample, _, _ = run_reader([http_response(b"abc")])

        self.assertEqual(sample.stage_id, "1")
        self.assertEqual(sample.stage_name, "Stage 1: 500 KB/s")
        self.assertEqual(sample.bandwidth_limit_bytes_per_sec, 500 * BYTES_PER_KB)
        self.assertGreaterEqual(sample.end_ts, sample.start_ts)

    def test_terminator_inside_body_counts_as_payload(self):
        body = b"abc\r\n\r\ndef\r\n\r\n"
        response = http_response(body)

        sample, _, _ = run_reader(split_every(response, 3))

        self.assertEqual(sample.payload_bytes, len(body))


class TestTerminatorAcrossChunkBoundaries(unittest.TestCase):
    """The terminator may be split anywhere, across any number of chunks."""

    def setUp(self):
        self.body = b"0123456789" * 30
        self.response = http_response(self.body)
        self.boundary = self.response.find(HEADER_TERMINATOR)

    def test_every_single_cut_position(self):
        for cut in range(1, len(self.response)):
            with self.subTest(cut=cut):
                sample, _, _ = run_reader(split_at(self.response, [cut]))
                self.assertEqual(sample.payload_bytes, len(self.body))
                self.assertEqual(sample.total_bytes, len(self.response))

    def test_terminator_split_over_four_chunks(self):
        cuts = [self.boundary + 1, self.boundary + 2, self.boundary + 3]

        sample, _, _ = run_reader(split_at(self.response, cuts))

        self.assertEqual(sample.payload_bytes, len(self.body))

    def test_one_byte_at_a_time(self):
        sample, connection, _ = run_reader([self.response], chunk_size=1)

        self.assertEqual(sample.payload_bytes, len(self.body))
        self.assertEqual(sample.total_bytes, len(self.response))
        self.assertTrue(all(size == 1 for size in connection.requested_sizes))

    def test_last_terminator_byte_starts_next_chunk(self):
        cut = self.boundary + len(HEADER_TERMINATOR) - 1
        chunks = split_at(self.response, [cut])
        self.assertTrue(chunks[1].startswith(b"\n"))

        sample, _, _ = run_reader(chunks)

        self.assertEqual(sample.payload_bytes, len(self.body))

    def test_random_chunkings_match_boundary_formula(self):
        rng = random.Random(1234)
        payload = bytes(rng.randrange(256) for _ in range(2000)).replace(b"\r\n\r\n", b"....")
        response = http_response(payload)
        boundary = response.find(HEADER_TERMINATOR)

        for _ in range(200):
            cuts = [rng.randrange(1, len(response)) for _ in range(rng.randrange(1, 40))]
            sample, _, _ = run_reader(split_at(response, cuts))

            self.assertEqual(sample.payload_bytes, sample.total_bytes - (boundary + 4))
            self.assertLessEqual(sample.payload_bytes, sample.total_bytes)


class TestMissingTerminator(unittest.TestCase):
    """Streams that close before the header terminator is seen."""

    def test_abort_carries_zero_payload_sample(self):
        chunks = [b"HTTP/1.1 200 OK\r\n", b"Content-Length: 10\r\n", b"1234567890"]

        connection = ScriptedConnection(chunks)
        connection.set_bandwidth_limit(STAGE.bandwidth_bytes_per_sec)
        reader = FramingReader(connection)

        with self.assertRaises(FramingAbort) as ctx:
            asyncio.run(reader.run(STAGE))

        sample = ctx.exception.sample
        self.assertEqual(sample.payload_bytes, 0)
        self.assertEqual(sample.total_bytes, sum(len(c) for c in chunks))
        self.assertFalse(sample.header_complete)

    def test_immediate_close_is_an_abort(self):
        connection = ScriptedConnection([])
        reader = FramingReader(connection)

        with self.assertRaises(FramingAbort) as ctx:
            asyncio.run(reader.run(STAGE))

        self.assertEqual(ctx.exception.sample.total_bytes, 0)
        self.assertEqual(ctx.exception.sample.payload_bytes, 0)

    def test_partial_terminator_is_not_a_boundary(self):
        chunks = [b"HTTP/1.1 200 OK\r\n\r", b"\r\r\n"]

        connection = ScriptedConnection(chunks)
        reader = FramingReader(connection)

        with self.assertRaises(FramingAbort):
            asyncio.run(reader.run(STAGE))

    def test_untracked_headers_never_abort(self):
        chunks = [b"no headers here", b"just bytes"]

        sample, _, _ = run_reader(chunks, track_header_boundary=False)

        self.assertEqual(sample.payload_bytes, sample.total_bytes)
        self.assertEqual(sample.total_bytes, 25)
        self.assertTrue(sample.header_complete)


class TestTerminationPolicy(unittest.TestCase):
    """Fixed-size and close-based termination."""

    def test_expected_total_stops_without_reading_past_it(self):
        response = http_response(b"x" * 500)
        trailing = b"garbage that must not be read"

        sample, connection, _ = run_reader(
            [response + trailing],
            chunk_size=64,
            termination=TerminationPolicy.at_total(len(response)),
        )

        self.assertEqual(sample.total_bytes, len(response))
        self.assertEqual(sample.payload_bytes, 500)
        self.assertEqual(connection.pending, [trailing])
        self.assertTrue(all(size <= 64 for size in connection.requested_sizes))

    def test_expected_total_larger_than_stream_stops_on_close(self):
        response = http_response(b"x" * 100)

        sample, _, _ = run_reader(
            split_every(response, 30),
            termination=TerminationPolicy.at_total(len(response) * 2),
        )

        self.assertEqual(sample.total_bytes, len(response))

    def test_invalid_expected_total(self):
        with self.assertRaises(ValueError):
            TerminationPolicy.at_total(0)

    def test_chunk_size_is_the_read_request(self):
        response = http_response(b"y" * 20000)

        sample, connection, _ = run_reader([response], chunk_size=8192)

        self.assertEqual(sample.total_bytes, len(response))
        self.assertEqual(connection.requested_sizes[0], 8192)
        self.assertGreaterEqual(len(connection.requested_sizes), 4)


class TestDurationAndThroughput(unittest.TestCase):
    """Timing derived from the injected clock."""

    def test_throughput_from_clock(self):
        ticks = iter([10.0, 12.0])
        body = b"z" * BYTES_PER_MB

        sample, _, _ = run_reader([http_response(body)], clock=lambda: next(ticks))

        self.assertAlmostEqual(sample.duration_seconds, 2.0)
        self.assertAlmostEqual(sample.throughput_mbps, 0.5)

    def test_duration_positive_when_bytes_received(self):
        sample, _, _ = run_reader([http_response(b"q")], clock=lambda: 5.0)

        self.assertGreater(sample.duration_seconds, 0)


class TestFramingState(unittest.TestCase):
    """Direct use of the per-run parser state."""

    def test_consume_returns_payload_per_chunk(self):
        state = FramingState()

        self.assertEqual(state.consume(b"HTTP/1.1 200 OK\r\n\r"), 0)
        self.assertEqual(state.consume(b"\nabc"), 3)
        self.assertEqual(state.consume(b"def"), 3)
        self.assertEqual(state.payload_received, 6)
        self.assertEqual(state.pending_header_buffer, b"")

    def test_carry_over_is_bounded(self):
        state = FramingState()
        state.consume(b"X-Long-Header: " + b"a" * 10000)

        self.assertEqual(len(state.pending_header_buffer), 3)

    def test_consume_after_terminate_fails(self):
        state = FramingState()
        state.terminate()

        with self.assertRaises(RuntimeError):
            state.consume(b"data")


if __name__ == '__main__':
    unittest.main()

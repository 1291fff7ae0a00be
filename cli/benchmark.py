"""
Multi-stage throttled download benchmark with end-of-test stage summary.
"""

import asyncio
import os
import sys
import logging
import argparse
import time
from contextlib import AsyncExitStack
from typing import Any, Dict, List, Optional

import uvloop

# Ensure project root is in path (for running as script)
# When run as module (python -m cli.benchmark), this is not needed
_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from configuration import (
    CHUNK_SIZE_BYTES,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_PROMETHEUS_PORT,
    PAYLOAD_SIZE_BYTES,
    RECEIVE_BUFFER_BYTES,
    SERVER_ADDRESS,
    SERVER_URL,
    STAGES,
)
from algorithms.stage_runner import StageRunner
from algorithms.throttled_download import ThrottledDownload
from common.metrics_utils import calculate_client_metrics, format_summary_table
from common.stage_plan import load_stages, stage_labels
from persistence.metric_store import MetricStore
from persistence.parquet import ParquetPersistence
from persistence.prom import SimplePrometheusExporter
from persistence.stage_aggregator import StageMetricsAggregator
from systems.http_control import HttpControlClient
from systems.tcp import TcpThrottledConnection

# Set up logging (only if not already configured)
if not logging.root.handlers:
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
    )
logging.getLogger('aiohttp').setLevel(logging.WARNING)
logging.getLogger('asyncio').setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


class BenchmarkRunner:
    """Runs every stage against the server and produces the per-stage summary."""

    def __init__(
        self,
        server_address: str = None,
        server_url: str = None,
        stage_definitions: List[Dict[str, Any]] = None,
        payload_size: int = None,
        chunk_size: int = None,
        receive_buffer: int = None,
        expected_total: Optional[int] = None,
        track_header_boundary: bool = True,
        control: bool = True,
        concurrent_stages: bool = False,
        output_dir: str = None,
        prometheus_port: int = None,
        connector=None,
    ):
        self.server_address = server_address or SERVER_ADDRESS
        self.server_url = server_url or SERVER_URL
        self.stages = load_stages(stage_definitions or STAGES)
        self.payload_size = payload_size or PAYLOAD_SIZE_BYTES
        self.chunk_size = chunk_size or CHUNK_SIZE_BYTES
        self.receive_buffer = RECEIVE_BUFFER_BYTES if receive_buffer is None else receive_buffer
        self.expected_total = expected_total
        self.track_header_boundary = track_header_boundary
        self.control = control
        self.concurrent_stages = concurrent_stages
        self.output_dir = output_dir or DEFAULT_OUTPUT_DIR
        self.prometheus_port = DEFAULT_PROMETHEUS_PORT if prometheus_port is None else prometheus_port
        self.connector = connector or TcpThrottledConnection.connect

        self.exporter = None
        self.metric_store = None
        self.persistence = None

        # Initialize components
        self._initialize_components()

        logger.info(
            f"Initialized benchmark runner: {len(self.stages)} stages against {self.server_address}"
        )

    def _initialize_components(self):
        """Initialize required components."""
        if self.prometheus_port:
            self.exporter = SimplePrometheusExporter(self.prometheus_port)
            self.exporter.start_server()

        self.metric_store = MetricStore(exporter=self.exporter)
        self.persistence = ParquetPersistence(self.output_dir)

    async def run_benchmark(self) -> Dict[str, Any]:
        """Execute every stage, then aggregate and persist the results."""
        logger.info("Starting benchmark")
        start_time = time.time()

        async with AsyncExitStack() as stack:
            control_client = None
            if self.control:
                control_client = await stack.enter_async_context(HttpControlClient(self.server_url))

            download = ThrottledDownload(
                connector=self.connector,
                metric_store=self.metric_store,
                server_address=self.server_address,
                payload_size=self.payload_size,
                chunk_size=self.chunk_size,
                receive_buffer=self.receive_buffer,
                expected_total=self.expected_total,
                track_header_boundary=self.track_header_boundary,
                persistence=self.persistence,
            )
            runner = StageRunner(
                download,
                self.metric_store,
                control_client=control_client,
                payload_size=self.payload_size,
                concurrent_stages=self.concurrent_stages,
            )

            samples_by_stage = await runner.run(self.stages)

            server_metrics = None
            if control_client is not None:
                await control_client.save_server_results()
                server_metrics = await control_client.fetch_server_metrics()

        return self.summarize(time.time() - start_time, samples_by_stage, server_metrics)

    def summarize(
        self,
        elapsed_seconds: float,
        samples_by_stage: Dict[str, list] = None,
        server_metrics: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Final hook: regroup the recorded samples by stage and write the report."""
        aggregator = StageMetricsAggregator(self.metric_store, stage_labels(self.stages))
        rows = aggregator.aggregate(include_missing=True)
        client_metrics = calculate_client_metrics(self.metric_store, elapsed_seconds)

        logger.info("=== CLIENT METRICS ===")
        logger.info(f"Total bytes received: {client_metrics['total_bytes_received']}")
        logger.info(f"Test duration: {client_metrics['test_duration_seconds']:.2f}s")
        logger.info(f"Average throughput: {client_metrics['avg_throughput_mbps']:.2f} MB/s")

        if server_metrics:
            logger.info("=== SERVER METRICS ===")
            for line in server_metrics.strip().splitlines():
                logger.info(line)

        raw_samples = None
        if rows:
            logger.info("=== Stage Summary ===")
            for line in format_summary_table(rows):
                logger.info(line)
        else:
            logger.warning("No stage rows produced; writing raw samples for diagnostics")
            raw_samples = self.metric_store.to_dataframe()

        summary_file = self.persistence.save_summary(rows, client_metrics, raw_samples, server_metrics)
        parquet_file = self.persistence.save_to_file("samples")
        if parquet_file:
            logger.info(f"Detailed samples saved to: {parquet_file}")

        return {
            "stages": rows,
            "client_metrics": client_metrics,
            "summary_file": summary_file,
            "parquet_file": parquet_file,
            "samples_by_stage": samples_by_stage or {},
            "server_metrics": server_metrics,
        }


def add_run_arguments(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    """Register the benchmark run flags on a parser or subparser."""
    parser.add_argument('--server', type=str, default=SERVER_ADDRESS,
                        help=f'Raw TCP address host:port (default: {SERVER_ADDRESS})')
    parser.add_argument('--server-url', type=str, default=SERVER_URL,
                        help=f'Base URL for the control path (default: {SERVER_URL})')
    parser.add_argument('--size', type=int, default=PAYLOAD_SIZE_BYTES,
                        help=f'Requested payload size in bytes (default: {PAYLOAD_SIZE_BYTES})')
    parser.add_argument('--chunk-size', type=int, default=CHUNK_SIZE_BYTES,
                        help=f'Maximum bytes per read (default: {CHUNK_SIZE_BYTES})')
    parser.add_argument('--receive-buffer', type=int, default=RECEIVE_BUFFER_BYTES,
                        help='SO_RCVBUF hint in bytes, 0 keeps the OS default')
    parser.add_argument('--expected-total', type=int, default=None,
                        help='Stop each run after this many bytes instead of on close')
    parser.add_argument('--no-header-tracking', action='store_true',
                        help='Count every received byte as payload')
    parser.add_argument('--no-control', action='store_true',
                        help='Skip the unthrottled control requests')
    parser.add_argument('--concurrent-stages', action='store_true',
                        help='Start all stages at the same time')
    parser.add_argument('--output-dir', type=str, default=DEFAULT_OUTPUT_DIR,
                        help=f'Directory for result files (default: {DEFAULT_OUTPUT_DIR})')
    parser.add_argument('--prometheus-port', type=int, default=DEFAULT_PROMETHEUS_PORT,
                        help='Expose live metrics on this port (0 = disabled)')
    return parser


def runner_from_args(args: argparse.Namespace, connector=None) -> BenchmarkRunner:
    """Build a BenchmarkRunner from parsed run flags."""
    return BenchmarkRunner(
        server_address=args.server,
        server_url=args.server_url,
        payload_size=args.size,
        chunk_size=args.chunk_size,
        receive_buffer=args.receive_buffer,
        expected_total=args.expected_total,
        track_header_boundary=not args.no_header_tracking,
        control=not args.no_control,
        concurrent_stages=args.concurrent_stages,
        output_dir=args.output_dir,
        prometheus_port=args.prometheus_port,
        connector=connector,
    )


async def main_async(argv: Optional[List[str]] = None):
    """Main async entry point for the benchmark runner."""
    parser = add_run_arguments(argparse.ArgumentParser(description="Throttled download benchmark runner"))
    args = parser.parse_args(argv)

    runner = runner_from_args(args)

    try:
        results = await runner.run_benchmark()
        print("\n=== Final Results ===")
        for line in format_summary_table(results["stages"]):
            print(line)
    except KeyboardInterrupt:
        logger.info("Benchmark interrupted by user")
    except Exception as e:
        logger.error(f"Benchmark failed: {e}")
        sys.exit(1)


def main():
    """Main entry point for the benchmark runner."""
    uvloop.run(main_async())


if __name__ == "__main__":
    main()

"""
Simple Prometheus metrics exporter for the throttled download benchmark.
"""

import logging
from typing import Mapping

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

from configuration import (
    SERIES_BYTES_RECEIVED,
    SERIES_CONTROL_CHECK,
    SERIES_CONTROL_LATENCY,
    SERIES_DURATION,
    SERIES_PAYLOAD,
    SERIES_THROUGHPUT,
    TAG_BANDWIDTH,
    TAG_STAGE,
)

logger = logging.getLogger(__name__)


class SimplePrometheusExporter:
    """Mirrors recorded series values into per-stage Prometheus metrics."""

    def __init__(self, port: int = 9100, registry: CollectorRegistry = None):
        self.port = port
        self.server_started = False
        self.registry = registry or CollectorRegistry()

        labels = ['stage', 'bandwidth']
        self.throughput = Gauge(
            'throttle_bench_throughput_mbps', 'Last measured payload throughput in MB/s',
            labels, registry=self.registry)
        self.duration = Histogram(
            'throttle_bench_run_duration_seconds', 'Duration of throttled runs',
            labels, registry=self.registry)
        self.payload_bytes = Counter(
            'throttle_bench_payload_bytes', 'Payload bytes received',
            labels, registry=self.registry)
        self.bytes_received = Counter(
            'throttle_bench_bytes_received', 'All bytes received, headers included',
            labels, registry=self.registry)
        self.control_latency = Histogram(
            'throttle_bench_control_latency_seconds', 'Unthrottled control request latency',
            labels, registry=self.registry)
        self.control_failures = Counter(
            'throttle_bench_control_failures', 'Control requests without a 200 status',
            labels, registry=self.registry)

    def start_server(self):
        """Start the Prometheus HTTP server."""
        if not self.server_started:
            try:
                start_http_server(self.port, registry=self.registry)
                self.server_started = True
                logger.info(f"Prometheus server started on port {self.port}")
            except OSError as e:
                logger.error(f"Failed to start Prometheus server: {e}")

    def observe(self, series_name: str, value: float, tags: Mapping[str, str]) -> None:
        """Mirror one recorded value."""
        stage = tags.get(TAG_STAGE, "")
        bandwidth = tags.get(TAG_BANDWIDTH, "")
        try:
            if series_name == SERIES_THROUGHPUT:
                self.throughput.labels(stage, bandwidth).set(value)
            elif series_name == SERIES_DURATION:
                self.duration.labels(stage, bandwidth).observe(value)
            elif series_name == SERIES_PAYLOAD:
                self.payload_bytes.labels(stage, bandwidth).inc(value)
            elif series_name == SERIES_BYTES_RECEIVED:
                self.bytes_received.labels(stage, bandwidth).inc(value)
            elif series_name == SERIES_CONTROL_LATENCY:
                self.control_latency.labels(stage, bandwidth).observe(value / 1000)
            elif series_name == SERIES_CONTROL_CHECK and not value:
                self.control_failures.labels(stage, bandwidth).inc()
        except ValueError as e:
            logger.error(f"Failed to export {series_name}: {e}")

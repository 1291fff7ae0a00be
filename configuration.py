"""
Configuration constants for the throttled download benchmark.

This module contains all configuration parameters including:
- Target server address and control-path URL
- Request and read-loop parameters (payload size, chunk size, receive buffer)
- The default stage plan with per-stage bandwidth caps
- Metric series and tag names shared by recording and aggregation
- Unit conversion constants and output defaults
"""

import os
from typing import Any, Dict, List

# =============================================================================
# TARGET SERVER CONFIGURATION
# =============================================================================

# Raw TCP address used by the throttled transport ("host:port")
SERVER_ADDRESS: str = os.getenv("SERVER_ADDRESS", "server:8080")

# Base URL used by the unthrottled control path
SERVER_URL: str = os.getenv("SERVER_URL", "http://server:8080")

# Seconds allowed for establishing a raw connection
CONNECT_TIMEOUT_SECONDS: float = 10.0

# Total timeout for a single control-path request
CONTROL_TIMEOUT_SECONDS: float = 60.0

# =============================================================================
# FILE SIZE CONSTANTS
# =============================================================================

BYTES_PER_KB: int = 1024
BYTES_PER_MB: int = 1024 * 1024

# =============================================================================
# REQUEST AND READ LOOP PARAMETERS
# =============================================================================

PAYLOAD_SIZE_BYTES: int = int(os.getenv("PAYLOAD_SIZE_BYTES", str(BYTES_PER_MB)))
CHUNK_SIZE_BYTES: int = 8192
RECEIVE_BUFFER_BYTES: int = 0  # 0 leaves the OS default untouched

# Sent verbatim over the raw connection, formatted with path, size and host
REQUEST_TEMPLATE: str = (
    "GET {path}?size={size} HTTP/1.1\r\n"
    "Host: {host}\r\n"
    "Connection: close\r\n"
    "\r\n"
)
TEST_PATH: str = "/test"
SAVE_RESULTS_PATH: str = "/save-results"
SERVER_METRICS_PATH: str = "/metrics"

HTTP_SUCCESS_STATUS: int = 200

# =============================================================================
# STAGE PLAN
# =============================================================================

# One entry per stage; ids must not contain TAG_SEPARATOR
STAGES: List[Dict[str, Any]] = [
    {
        "stage_id": "1",
        "name": "Stage 1: 500 KB/s",
        "bandwidth_bytes_per_sec": 500 * BYTES_PER_KB,
        "vus": 1,
        "iterations": 1,
    },
    {
        "stage_id": "2",
        "name": "Stage 2: 1 MB/s",
        "bandwidth_bytes_per_sec": 1 * BYTES_PER_MB,
        "vus": 1,
        "iterations": 1,
    },
    {
        "stage_id": "3",
        "name": "Stage 3: 10 MB/s",
        "bandwidth_bytes_per_sec": 10 * BYTES_PER_MB,
        "vus": 1,
        "iterations": 1,
    },
]

# =============================================================================
# METRIC SERIES AND TAGS
# =============================================================================

SERIES_THROUGHPUT: str = "throttled_throughput_mbps"
SERIES_DURATION: str = "throttled_duration_seconds"
SERIES_PAYLOAD: str = "throttled_payload_bytes"
SERIES_BYTES_RECEIVED: str = "throttled_bytes_received"
SERIES_CONTROL_LATENCY: str = "control_latency_ms"
SERIES_CONTROL_CHECK: str = "control_status_ok"

TAG_STAGE: str = "stage"
TAG_BANDWIDTH: str = "bandwidth"

# Tag values are joined in this order to build the composite tag key
TAG_KEY_ORDER: List[str] = [TAG_STAGE, TAG_BANDWIDTH]
TAG_SEPARATOR: str = ":"

# =============================================================================
# OUTPUT DEFAULTS
# =============================================================================

DEFAULT_OUTPUT_DIR: str = "results"
DEFAULT_PLOTS_DIR: str = "plots"
SUMMARY_FILENAME: str = "summary.json"

# 0 disables the Prometheus exporter
DEFAULT_PROMETHEUS_PORT: int = 0

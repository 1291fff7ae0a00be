"""
Shared utilities for benchmark metrics: unit conversions, sample recording and reporting.
"""

import logging
from typing import Any, Dict, List

from configuration import (
    BYTES_PER_MB,
    SERIES_BYTES_RECEIVED,
    SERIES_CONTROL_CHECK,
    SERIES_DURATION,
    SERIES_PAYLOAD,
    SERIES_THROUGHPUT,
)

logger = logging.getLogger(__name__)


def calculate_throughput_mbps(total_bytes: float, duration_seconds: float) -> float:
    """
    Calculate throughput in megabytes per second (MB/s, 1 MB = 1024 * 1024 bytes).

    Args:
        total_bytes: Total bytes transferred
        duration_seconds: Duration in seconds

    Returns:
        Throughput in MB/s, 0.0 for a non-positive duration
    """
    if duration_seconds <= 0:
        return 0.0
    return total_bytes / duration_seconds / BYTES_PER_MB


def bytes_to_mb(total_bytes: float) -> float:
    return total_bytes / BYTES_PER_MB


def record_sample(metric_store, sample) -> None:
    """Append one sample to the shared store as tagged series values.

    Each series gets exactly one new entry; nothing already stored is read or
    updated.
    """
    tags = sample.tags()
    metric_store.record(SERIES_THROUGHPUT, sample.throughput_mbps, tags)
    metric_store.record(SERIES_DURATION, sample.duration_seconds, tags)
    metric_store.record(SERIES_PAYLOAD, sample.payload_bytes, tags)
    metric_store.record(SERIES_BYTES_RECEIVED, sample.total_bytes, tags)


def calculate_client_metrics(metric_store, elapsed_seconds: float) -> Dict[str, Any]:
    """
    Test-wide client counters read back from the store.

    Args:
        metric_store: Store holding all recorded series
        elapsed_seconds: Wall time since the test started

    Returns:
        Dictionary with total bytes, test duration, average throughput and
        control check counts
    """
    total_bytes = int(metric_store.total(SERIES_BYTES_RECEIVED))
    checks = metric_store.read_all_tagged_values(SERIES_CONTROL_CHECK)
    checks_total = sum(view.count for view in checks.values())
    checks_passed = int(sum(view.sum for view in checks.values()))

    return {
        'total_bytes_received': total_bytes,
        'test_duration_seconds': elapsed_seconds,
        'avg_throughput_mbps': calculate_throughput_mbps(total_bytes, elapsed_seconds),
        'control_checks_total': checks_total,
        'control_checks_passed': checks_passed,
    }


def format_summary_table(rows: List) -> List[str]:
    """Render summary rows as aligned text lines for logging."""

    def fmt(value, spec):
        return "n/a" if value is None else format(value, spec)

    lines = [f"{'Stage':<28} {'MB/s':>10} {'Duration s':>12} {'Payload MB':>12} {'Samples':>8}"]
    for row in rows:
        lines.append(
            f"{row.stage_label:<28} "
            f"{fmt(row.avg_throughput_mbps, '.2f'):>10} "
            f"{fmt(row.avg_duration_seconds, '.2f'):>12} "
            f"{fmt(row.total_payload_mb, '.2f'):>12} "
            f"{row.sample_count:>8}"
        )
    return lines

"""
Data structures for throttled download measurements and stage summaries.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from configuration import BYTES_PER_MB, TAG_STAGE, TAG_BANDWIDTH


@dataclass(frozen=True)
class Sample:
    """One completed measurement run for a single stage."""

    stage_id: str
    stage_name: str
    bandwidth_limit_bytes_per_sec: int
    payload_bytes: int
    total_bytes: int
    duration_seconds: float
    header_complete: bool = True
    start_ts: float = 0.0
    end_ts: float = 0.0

    def __post_init__(self):
        if self.payload_bytes > self.total_bytes:
            raise ValueError(
                f"payload_bytes ({self.payload_bytes}) exceeds total_bytes ({self.total_bytes})"
            )
        if self.total_bytes > 0 and self.duration_seconds <= 0:
            raise ValueError("duration_seconds must be positive when bytes were received")

    @property
    def header_bytes(self) -> int:
        return self.total_bytes - self.payload_bytes

    @property
    def throughput_mbps(self) -> float:
        """Payload throughput in MB/s (1 MB = 1024 * 1024 bytes)."""
        if self.duration_seconds <= 0:
            return 0.0
        return self.payload_bytes / self.duration_seconds / BYTES_PER_MB

    def tags(self) -> Dict[str, str]:
        """Tags attached to every series value recorded for this sample."""
        return {
            TAG_STAGE: self.stage_id,
            TAG_BANDWIDTH: str(self.bandwidth_limit_bytes_per_sec),
        }

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['header_bytes'] = self.header_bytes
        data['throughput_mbps'] = self.throughput_mbps
        return data


@dataclass(frozen=True)
class StageSummaryRow:
    """Aggregated view of all samples recorded for one stage.

    Fields are None when no value was recorded for them, which is distinct
    from a measured zero.
    """

    stage_id: str
    stage_label: str
    avg_throughput_mbps: Optional[float]
    avg_duration_seconds: Optional[float]
    total_payload_mb: Optional[float]
    sample_count: int = 0

    @property
    def available(self) -> bool:
        return self.sample_count > 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

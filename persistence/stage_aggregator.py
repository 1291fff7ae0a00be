"""
Stage metrics aggregator: regroups tagged samples into one summary row per stage.
"""

import logging
from typing import Dict, List, Mapping, Optional, Tuple

from common.metrics_utils import bytes_to_mb
from configuration import (
    SERIES_DURATION,
    SERIES_PAYLOAD,
    SERIES_THROUGHPUT,
    TAG_SEPARATOR,
)
from persistence.metric_store import MetricStore, TaggedValueView
from persistence.record import StageSummaryRow

logger = logging.getLogger(__name__)


class TagParseWarning(UserWarning):
    """A tag key could not be mapped to a stage identifier."""

    def __init__(self, series_name: str, tag_key: str):
        super().__init__(f"Cannot extract a stage id from tag key {tag_key!r} in series {series_name}")
        self.series_name = series_name
        self.tag_key = tag_key


def stage_id_from_tag_key(tag_key: str) -> Optional[str]:
    """Return the substring before the first separator, or None if it is empty."""
    if not isinstance(tag_key, str):
        return None
    stage_id = tag_key.split(TAG_SEPARATOR, 1)[0].strip()
    return stage_id or None


def stage_sort_key(stage_id: str) -> Tuple[int, int, str]:
    """Numeric ids sort numerically and before any non-numeric id."""
    if stage_id.isdecimal():
        return (0, int(stage_id), stage_id)
    return (1, 0, stage_id)


class _StageAccumulator:
    """Working record for one stage while the series are scanned."""

    def __init__(self):
        self.throughput_sum = 0.0
        self.throughput_count = 0
        self.duration_sum = 0.0
        self.duration_count = 0
        self.payload_sum = 0.0
        self.payload_count = 0

    @property
    def sample_count(self) -> int:
        return max(self.throughput_count, self.duration_count, self.payload_count)


class StageMetricsAggregator:
    """Turns the recorded throughput, duration and payload series into stage rows."""

    def __init__(self, metric_store: MetricStore, stage_labels: Mapping[str, str] = None):
        """Initialize the aggregator.

        Args:
            metric_store: Store holding the tagged series of all runs
            stage_labels: Optional mapping of stage id to human-readable label
        """
        self.metric_store = metric_store
        self.stage_labels: Dict[str, str] = dict(stage_labels or {})
        self.skipped: List[TagParseWarning] = []

    def aggregate(self, include_missing: bool = False) -> List[StageSummaryRow]:
        """Compute one summary row per stage, ordered by stage id.

        Args:
            include_missing: Also emit an unavailable row for every labelled
                stage that has no data, provided anything was recorded at all

        Returns:
            Summary rows; empty if nothing was recorded
        """
        self.skipped = []
        stages: Dict[str, _StageAccumulator] = {}

        self._accumulate(SERIES_THROUGHPUT, stages, 'throughput')
        self._accumulate(SERIES_DURATION, stages, 'duration')
        self._accumulate(SERIES_PAYLOAD, stages, 'payload')

        if not stages:
            logger.warning("No stage samples recorded")
            return []

        if include_missing:
            for stage_id in self.stage_labels:
                if stage_id not in stages:
                    logger.warning(f"Stage {stage_id} has no recorded samples")
                    stages[stage_id] = _StageAccumulator()

        rows = [self._build_row(stage_id, acc) for stage_id, acc in stages.items()]
        rows.sort(key=lambda row: stage_sort_key(row.stage_id))

        logger.debug(f"Aggregated {len(rows)} stage rows, skipped {len(self.skipped)} tag keys")
        return rows

    def _accumulate(self, series_name: str, stages: Dict[str, _StageAccumulator], field: str) -> None:
        values: Dict[str, TaggedValueView] = self.metric_store.read_all_tagged_values(series_name)

        for key, view in values.items():
            stage_id = stage_id_from_tag_key(key)
            if stage_id is None:
                warning = TagParseWarning(series_name, key)
                self.skipped.append(warning)
                logger.warning(str(warning))
                continue

            if view.count <= 0:
                continue

            acc = stages.setdefault(stage_id, _StageAccumulator())
            if field == 'throughput':
                acc.throughput_sum += view.sum
                acc.throughput_count += view.count
            elif field == 'duration':
                acc.duration_sum += view.sum
                acc.duration_count += view.count
            else:
                acc.payload_sum += view.sum
                acc.payload_count += view.count

    def _build_row(self, stage_id: str, acc: _StageAccumulator) -> StageSummaryRow:
        return StageSummaryRow(
            stage_id=stage_id,
            stage_label=self.stage_labels.get(stage_id, f"Stage {stage_id}"),
            avg_throughput_mbps=(
                acc.throughput_sum / acc.throughput_count if acc.throughput_count else None
            ),
            avg_duration_seconds=(
                acc.duration_sum / acc.duration_count if acc.duration_count else None
            ),
            total_payload_mb=(
                bytes_to_mb(acc.payload_sum) if acc.payload_count else None
            ),
            sample_count=acc.sample_count,
        )

"""
Append-only tagged metric store shared by all measurement runs.
"""

import threading
import time
import logging
from typing import Dict, List, Mapping, Optional

import pandas as pd

from configuration import TAG_KEY_ORDER, TAG_SEPARATOR

logger = logging.getLogger(__name__)


def tag_key(tags: Mapping[str, str]) -> str:
    """Build the composite key for a tag set.

    Values of the well-known tags come first in TAG_KEY_ORDER, any other tags
    follow sorted by name.
    """
    ordered = [str(tags[name]) for name in TAG_KEY_ORDER if name in tags]
    extra = sorted(name for name in tags if name not in TAG_KEY_ORDER)
    ordered.extend(str(tags[name]) for name in extra)
    return TAG_SEPARATOR.join(ordered)


class TaggedValueView:
    """Aggregated read-only view of all values recorded under one tag key."""

    def __init__(self, count: int, total: float, minimum: float, maximum: float):
        self.count = count
        self.sum = total
        self.min = minimum
        self.max = maximum

    @property
    def avg(self) -> float:
        return self.sum / self.count if self.count else 0.0

    def __eq__(self, other) -> bool:
        if not isinstance(other, TaggedValueView):
            return NotImplemented
        return (self.count, self.sum, self.min, self.max) == (other.count, other.sum, other.min, other.max)

    def __repr__(self) -> str:
        return f"TaggedValueView(count={self.count}, avg={self.avg:.4f}, sum={self.sum:.4f})"


class MetricStore:
    """Thread-safe store of tagged series values.

    Every record() call appends one new entry; existing entries are never
    updated, so concurrent runs need no coordination beyond the append lock.
    """

    def __init__(self, exporter=None):
        """Initialize the store.

        Args:
            exporter: Optional live exporter mirroring each recorded value
        """
        self.entries: List[Dict] = []
        self.exporter = exporter
        self.lock = threading.Lock()

    def record(self, series_name: str, value: float, tags: Optional[Mapping[str, str]] = None) -> None:
        tags = dict(tags or {})
        entry = {
            'series': series_name,
            'value': float(value),
            'tag_key': tag_key(tags),
            'tags': tags,
            'ts': time.time(),
        }
        with self.lock:
            self.entries.append(entry)

        if self.exporter is not None:
            self.exporter.observe(series_name, float(value), tags)

    def _snapshot(self) -> List[Dict]:
        with self.lock:
            return list(self.entries)

    def read_all_tagged_values(self, series_name: str) -> Dict[str, TaggedValueView]:
        """Group a series by tag key.

        Returns:
            Mapping from tag key to the aggregated view of its values
        """
        rows = [e for e in self._snapshot() if e['series'] == series_name]
        if not rows:
            return {}

        df = pd.DataFrame(rows, columns=['tag_key', 'value'])
        grouped = df.groupby('tag_key', sort=True)['value'].agg(['count', 'sum', 'min', 'max'])

        return {
            key: TaggedValueView(int(row['count']), float(row['sum']), float(row['min']), float(row['max']))
            for key, row in grouped.iterrows()
        }

    def total(self, series_name: str) -> float:
        """Sum of every value recorded in a series."""
        return sum(e['value'] for e in self._snapshot() if e['series'] == series_name)

    def series_names(self) -> List[str]:
        return sorted({e['series'] for e in self._snapshot()})

    def to_dataframe(self) -> pd.DataFrame:
        """Raw entries, one row per recorded value, tags expanded to columns."""
        snapshot = self._snapshot()
        if not snapshot:
            return pd.DataFrame(columns=['series', 'value', 'tag_key', 'ts'])

        rows = []
        for entry in snapshot:
            row = {k: v for k, v in entry.items() if k != 'tags'}
            for name, value in entry['tags'].items():
                row[f'tag_{name}'] = value
            rows.append(row)
        return pd.DataFrame(rows)

    def __len__(self) -> int:
        with self.lock:
            return len(self.entries)

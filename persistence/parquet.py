"""
Parquet and JSON persistence for benchmark samples and stage summaries.
"""

import os
import json
import logging
import threading
from typing import Any, Dict, List, Optional
from datetime import datetime

import pandas as pd

from configuration import SUMMARY_FILENAME
from persistence.record import Sample, StageSummaryRow

logger = logging.getLogger(__name__)


class ParquetPersistence:
    """Thread-safe persistence for samples and the end-of-test summary.

    Samples are kept in memory during the test and written to a Parquet file
    for later analysis; the summary is written as JSON records.

    Attributes:
        output_dir: Directory where result files will be saved
        samples: Samples accumulated during the benchmark
    """

    def __init__(self, output_dir: str = "results"):
        """Initialize persistence.

        Args:
            output_dir: Directory for saving result files (default: 'results')
        """
        self.output_dir: str = output_dir
        self.samples: List[Sample] = []
        self.lock = threading.Lock()

        # Ensure output directory exists
        os.makedirs(output_dir, exist_ok=True)

    def store_sample(self, sample: Sample) -> None:
        """Store a sample in memory."""
        with self.lock:
            self.samples.append(sample)

    def samples_dataframe(self) -> pd.DataFrame:
        with self.lock:
            return pd.DataFrame([s.to_dict() for s in self.samples])

    def save_to_file(self, filename_prefix: str = "samples") -> Optional[str]:
        """Save all samples to a Parquet file.

        Args:
            filename_prefix: Prefix for the generated filename (default: 'samples')

        Returns:
            Path to the saved file, or None if no samples to save
        """
        df = self.samples_dataframe()
        if df.empty:
            return None

        logger.info(f"Saving {len(df)} samples to file")

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"{filename_prefix}_{timestamp}.parquet"
        filepath = os.path.join(self.output_dir, filename)

        df.to_parquet(filepath, index=False)

        return filepath

    def save_summary(
        self,
        rows: List[StageSummaryRow],
        client_metrics: Dict[str, Any],
        raw_samples: Optional[pd.DataFrame] = None,
        server_metrics: Optional[str] = None,
    ) -> str:
        """Write the per-stage summary as JSON.

        When no rows were produced the raw sample dump is embedded instead so
        the run can still be diagnosed. The server's plain-text counters are
        included when they were fetched.

        Returns:
            Path to the summary file
        """
        summary: Dict[str, Any] = {
            'generated_at': datetime.now().isoformat(),
            'client_metrics': client_metrics,
            'stages': [row.to_dict() for row in rows],
        }
        if server_metrics is not None:
            summary['server_metrics'] = server_metrics
        if not rows:
            if raw_samples is not None and not raw_samples.empty:
                summary['raw_samples'] = json.loads(raw_samples.to_json(orient='records'))
            else:
                summary['raw_samples'] = []

        filepath = os.path.join(self.output_dir, SUMMARY_FILENAME)
        with open(filepath, 'w') as f:
            json.dump(summary, f, indent=2)

        logger.info(f"Summary written to {filepath}")
        return filepath

"""
Visualization orchestrator for throttled download benchmark results.

Creates stage-level plots from the raw samples stored in Parquet format.
"""

import pandas as pd
import os
import logging

from visualizations.stage_plots import StagePlotter

logger = logging.getLogger(__name__)


class BenchmarkVisualizer:
    """Simple visualizer for benchmark samples."""

    def __init__(self, parquet_file: str, output_dir: str = "plots"):
        self.parquet_file = parquet_file
        self.output_dir = output_dir
        self.data = None

        # Ensure output directory exists
        os.makedirs(output_dir, exist_ok=True)

        self._load_data()

        if self.data is not None:
            self.stage_plotter = StagePlotter(self.data, self.output_dir)
        else:
            self.stage_plotter = None

        logger.info(f"Initialized visualizer for {parquet_file}")

    def _load_data(self):
        """Load samples from the Parquet file."""
        try:
            self.data = pd.read_parquet(self.parquet_file)
            logger.info(f"Loaded {len(self.data)} samples from {self.parquet_file}")
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load data: {e}")
            self.data = None

    def create_all_plots(self):
        """Create all available plots."""
        if self.stage_plotter is None:
            logger.warning("Stage plotter not available")
            return []

        plots = [
            self.stage_plotter.create_throughput_vs_cap(),
            self.stage_plotter.create_duration_per_sample(),
        ]

        # Filter out None values
        plots = [p for p in plots if p is not None]

        logger.info(f"Created {len(plots)} plots in {self.output_dir}")
        return plots

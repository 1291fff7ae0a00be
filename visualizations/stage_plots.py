"""
Per-stage throughput and duration plots.
"""

import matplotlib.pyplot as plt
import numpy as np
import logging
import os

from .base import BasePlotter
from configuration import BYTES_PER_MB

logger = logging.getLogger(__name__)


class StagePlotter(BasePlotter):
    """Plotter for stage-level visualizations built from raw samples."""

    def create_throughput_vs_cap(self):
        """Bar chart of average throughput per stage next to its configured cap."""
        complete = self.filter_complete_samples()
        if complete is None or len(complete) == 0:
            logger.warning("No complete samples for throughput plot")
            return None

        try:
            stats = complete.groupby('stage_id').agg({
                'throughput_mbps': 'mean',
                'bandwidth_limit_bytes_per_sec': 'first',
                'stage_name': 'first',
            }).reset_index()
            stats['cap_mbps'] = stats['bandwidth_limit_bytes_per_sec'] / BYTES_PER_MB

            positions = np.arange(len(stats))
            width = 0.4

            plt.figure(figsize=(12, 7))
            plt.bar(positions - width / 2, stats['throughput_mbps'], width,
                    label='Measured (avg)', color='steelblue')
            plt.bar(positions + width / 2, stats['cap_mbps'], width,
                    label='Configured cap', color='lightgray')

            plt.xticks(positions, stats['stage_name'], rotation=20)
            plt.title('Throughput per Stage vs Bandwidth Cap', fontsize=14)
            plt.ylabel('Throughput (MB/s)', fontsize=12)
            plt.grid(True, axis='y', alpha=0.3)
            plt.legend()
            plt.tight_layout()

            output_file = os.path.join(self.output_dir, 'stage_throughput.png')
            plt.savefig(output_file, dpi=150, bbox_inches='tight')
            plt.close()

            logger.info(f"Created stage throughput plot: {output_file}")
            return output_file

        except (KeyError, ValueError) as e:
            logger.error(f"Failed to create stage throughput plot: {e}")
            plt.close()
            return None

    def create_duration_per_sample(self):
        """Scatter of each sample's duration, colored by stage."""
        if self.data is None or len(self.data) == 0:
            logger.warning("No data available for duration plot")
            return None

        try:
            colors = self.get_stage_colors()

            plt.figure(figsize=(12, 7))
            for stage_id in self.get_unique_stages():
                stage_data = self.data[self.data['stage_id'] == stage_id]
                plt.scatter(stage_data['start_ts'] - self.data['start_ts'].min(),
                            stage_data['duration_seconds'],
                            color=colors[stage_id], label=f'Stage {stage_id}', s=20)

            plt.title('Run Duration per Sample', fontsize=14)
            plt.xlabel('Seconds since first run', fontsize=12)
            plt.ylabel('Duration (s)', fontsize=12)
            plt.grid(True, alpha=0.3)
            plt.legend()
            plt.tight_layout()

            output_file = os.path.join(self.output_dir, 'stage_durations.png')
            plt.savefig(output_file, dpi=150, bbox_inches='tight')
            plt.close()

            logger.info(f"Created duration plot: {output_file}")
            return output_file

        except (KeyError, ValueError) as e:
            logger.error(f"Failed to create duration plot: {e}")
            plt.close()
            return None

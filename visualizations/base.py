"""
Base classes for plot visualization.
"""

import pandas as pd
import seaborn as sns
import logging

logger = logging.getLogger(__name__)


class BasePlotter:
    """Base class for all plotters with common functionality."""

    def __init__(self, data: pd.DataFrame, output_dir: str):
        self.data = data
        self.output_dir = output_dir

    def filter_complete_samples(self):
        """Filter data to samples whose header terminator was observed."""
        if self.data is None or len(self.data) == 0:
            return None
        if 'header_complete' not in self.data.columns:
            return self.data
        return self.data[self.data['header_complete']]

    def get_unique_stages(self):
        """Get unique stage IDs from data."""
        if self.data is None or len(self.data) == 0:
            return []
        return list(self.data['stage_id'].unique())

    def get_stage_colors(self):
        """Generate color map for stages."""
        stages = self.get_unique_stages()
        stage_colors = sns.color_palette("husl", len(stages))
        return dict(zip(stages, stage_colors))

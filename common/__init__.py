"""
Common utilities for the throttled download benchmark.
"""

from .stage_plan import Stage, load_stages, stage_labels

__all__ = ['Stage', 'load_stages', 'stage_labels']

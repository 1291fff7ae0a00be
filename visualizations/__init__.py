"""
Plotters for stage-level benchmark results.
"""

"""
Metric storage, stage aggregation and result persistence.
"""

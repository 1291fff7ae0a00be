"""
Command line runners for the benchmark and its plots.
"""

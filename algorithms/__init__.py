"""
Measurement algorithms: response framing, single runs and the stage runner.
"""

"""
Throttled transport and unthrottled HTTP control path.
"""

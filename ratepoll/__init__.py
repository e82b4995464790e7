"""
Interval-bounded concurrent fetcher for NBP exchange rates.
"""

"""
Core infrastructure: configuration, logging, errors, stores and caching.
"""

"""
Shared helpers for URL parsing, file naming and human-readable formatting.
"""

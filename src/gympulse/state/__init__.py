"""State/store layer.

This package is the single owner of every facility's history: the only
place samples are accepted, deduplicated, truncated and persisted.
"""

"""Ingestion layer.

Turns upstream responses and stored rows into typed samples; only the
state/store layer is allowed to add them to a series.
"""

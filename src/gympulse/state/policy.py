"""Deterministic sample acceptance and retention policy.

This module contains *no* parsing. The ingestion boundary is responsible
for producing validated samples.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")


def should_accept_sample(
    *,
    last_timestamp: int | None,
    incoming_timestamp: int,
    dedup_window_ms: int,
) -> bool:
    """Decide whether an incoming sample extends the series.

    Policy:
    - An empty series accepts anything.
    - Otherwise the incoming sample must be at least ``dedup_window_ms``
      newer than the last one. Near-duplicates and out-of-order samples
      are discarded, never merged.
    """
    if last_timestamp is None:
        return True
    return incoming_timestamp - last_timestamp >= dedup_window_ms


def retain_tail(items: Sequence[T], max_retain: int) -> tuple[T, ...]:
    """Drop the oldest entries so at most *max_retain* remain."""
    if len(items) <= max_retain:
        return tuple(items)
    return tuple(items[len(items) - max_retain :])

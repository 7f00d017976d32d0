"""Ranked origin tiers consulted once at startup."""

from gympulse.sources.base import OriginTier, ResolvedState, resolve
from gympulse.sources.seed import SeedTier
from gympulse.sources.tiers import CacheTier, PrimaryTier, SnapshotTier

__all__ = [
    "CacheTier",
    "OriginTier",
    "PrimaryTier",
    "ResolvedState",
    "SeedTier",
    "SnapshotTier",
    "resolve",
]

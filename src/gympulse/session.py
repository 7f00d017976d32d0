"""Resolved-session state shared by the monitor's components."""

from __future__ import annotations

import time
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class OriginTag(StrEnum):
    """Where the initial state of a session was loaded from.

    Provenance only: ingestion behaves the same for every origin, except
    that history is written back locally only when the local copy is the
    source of truth (``CACHE``).
    """

    PRIMARY = "primary"
    SNAPSHOT = "snapshot"
    CACHE = "cache"


class MonitorSession(BaseModel):
    """State produced by one startup resolution.

    Parameters
    ----------
    origin : OriginTag
        Tier that supplied the initial state.
    seeded : bool
        ``True`` when no tier had data and the built-in seed was used.
    created_at : float
        Monotonic timestamp (``time.monotonic()``) of the resolution.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_default=True,
    )

    origin: OriginTag
    seeded: bool = False
    created_at: float = Field(default_factory=time.monotonic)

    @property
    def is_local(self) -> bool:
        """Whether the local history document is the source of truth."""
        return self.origin == OriginTag.CACHE

    @property
    def age(self) -> float:
        """Seconds since the session was resolved."""
        return time.monotonic() - self.created_at

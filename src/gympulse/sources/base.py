"""Ranked resolution of the initial state.

Tiers are tried strictly in order and the first one that produces a
state wins for every facility; data is never merged across tiers.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from gympulse.exceptions import PulseError, PulseLoadError
from gympulse.models.facility import FacilityConfig, FacilitySeries
from gympulse.session import MonitorSession, OriginTag

_logger = logging.getLogger(__name__)


class OriginTier(Protocol):
    """One candidate origin of the initial state.

    ``try_load`` returns ``None`` when the origin has nothing to offer and
    may raise any :class:`~gympulse.exceptions.PulseError` when it is
    unreachable or malformed; both mean "try the next tier".
    """

    origin: OriginTag
    seeded: bool

    async def try_load(self, configs: Sequence[FacilityConfig]) -> dict[str, FacilitySeries] | None: ...


@dataclass(frozen=True, slots=True)
class ResolvedState:
    series: dict[str, FacilitySeries]
    session: MonitorSession

    @property
    def origin(self) -> OriginTag:
        return self.session.origin


async def resolve(tiers: Sequence[OriginTier], configs: Sequence[FacilityConfig]) -> ResolvedState:
    """Return the state of the first tier that loads successfully.

    Raises
    ------
    PulseLoadError
        No tier produced a state (only possible without a seed tier).
    """
    for tier in tiers:
        try:
            series = await tier.try_load(configs)
        except PulseError as exc:
            _logger.info("Origin %s unavailable: %s", tier.origin, exc)
            continue
        if series is None:
            _logger.debug("Origin %s has no data", tier.origin)
            continue
        _logger.info("Loaded %d facilities from %s origin", len(series), tier.origin)
        return ResolvedState(series=series, session=MonitorSession(origin=tier.origin, seeded=tier.seeded))
    raise PulseLoadError(f"no origin produced a state (tried {[str(t.origin) for t in tiers]})")

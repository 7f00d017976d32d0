"""Seam for an external occupancy-trend predictor.

The predictor itself (e.g. an LLM call) lives outside this package. The
monitor only prepares its input and makes sure a missing or failing
predictor yields *no prediction* instead of an error.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo
from typing import Protocol

from gympulse.models.prediction import PredictionResult
from gympulse.models.sample import Sample

_logger = logging.getLogger(__name__)

_HOUR_MS = 3600 * 1000
_RECENT_HOURS = 4
_RECENT_FALLBACK_COUNT = 5


@dataclass(frozen=True, slots=True)
class PredictionContext:
    """Condensed view of a history handed to a predictor prompt.

    ``same_time_average`` is the mean of samples on the same weekday
    within one hour of *now* (``None`` without such samples).
    ``recent`` holds the samples of the last four hours, or the last
    five samples when there are none. ``history`` is the full history.
    """

    now: datetime
    same_time_average: int | None
    recent: tuple[Sample, ...]
    history: tuple[Sample, ...] = ()

    @property
    def current(self) -> Sample | None:
        return self.recent[-1] if self.recent else None


def build_context(history: Sequence[Sample], *, now_ms: int, tz: tzinfo = UTC) -> PredictionContext:
    now = datetime.fromtimestamp(now_ms / 1000, tz=tz)

    same_time: list[int] = []
    for sample in history:
        moment = datetime.fromtimestamp(sample.timestamp / 1000, tz=tz)
        if moment.weekday() == now.weekday() and abs(moment.hour - now.hour) <= 1:
            same_time.append(sample.visitors)
    average = round(sum(same_time) / len(same_time)) if same_time else None

    threshold = now_ms - _RECENT_HOURS * _HOUR_MS
    recent = tuple(s for s in history if s.timestamp > threshold)
    if not recent:
        recent = tuple(history[-_RECENT_FALLBACK_COUNT:])

    return PredictionContext(now=now, same_time_average=average, recent=recent, history=tuple(history))


class Predictor(Protocol):
    async def __call__(self, facility_name: str, context: PredictionContext) -> PredictionResult: ...


async def predict(
    predictor: Predictor | None,
    facility_name: str,
    history: Sequence[Sample],
    *,
    now_ms: int,
    tz: tzinfo = UTC,
) -> PredictionResult | None:
    """Ask *predictor* for a trend; ``None`` when absent or failing."""
    if predictor is None:
        return None
    context = build_context(history, now_ms=now_ms, tz=tz)
    try:
        return await predictor(facility_name, context)
    except Exception:
        _logger.warning("Prediction for %s failed", facility_name, exc_info=True)
        return None

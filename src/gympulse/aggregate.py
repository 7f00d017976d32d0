"""Read-only views derived from a facility history.

All functions are pure: they never mutate *history* and return the same
result for the same input, ``now_ms`` and time zone.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime, tzinfo

from pydantic import Field

from gympulse._constants import (
    HOURLY_FIRST_HOUR,
    HOURLY_LAST_HOUR,
    RECENT_FALLBACK_COUNT,
    RECENT_WINDOW_MS,
    WEEKDAY_LABELS,
)
from gympulse.models._base import PulseBaseModel
from gympulse.models.sample import Sample


class BucketAverage(PulseBaseModel):
    """Mean visitor count of one weekday or hour bucket."""

    index: int
    label: str
    average: int = Field(ge=0)
    count: int = Field(ge=0)


def _local(timestamp_ms: int, tz: tzinfo) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=tz)


def _sunday_first_weekday(moment: datetime) -> int:
    """Weekday index with Sunday = 0 ... Saturday = 6."""
    return (moment.weekday() + 1) % 7


def _round_half_up(total: int, count: int) -> int:
    return (2 * total + count) // (2 * count)


def recent_window(
    history: Sequence[Sample],
    *,
    now_ms: int,
    window_ms: int = RECENT_WINDOW_MS,
    fallback_count: int = RECENT_FALLBACK_COUNT,
) -> list[Sample]:
    """Samples from the last *window_ms*, else the last *fallback_count*.

    The fallback covers histories that are entirely old (or ahead of a
    skewed clock) and keeps the original order.
    """
    threshold = now_ms - window_ms
    recent = [s for s in history if s.timestamp > threshold]
    if recent:
        return recent
    return list(history[-fallback_count:]) if fallback_count > 0 else []


def weekday_average(history: Sequence[Sample], *, tz: tzinfo = UTC) -> list[BucketAverage]:
    """Average visitors per weekday, Sunday first; empty buckets report 0."""
    sums = [0] * 7
    counts = [0] * 7
    for sample in history:
        day = _sunday_first_weekday(_local(sample.timestamp, tz))
        sums[day] += sample.visitors
        counts[day] += 1

    return [
        BucketAverage(
            index=day,
            label=WEEKDAY_LABELS[day],
            average=_round_half_up(sums[day], counts[day]) if counts[day] else 0,
            count=counts[day],
        )
        for day in range(7)
    ]


def hourly_average(
    history: Sequence[Sample],
    *,
    now_ms: int,
    tz: tzinfo = UTC,
    first_hour: int = HOURLY_FIRST_HOUR,
    last_hour: int = HOURLY_LAST_HOUR,
) -> list[BucketAverage]:
    """Average visitors per hour on the weekday of *now_ms*.

    Only hours ``first_hour..last_hour`` (inclusive) are reported, even
    when samples exist outside that range.
    """
    today = _sunday_first_weekday(_local(now_ms, tz))
    sums = [0] * 24
    counts = [0] * 24
    for sample in history:
        moment = _local(sample.timestamp, tz)
        if _sunday_first_weekday(moment) != today:
            continue
        sums[moment.hour] += sample.visitors
        counts[moment.hour] += 1

    return [
        BucketAverage(
            index=hour,
            label=f"{hour}:00",
            average=_round_half_up(sums[hour], counts[hour]) if counts[hour] else 0,
            count=counts[hour],
        )
        for hour in range(first_hour, last_hour + 1)
    ]

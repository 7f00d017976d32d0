from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from gympulse.models.prediction import PredictionResult, Trend
from gympulse.models.sample import Sample
from gympulse.prediction import PredictionContext, build_context, predict

# Friday, 2025-06-20 18:00 UTC
NOW = datetime(2025, 6, 20, 18, 0, tzinfo=UTC)
NOW_MS = int(NOW.timestamp() * 1000)


def _at(moment: datetime, visitors: int) -> Sample:
    return Sample(timestamp=int(moment.timestamp() * 1000), visitors=visitors)


def test_context_same_time_average_and_recent() -> None:
    history = [
        _at(NOW - timedelta(days=7, minutes=30), 100),
        _at(NOW - timedelta(days=7) + timedelta(hours=1), 50),
        _at(NOW - timedelta(days=6), 999),
        _at(NOW - timedelta(hours=2), 70),
    ]

    context = build_context(history, now_ms=NOW_MS, tz=UTC)

    # Same weekday within one hour of 18:00: 17:30 and 19:00 only.
    assert context.same_time_average == 75
    assert [s.visitors for s in context.recent] == [70]
    assert context.current is not None and context.current.visitors == 70


def test_context_falls_back_to_last_samples() -> None:
    old = NOW - timedelta(days=30)
    history = [_at(old + timedelta(hours=i), i) for i in range(8)]

    context = build_context(history, now_ms=NOW_MS, tz=UTC)

    assert [s.visitors for s in context.recent] == [3, 4, 5, 6, 7]


def test_context_of_empty_history() -> None:
    context = build_context([], now_ms=NOW_MS)

    assert context.same_time_average is None
    assert context.current is None


@pytest.mark.asyncio
async def test_predict_without_predictor_is_none() -> None:
    assert await predict(None, "FP Glattpark", [], now_ms=NOW_MS) is None


@pytest.mark.asyncio
async def test_failing_predictor_yields_none() -> None:
    async def predictor(name: str, context: PredictionContext) -> PredictionResult:
        raise RuntimeError("quota exceeded")

    assert await predict(predictor, "FP Glattpark", [], now_ms=NOW_MS) is None


@pytest.mark.asyncio
async def test_predictor_receives_prepared_context() -> None:
    expected = PredictionResult(trend=Trend.FALLING, confidence=60, reasoning="late", predicted_usage_next_hour=40)
    seen: list[tuple[str, PredictionContext]] = []

    async def predictor(name: str, context: PredictionContext) -> PredictionResult:
        seen.append((name, context))
        return expected

    history = [_at(NOW - timedelta(days=7), 80), _at(NOW - timedelta(minutes=10), 10)]
    result = await predict(predictor, "FP Glattpark", history, now_ms=NOW_MS, tz=UTC)

    assert result == expected
    name, context = seen[0]
    assert name == "FP Glattpark"
    assert context.history == tuple(history)
    assert context.same_time_average == 45
    assert context.current is not None and context.current.visitors == 10

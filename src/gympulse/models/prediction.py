"""Trend prediction result returned by an external predictor."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field

from gympulse.models._base import PulseBaseModel


class Trend(StrEnum):
    RISING = "Rising"
    FALLING = "Falling"
    STABLE = "Stable"


class PredictionResult(PulseBaseModel):
    """Expected occupancy trend for the next hours."""

    trend: Trend
    confidence: int = Field(ge=0, le=100)
    reasoning: str = ""
    predicted_usage_next_hour: int = Field(ge=0)

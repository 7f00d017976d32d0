"""Data models for gympulse."""

from gympulse.models._base import PulseBaseModel
from gympulse.models.facility import FacilityConfig, FacilitySeries
from gympulse.models.prediction import PredictionResult, Trend
from gympulse.models.sample import Sample, SampleFailure

__all__ = [
    "FacilityConfig",
    "FacilitySeries",
    "PredictionResult",
    "PulseBaseModel",
    "Sample",
    "SampleFailure",
    "Trend",
]

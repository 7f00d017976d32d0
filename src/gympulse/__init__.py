"""gympulse - Async occupancy monitor for fitness facilities."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("gympulse")
except PackageNotFoundError:
    __version__ = "0+local"
from gympulse.config import PulseConfig
from gympulse.exceptions import (
    PulseConfigError,
    PulseError,
    PulseLoadError,
    PulseParseError,
    PulsePersistError,
    PulseTransportError,
)
from gympulse.models import (
    FacilityConfig,
    FacilitySeries,
    PredictionResult,
    Sample,
    SampleFailure,
    Trend,
)
from gympulse.monitor import FacilityViews, PulseMonitor
from gympulse.scheduler import BatchResult, RefreshScheduler, SchedulerState
from gympulse.session import MonitorSession, OriginTag
from gympulse.state.store import SeriesStore, append_sample

__all__ = [
    "__version__",
    "BatchResult",
    "FacilityConfig",
    "FacilitySeries",
    "FacilityViews",
    "MonitorSession",
    "OriginTag",
    "PredictionResult",
    "PulseConfig",
    "PulseConfigError",
    "PulseError",
    "PulseLoadError",
    "PulseMonitor",
    "PulseParseError",
    "PulsePersistError",
    "PulseTransportError",
    "RefreshScheduler",
    "Sample",
    "SampleFailure",
    "SchedulerState",
    "SeriesStore",
    "Trend",
    "append_sample",
]

"""Sample and sampling-failure records."""

from __future__ import annotations

from pydantic import Field

from gympulse._constants import DEFAULT_CAPACITY
from gympulse.models._base import PulseBaseModel


class Sample(PulseBaseModel):
    """One timestamped visitor-count reading for a facility.

    Parameters
    ----------
    timestamp : int
        Epoch milliseconds when the reading was taken.
    visitors : int
        Visitors present, never negative.
    capacity : int
        Static capacity of the facility at sampling time. Serialized as
        ``maxCapacity``.
    """

    timestamp: int = Field(ge=0)
    visitors: int = Field(ge=0)
    capacity: int = Field(default=DEFAULT_CAPACITY, gt=0, alias="maxCapacity")

    @property
    def utilization_percent(self) -> int:
        """Occupancy as a rounded percentage of capacity."""
        return int(self.visitors * 100 / self.capacity + 0.5)


class SampleFailure(PulseBaseModel):
    """Why a sampling attempt produced no reading."""

    facility_id: str
    reason: str
    status_code: int | None = None

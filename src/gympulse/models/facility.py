"""Facility identity and per-facility series."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, field_validator, model_validator

from gympulse._constants import DEFAULT_CAPACITY
from gympulse.models._base import PulseBaseModel
from gympulse.models.sample import Sample

# Flat keys accepted from older clients, mapped into ``endpoint_params``.
_PARK_KEYS: dict[str, str] = {
    "parkId": "park_id",
    "locationId": "location_id",
    "locationName": "location_name",
}


class FacilityConfig(PulseBaseModel):
    """Stable identity of a tracked facility.

    Parameters
    ----------
    id : str
        Unique facility id (e.g. ``"glattpark"``).
    name : str
        Display name.
    endpoint_params : dict
        Query parameters identifying the facility at the vendor endpoint.
    capacity : int
        Static capacity recorded with every sample.
    url : str or None
        Pre-built sampling URL. When set, ``endpoint_params`` are ignored.
    """

    id: str
    name: str = ""
    endpoint_params: dict[str, str] = Field(default_factory=dict)
    capacity: int = Field(default=DEFAULT_CAPACITY, gt=0)
    url: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _collect_park_keys(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        if "endpointParams" in values or "endpoint_params" in values:
            return values
        params = {target: str(values[key]) for key, target in _PARK_KEYS.items() if values.get(key) not in (None, "")}
        if not params:
            return values
        merged = {k: v for k, v in values.items() if k not in _PARK_KEYS}
        merged["endpointParams"] = params
        return merged

    @model_validator(mode="after")
    def _require_source(self) -> FacilityConfig:
        if not self.url and not self.endpoint_params:
            raise ValueError("either url or endpoint_params is required")
        if not self.name:
            object.__setattr__(self, "name", self.id)
        return self

    @field_validator("id")
    @classmethod
    def _id_non_empty(cls, value: str) -> str:
        facility_id = value.strip()
        if not facility_id:
            raise ValueError("id must be non-empty")
        return facility_id

    @field_validator("endpoint_params", mode="before")
    @classmethod
    def _stringify_params(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {str(k): str(v) for k, v in value.items() if v is not None}
        return value

    def effective_capacity(self, default: int | None = None) -> int:
        """Declared capacity, else *default* when one is given."""
        if default is None or "capacity" in self.model_fields_set:
            return self.capacity
        return default

    @classmethod
    def from_park(
        cls,
        *,
        id: str,  # noqa: A002
        name: str,
        park_id: str,
        location_id: str,
        location_name: str,
        capacity: int | None = None,
    ) -> FacilityConfig:
        """Build a config for a park/location pair of the vendor endpoint."""
        extra: dict[str, Any] = {} if capacity is None else {"capacity": capacity}
        return cls(
            id=id,
            name=name,
            endpoint_params={
                "park_id": park_id,
                "location_id": location_id,
                "location_name": location_name,
            },
            **extra,
        )


class FacilitySeries(PulseBaseModel):
    """Ordered, bounded history of one facility.

    ``history`` is ascending by timestamp and ``current`` is always its
    last element (``None`` when empty). Both are re-derived on
    validation so documents loaded from any origin satisfy them.
    ``last_updated_at`` is the epoch-ms timestamp of the last accepted
    sample, or ``0`` for a facility that was never sampled.
    """

    config: FacilityConfig
    history: tuple[Sample, ...] = ()
    current: Sample | None = None
    last_updated_at: int = Field(
        default=0,
        validation_alias=AliasChoices("lastUpdatedAt", "lastUpdated", "last_updated_at"),
        serialization_alias="lastUpdatedAt",
    )

    @model_validator(mode="after")
    def _derive_current(self) -> FacilitySeries:
        history = self.history
        if any(a.timestamp > b.timestamp for a, b in zip(history, history[1:], strict=False)):
            history = tuple(sorted(history, key=lambda s: s.timestamp))
            object.__setattr__(self, "history", history)
        current = history[-1] if history else None
        object.__setattr__(self, "current", current)
        if current is not None and self.last_updated_at < current.timestamp:
            object.__setattr__(self, "last_updated_at", current.timestamp)
        return self

    @classmethod
    def empty(cls, config: FacilityConfig) -> FacilitySeries:
        return cls(config=config)

    @property
    def facility_id(self) -> str:
        return self.config.id

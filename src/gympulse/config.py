"""Monitor configuration for gympulse."""

from __future__ import annotations

import dataclasses
import os
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from gympulse._constants import (
    DEDUP_WINDOW_MS,
    DEFAULT_CAPACITY,
    MAX_RETAIN,
    REFRESH_INTERVAL_S,
    REQUEST_TIMEOUT_S,
    STALE_AFTER_S,
    USER_AGENT,
    VENDOR_URL,
)
from gympulse.exceptions import PulseConfigError
from gympulse.models.facility import FacilityConfig


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, value: str, kind: type[int] | type[float]) -> int | float:
    try:
        return kind(value)
    except ValueError as exc:
        raise PulseConfigError(f"{env_key} must be a number, got {value!r}") from exc


def default_facilities() -> tuple[FacilityConfig, ...]:
    """Facilities tracked when nothing else is configured."""
    return (
        FacilityConfig.from_park(
            id="glattpark",
            name="FP Glattpark",
            park_id="698",
            location_id="31",
            location_name="FP_Glattpark",
        ),
    )


@dataclasses.dataclass(frozen=True)
class PulseConfig:
    """Monitor configuration.

    Parameters
    ----------
    primary_url : str or None
        Base URL of a running gympulse service (the ``primary`` origin).
        ``None`` skips that tier.
    snapshot_url : str or None
        URL of a published, read-only history document (the ``snapshot``
        origin). ``None`` skips that tier.
    cache_path : str
        Local history document used as the ``cache`` origin and as the
        write target when the local copy is the source of truth.
    data_path : str
        History document owned by the standalone service.
    time_zone : str
        IANA time zone used to bucket samples by weekday and hour.
    refresh_interval : float
        Seconds between scheduled refresh batches.
    stale_after : float
        A facility whose last sample is older than this many seconds
        triggers a refresh right after startup.
    request_timeout : float
        Total timeout in seconds for a single HTTP request.
    dedup_window_ms : int
        Minimum spacing between two accepted samples of one facility.
    max_retain : int
        Maximum number of samples kept per facility.
    default_capacity : int
        Capacity used for facilities that do not declare their own.
    persist : bool
        Always write the history document after each batch, regardless of
        which origin the state was loaded from.
    vendor_url : str
        Endpoint that answers with the plain-text visitor count.
    user_agent : str
        ``User-Agent`` header sent with every request.
    host, port
        Bind address of the standalone service.
    facilities : tuple of FacilityConfig
        Facilities tracked from startup.
    """

    primary_url: str | None = "http://localhost:3001"
    snapshot_url: str | None = None
    cache_path: str = "gym_pulse_cache.json"
    data_path: str = "gym_history.json"
    time_zone: str = "Europe/Zurich"
    refresh_interval: float = REFRESH_INTERVAL_S
    stale_after: float = STALE_AFTER_S
    request_timeout: float = REQUEST_TIMEOUT_S
    dedup_window_ms: int = DEDUP_WINDOW_MS
    max_retain: int = MAX_RETAIN
    default_capacity: int = DEFAULT_CAPACITY
    persist: bool = False
    vendor_url: str = VENDOR_URL
    user_agent: str = USER_AGENT
    host: str = "127.0.0.1"
    port: int = 3001
    facilities: tuple[FacilityConfig, ...] = dataclasses.field(default_factory=default_facilities)

    def __post_init__(self) -> None:
        if self.max_retain < 1:
            raise PulseConfigError(f"max_retain must be >= 1, got {self.max_retain}")
        if self.dedup_window_ms < 0:
            raise PulseConfigError(f"dedup_window_ms must be >= 0, got {self.dedup_window_ms}")
        if self.refresh_interval <= 0:
            raise PulseConfigError(f"refresh_interval must be > 0, got {self.refresh_interval}")
        if self.request_timeout <= 0:
            raise PulseConfigError(f"request_timeout must be > 0, got {self.request_timeout}")
        if self.default_capacity < 1:
            raise PulseConfigError(f"default_capacity must be >= 1, got {self.default_capacity}")
        ids = [facility.id for facility in self.facilities]
        if len(ids) != len(set(ids)):
            raise PulseConfigError(f"facility ids must be unique, got {ids}")
        try:
            ZoneInfo(self.time_zone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise PulseConfigError(f"unknown time zone {self.time_zone!r}") from exc

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.time_zone)

    @classmethod
    def from_env(cls, **overrides: Any) -> PulseConfig:
        """Create configuration from ``GYMPULSE_*`` environment variables.

        Explicit keyword arguments override environment values. An empty
        ``GYMPULSE_PRIMARY_URL`` or ``GYMPULSE_SNAPSHOT_URL`` disables that
        origin tier.

        Raises
        ------
        PulseConfigError
            A numeric variable does not parse or a value is out of range.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "GYMPULSE_PRIMARY_URL": "primary_url",
            "GYMPULSE_SNAPSHOT_URL": "snapshot_url",
            "GYMPULSE_CACHE_PATH": "cache_path",
            "GYMPULSE_DATA_PATH": "data_path",
            "GYMPULSE_TIME_ZONE": "time_zone",
            "GYMPULSE_VENDOR_URL": "vendor_url",
            "GYMPULSE_USER_AGENT": "user_agent",
            "GYMPULSE_HOST": "host",
        }
        _ENV_NUMBER_MAP: dict[str, tuple[str, type[int] | type[float]]] = {
            "GYMPULSE_REFRESH_INTERVAL": ("refresh_interval", float),
            "GYMPULSE_STALE_AFTER": ("stale_after", float),
            "GYMPULSE_REQUEST_TIMEOUT": ("request_timeout", float),
            "GYMPULSE_DEDUP_WINDOW_MS": ("dedup_window_ms", int),
            "GYMPULSE_MAX_RETAIN": ("max_retain", int),
            "GYMPULSE_DEFAULT_CAPACITY": ("default_capacity", int),
            "GYMPULSE_PORT": ("port", int),
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            if field_name in {"primary_url", "snapshot_url"} and not val.strip():
                config_kwargs[field_name] = None
            else:
                config_kwargs[field_name] = val

        for env_key, (field_name, kind) in _ENV_NUMBER_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, kind)

        if "persist" not in overrides:
            config_kwargs["persist"] = _env_bool(env.get("GYMPULSE_PERSIST"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)

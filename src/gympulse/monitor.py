"""High-level async facade tying resolver, store, scheduler and views together."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

import aiohttp

from gympulse import aggregate
from gympulse._transport import HttpTransport, Transport
from gympulse.aggregate import BucketAverage
from gympulse.config import PulseConfig
from gympulse.exceptions import PulseError, PulsePersistError
from gympulse.ingestion.sampler import now_ms, sample
from gympulse.models.facility import FacilityConfig, FacilitySeries
from gympulse.models.prediction import PredictionResult
from gympulse.models.sample import Sample, SampleFailure
from gympulse.prediction import Predictor, predict
from gympulse.scheduler import BatchResult, RefreshScheduler
from gympulse.session import MonitorSession
from gympulse.sources import CacheTier, OriginTier, PrimaryTier, SeedTier, SnapshotTier, resolve
from gympulse.state.document import JsonDocumentStore
from gympulse.state.store import SeriesStore

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FacilityViews:
    """Display-ready aggregates of one facility."""

    facility_id: str
    recent: list[Sample]
    weekday: list[BucketAverage]
    hourly: list[BucketAverage]

    def to_wire(self) -> dict[str, Any]:
        return {
            "facilityId": self.facility_id,
            "recent": [s.to_wire() for s in self.recent],
            "weekday": [b.to_wire() for b in self.weekday],
            "hourly": [b.to_wire() for b in self.hourly],
        }


class PulseMonitor:
    """Occupancy monitor for a set of facilities.

    Usage::

        async with PulseMonitor(PulseConfig.from_env()) as monitor:
            session = await monitor.start()
            print(session.origin, monitor.facilities())

    Parameters
    ----------
    config : PulseConfig
        Monitor configuration.
    standalone : bool
        Run as the service that owns ``config.data_path``: only the local
        document and the seed are consulted at startup and history is
        always persisted. Otherwise the primary, snapshot, cache and seed
        tiers are tried in that order and ``config.cache_path`` is written
        back only when it is the source of truth.
    http_session : aiohttp.ClientSession or None
        Externally managed session; created on enter when omitted.
    transport : Transport or None
        Replaces the HTTP transport (test doubles).
    tiers : sequence of OriginTier or None
        Replaces the default origin tiers.
    predictor : Predictor or None
        External trend predictor used by :meth:`predict`.
    """

    def __init__(
        self,
        config: PulseConfig,
        *,
        standalone: bool = False,
        http_session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        tiers: Sequence[OriginTier] | None = None,
        predictor: Predictor | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._config = config
        self._standalone = standalone
        self._external_session = http_session is not None
        self._http_session = http_session
        self._transport = transport
        self._tiers = list(tiers) if tiers is not None else None
        self._predictor = predictor
        self._clock = clock
        self._document = JsonDocumentStore(config.data_path if standalone else config.cache_path, clock=clock)
        self._store = SeriesStore(
            self._document,
            dedup_window_ms=config.dedup_window_ms,
            max_retain=config.max_retain,
        )
        self._session: MonitorSession | None = None
        self._scheduler: RefreshScheduler | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> PulseMonitor:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._config, self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    @property
    def config(self) -> PulseConfig:
        return self._config

    @property
    def store(self) -> SeriesStore:
        return self._store

    @property
    def session(self) -> MonitorSession | None:
        """Result of the startup resolution, ``None`` before :meth:`resolve`."""
        return self._session

    @property
    def scheduler(self) -> RefreshScheduler:
        if self._scheduler is None:
            raise PulseError("Monitor not resolved. Call 'await monitor.resolve()' first")
        return self._scheduler

    def default_tiers(self) -> list[OriginTier]:
        """Origin tiers in rank order for this deployment."""
        transport = self._require_transport()
        max_retain = self._config.max_retain
        tiers: list[OriginTier] = []
        if not self._standalone:
            if self._config.primary_url:
                tiers.append(PrimaryTier(self._config.primary_url, transport))
            if self._config.snapshot_url:
                tiers.append(SnapshotTier(self._config.snapshot_url, transport, max_retain=max_retain))
        tiers.append(CacheTier(self._store))
        tiers.append(
            SeedTier(
                tz=self._config.tzinfo,
                default_capacity=self._config.default_capacity,
                max_retain=max_retain,
            )
        )
        return tiers

    async def resolve(self) -> MonitorSession:
        """Load the initial state from the first available origin."""
        tiers = self._tiers if self._tiers is not None else self.default_tiers()
        resolved = await resolve(tiers, self._config.facilities)
        self._store.replace_all(resolved.series)
        self._session = resolved.session

        persist = self._standalone or self._config.persist or resolved.session.is_local
        self._scheduler = RefreshScheduler(
            self._store,
            self._sample,
            interval=self._config.refresh_interval,
            stale_after=self._config.stale_after,
            persist=persist,
            clock=self._clock,
        )
        if resolved.session.seeded and persist:
            try:
                self._store.save()
            except PulsePersistError as exc:
                _logger.warning("Could not write seed history: %s", exc)
        return resolved.session

    async def start(self) -> MonitorSession:
        """Resolve, then keep refreshing in the background."""
        session = self._session if self._session is not None else await self.resolve()
        self.scheduler.start()
        return session

    async def stop(self) -> None:
        if self._scheduler is not None:
            await self._scheduler.stop()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def refresh(self) -> BatchResult:
        """Sample every facility now (joins a batch already in progress)."""
        return await self.scheduler.refresh()

    async def add_facility(self, config: FacilityConfig) -> Sample | SampleFailure:
        """Track a new facility and sample it immediately."""
        return await self.scheduler.add_facility(config)

    def facilities(self) -> list[FacilitySeries]:
        return list(self._store)

    def views(self, facility_id: str, *, now: int | None = None) -> FacilityViews:
        """Recent window, weekday and hourly averages of one facility.

        Raises
        ------
        KeyError
            *facility_id* is not tracked.
        """
        series = self._store.get(facility_id)
        if series is None:
            raise KeyError(facility_id)
        now = self._clock() if now is None else now
        tz = self._config.tzinfo
        return FacilityViews(
            facility_id=facility_id,
            recent=aggregate.recent_window(series.history, now_ms=now),
            weekday=aggregate.weekday_average(series.history, tz=tz),
            hourly=aggregate.hourly_average(series.history, now_ms=now, tz=tz),
        )

    async def predict(self, facility_id: str) -> PredictionResult | None:
        series = self._store.get(facility_id)
        if series is None:
            return None
        return await predict(
            self._predictor,
            series.config.name,
            series.history,
            now_ms=self._clock(),
            tz=self._config.tzinfo,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise PulseError("Monitor not initialized. Use 'async with PulseMonitor(...) as monitor:'")
        return self._transport

    async def _sample(self, config: FacilityConfig) -> Sample | SampleFailure:
        return await sample(
            config,
            self._require_transport(),
            vendor_url=self._config.vendor_url,
            default_capacity=self._config.default_capacity,
            clock=self._clock,
        )

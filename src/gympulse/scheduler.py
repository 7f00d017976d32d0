"""Periodic and on-demand refresh of every tracked facility.

The scheduler is either ``IDLE`` or ``RUNNING`` a batch. A trigger that
arrives while a batch runs never starts a second, overlapping batch: it
queues exactly one rerun that starts as soon as the current batch ends
(further triggers collapse into that same rerun) and resolves with the
rerun's result.

Sampling inside a batch is concurrent, but every ``store.append`` happens
on the event loop once the individual sample is back, and the history
document is written once, as the last step of the batch.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum

from gympulse._constants import REFRESH_INTERVAL_S, STALE_AFTER_S
from gympulse.exceptions import PulsePersistError
from gympulse.ingestion.sampler import now_ms
from gympulse.models.facility import FacilityConfig
from gympulse.models.sample import Sample, SampleFailure
from gympulse.state.store import SeriesStore

_logger = logging.getLogger(__name__)

SampleFn = Callable[[FacilityConfig], Awaitable[Sample | SampleFailure]]


class SchedulerState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass(slots=True)
class BatchResult:
    """Outcome of one refresh batch, keyed by facility id."""

    started_at: int
    accepted: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class RefreshScheduler:
    """Drive sampling batches for a :class:`SeriesStore`.

    Parameters
    ----------
    store : SeriesStore
        Owner of the histories; the only thing the scheduler mutates.
    sampler : callable
        ``async (FacilityConfig) -> Sample | SampleFailure``.
    interval : float
        Seconds between periodic batches.
    stale_after : float
        Seconds after which a facility's last sample counts as stale.
    persist : bool
        Write the history document after each batch that changed it.
    """

    def __init__(
        self,
        store: SeriesStore,
        sampler: SampleFn,
        *,
        interval: float = REFRESH_INTERVAL_S,
        stale_after: float = STALE_AFTER_S,
        persist: bool = False,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._sampler = sampler
        self._interval = interval
        self._stale_after_ms = int(stale_after * 1000)
        self._persist = persist
        self._clock = clock
        self._state = SchedulerState.IDLE
        self._rerun_pending = False
        self._rerun_future: asyncio.Future[BatchResult] | None = None
        self._dirty = False
        self._task: asyncio.Task[None] | None = None
        self._batch_count = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def batch_count(self) -> int:
        """Number of batches completed so far."""
        return self._batch_count

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    async def refresh(self) -> BatchResult:
        """Run a batch now, or join the rerun queued behind the current one."""
        if self._state is SchedulerState.RUNNING:
            self._rerun_pending = True
            if self._rerun_future is None:
                self._rerun_future = asyncio.get_running_loop().create_future()
            return await asyncio.shield(self._rerun_future)
        return await self._drain()

    def is_stale(self, now: int | None = None) -> bool:
        """Whether any tracked facility lacks a sample newer than ``stale_after``."""
        now = self._clock() if now is None else now
        return any(
            series.current is None or now - series.last_updated_at > self._stale_after_ms
            for series in self._store
        )

    async def check_staleness(self) -> BatchResult | None:
        """Refresh immediately when any facility is stale."""
        if not self.is_stale():
            return None
        _logger.info("Tracked data is stale, refreshing now")
        return await self.refresh()

    async def add_facility(self, config: FacilityConfig) -> Sample | SampleFailure:
        """Track *config* and sample only that facility right away.

        While a batch is running the write is left to the end of that
        batch, so the document is never rewritten mid-batch.
        """
        self._store.track(config)
        outcome = await self._sampler(config)
        if isinstance(outcome, Sample) and config.id in self._store:
            if self._store.append(config.id, outcome):
                self._dirty = True
                if self._state is SchedulerState.IDLE:
                    self._save_if_needed()
        return outcome

    # ------------------------------------------------------------------
    # Periodic loop
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Check staleness, then refresh every ``interval`` seconds in the background."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run_periodic(), name="gympulse-refresh")

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run_periodic(self) -> None:
        try:
            await self.check_staleness()
        except Exception:
            _logger.exception("Startup refresh failed")
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.refresh()
            except Exception:
                _logger.exception("Scheduled refresh failed")

    # ------------------------------------------------------------------
    # Batch execution
    # ------------------------------------------------------------------

    async def _drain(self) -> BatchResult:
        self._state = SchedulerState.RUNNING
        future: asyncio.Future[BatchResult] | None = None
        try:
            result = await self._run_batch()
            while self._rerun_pending:
                self._rerun_pending = False
                future, self._rerun_future = self._rerun_future, None
                result = await self._run_batch()
                if future is not None and not future.done():
                    future.set_result(result)
                future = None
            return result
        except BaseException as exc:
            pending = [f for f in (future, self._rerun_future) if f is not None and not f.done()]
            self._rerun_future = None
            self._rerun_pending = False
            for f in pending:
                f.set_exception(exc)
            raise
        finally:
            self._state = SchedulerState.IDLE

    async def _run_batch(self) -> BatchResult:
        configs = self._store.configs()
        result = BatchResult(started_at=self._clock())
        outcomes = await asyncio.gather(
            *(self._sampler(config) for config in configs),
            return_exceptions=True,
        )

        for config, outcome in zip(configs, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                _logger.error("Sampling %s raised unexpectedly", config.id, exc_info=outcome)
                result.failed[config.id] = repr(outcome)
            elif isinstance(outcome, SampleFailure):
                result.failed[config.id] = outcome.reason
            elif config.id not in self._store:
                # Untracked while the batch was in flight.
                continue
            elif self._store.append(config.id, outcome):
                result.accepted.append(config.id)
            else:
                result.skipped.append(config.id)

        if result.accepted:
            self._dirty = True
        self._save_if_needed()
        self._batch_count += 1
        _logger.info(
            "Refresh batch done: %d accepted, %d skipped, %d failed",
            len(result.accepted),
            len(result.skipped),
            len(result.failed),
        )
        return result

    def _save_if_needed(self) -> None:
        if not self._persist or not self._dirty:
            return
        try:
            self._store.save()
        except PulsePersistError as exc:
            _logger.warning("Could not persist history, will retry after next batch: %s", exc)
            return
        self._dirty = False

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from _fakes import make_facility

from gympulse.exceptions import PulsePersistError
from gympulse.models.facility import FacilityConfig, FacilitySeries
from gympulse.models.sample import Sample, SampleFailure
from gympulse.scheduler import RefreshScheduler, SchedulerState
from gympulse.state.document import JsonDocumentStore
from gympulse.state.store import SeriesStore

T0 = 1_750_410_840_000
MINUTE = 60_000


class _Clock:
    def __init__(self, start: int = T0) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now


class _SpyDocument(JsonDocumentStore):
    """Counts saves and can be told to fail the next ones."""

    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self.saves = 0
        self.fail_next = 0

    def save(self, histories):  # type: ignore[override]
        if self.fail_next:
            self.fail_next -= 1
            raise PulsePersistError("disk full", path=str(self.path))
        self.saves += 1
        super().save(histories)


def _store(*configs: FacilityConfig, document: JsonDocumentStore | None = None) -> SeriesStore:
    store = SeriesStore(document, dedup_window_ms=MINUTE, max_retain=5000)
    store.replace_all({c.id: FacilitySeries.empty(c) for c in configs})
    return store


def _counting_sampler(clock: _Clock, visitors: int = 50):
    calls: list[str] = []

    async def sampler(config: FacilityConfig) -> Sample | SampleFailure:
        calls.append(config.id)
        return Sample(timestamp=clock(), visitors=visitors)

    return sampler, calls


@pytest.mark.asyncio
async def test_single_batch_appends_every_facility() -> None:
    clock = _Clock()
    store = _store(make_facility("glattpark"), make_facility("oerlikon"))
    sampler, calls = _counting_sampler(clock)
    scheduler = RefreshScheduler(store, sampler, clock=clock)

    result = await scheduler.refresh()

    assert sorted(result.accepted) == ["glattpark", "oerlikon"]
    assert result.ok
    assert sorted(calls) == ["glattpark", "oerlikon"]
    assert store.get("glattpark").current.visitors == 50
    assert scheduler.state is SchedulerState.IDLE
    assert scheduler.batch_count == 1


@pytest.mark.asyncio
async def test_second_batch_within_window_is_skipped() -> None:
    clock = _Clock()
    store = _store(make_facility("glattpark"))
    sampler, _ = _counting_sampler(clock)
    scheduler = RefreshScheduler(store, sampler, clock=clock)

    await scheduler.refresh()
    clock.now += 10_000
    result = await scheduler.refresh()

    assert result.skipped == ["glattpark"]
    assert len(store.get("glattpark").history) == 1


@pytest.mark.asyncio
async def test_triggers_during_batch_collapse_into_one_rerun() -> None:
    clock = _Clock()
    store = _store(make_facility("glattpark"))
    gate = asyncio.Event()
    started = asyncio.Event()
    calls: list[int] = []

    async def sampler(config: FacilityConfig) -> Sample:
        calls.append(clock())
        started.set()
        await gate.wait()
        clock.now += 2 * MINUTE
        return Sample(timestamp=clock(), visitors=len(calls))

    scheduler = RefreshScheduler(store, sampler, clock=clock)

    first = asyncio.create_task(scheduler.refresh())
    await started.wait()
    assert scheduler.state is SchedulerState.RUNNING

    second = asyncio.create_task(scheduler.refresh())
    third = asyncio.create_task(scheduler.refresh())
    await asyncio.sleep(0)
    gate.set()

    results = await asyncio.gather(first, second, third)

    assert len(calls) == 2
    assert scheduler.batch_count == 2
    assert scheduler.state is SchedulerState.IDLE
    assert results[1] is results[2]
    assert results[0] is results[1]
    assert [s.visitors for s in store.get("glattpark").history] == [1, 2]


@pytest.mark.asyncio
async def test_failures_are_isolated_per_facility() -> None:
    clock = _Clock()
    store = _store(make_facility("glattpark"), make_facility("oerlikon"), make_facility("wallisellen"))

    async def sampler(config: FacilityConfig) -> Sample | SampleFailure:
        if config.id == "oerlikon":
            return SampleFailure(facility_id=config.id, reason="HTTP 503", status_code=503)
        if config.id == "wallisellen":
            raise RuntimeError("boom")
        return Sample(timestamp=clock(), visitors=42)

    scheduler = RefreshScheduler(store, sampler, clock=clock)
    result = await scheduler.refresh()

    assert result.accepted == ["glattpark"]
    assert result.failed["oerlikon"] == "HTTP 503"
    assert "boom" in result.failed["wallisellen"]
    assert not result.ok
    assert store.get("oerlikon").current is None
    assert store.get("glattpark").current.visitors == 42


@pytest.mark.asyncio
async def test_history_saved_once_per_batch(tmp_path: Path) -> None:
    clock = _Clock()
    document = _SpyDocument(tmp_path / "gym_history.json")
    store = _store(make_facility("glattpark"), make_facility("oerlikon"), document=document)
    sampler, _ = _counting_sampler(clock)
    scheduler = RefreshScheduler(store, sampler, persist=True, clock=clock)

    await scheduler.refresh()

    assert document.saves == 1
    assert set(document.load()) == {"glattpark", "oerlikon"}


@pytest.mark.asyncio
async def test_nothing_saved_without_persist(tmp_path: Path) -> None:
    clock = _Clock()
    document = _SpyDocument(tmp_path / "gym_history.json")
    sampler, _ = _counting_sampler(clock)
    scheduler = RefreshScheduler(_store(make_facility("glattpark"), document=document), sampler, clock=clock)

    await scheduler.refresh()

    assert document.saves == 0
    assert not document.exists()


@pytest.mark.asyncio
async def test_failed_save_is_retried_after_next_batch(tmp_path: Path) -> None:
    clock = _Clock()
    document = _SpyDocument(tmp_path / "gym_history.json")
    document.fail_next = 1
    store = _store(make_facility("glattpark"), document=document)
    sampler, _ = _counting_sampler(clock)
    scheduler = RefreshScheduler(store, sampler, persist=True, clock=clock)

    result = await scheduler.refresh()
    assert result.accepted == ["glattpark"]
    assert document.saves == 0

    # Nothing new is accepted, the pending write still happens.
    clock.now += 1_000
    await scheduler.refresh()
    assert document.saves == 1
    assert len(document.load()["glattpark"]) == 1


@pytest.mark.asyncio
async def test_staleness_triggers_refresh() -> None:
    clock = _Clock()
    store = _store(make_facility("glattpark"))
    sampler, calls = _counting_sampler(clock)
    scheduler = RefreshScheduler(store, sampler, stale_after=300, clock=clock)

    assert scheduler.is_stale()
    assert await scheduler.check_staleness() is not None
    assert len(calls) == 1

    clock.now += 299_000
    assert not scheduler.is_stale()
    assert await scheduler.check_staleness() is None
    assert len(calls) == 1

    clock.now += 2_000
    assert scheduler.is_stale()


@pytest.mark.asyncio
async def test_add_facility_samples_only_new_one(tmp_path: Path) -> None:
    clock = _Clock()
    document = _SpyDocument(tmp_path / "gym_history.json")
    store = _store(make_facility("glattpark"), document=document)
    sampler, calls = _counting_sampler(clock, visitors=12)
    scheduler = RefreshScheduler(store, sampler, persist=True, clock=clock)

    outcome = await scheduler.add_facility(make_facility("oerlikon"))

    assert isinstance(outcome, Sample)
    assert calls == ["oerlikon"]
    assert store.get("oerlikon").current.visitors == 12
    assert store.get("glattpark").current is None
    assert document.saves == 1


@pytest.mark.asyncio
async def test_periodic_loop_can_be_stopped() -> None:
    clock = _Clock()
    store = _store(make_facility("glattpark"))
    sampler, calls = _counting_sampler(clock)
    scheduler = RefreshScheduler(store, sampler, interval=3600, clock=clock)

    scheduler.start()
    assert scheduler.is_running
    for _ in range(10):
        await asyncio.sleep(0)
    await scheduler.stop()

    assert not scheduler.is_running
    assert calls == ["glattpark"]


@pytest.mark.asyncio
async def test_add_facility_during_batch_saves_with_the_batch(tmp_path: Path) -> None:
    clock = _Clock()
    document = _SpyDocument(tmp_path / "gym_history.json")
    store = _store(make_facility("glattpark"), document=document)
    gate = asyncio.Event()
    started = asyncio.Event()

    async def sampler(config: FacilityConfig) -> Sample:
        if config.id == "glattpark":
            started.set()
            await gate.wait()
        return Sample(timestamp=clock(), visitors=7)

    scheduler = RefreshScheduler(store, sampler, persist=True, clock=clock)
    batch = asyncio.create_task(scheduler.refresh())
    await started.wait()

    await scheduler.add_facility(make_facility("oerlikon"))
    assert store.get("oerlikon").current is not None
    assert document.saves == 0

    gate.set()
    await batch

    assert document.saves == 1
    assert set(document.load()) == {"glattpark", "oerlikon"}

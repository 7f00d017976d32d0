from __future__ import annotations

import json
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from pathlib import Path

import pytest
import pytest_asyncio
from _fakes import FakeTransport
from aiohttp import test_utils

from gympulse.__main__ import main
from gympulse.config import PulseConfig
from gympulse.monitor import PulseMonitor
from gympulse.server import create_app
from gympulse.session import OriginTag

# Wednesday, 2025-06-25 10:00 UTC, days after the last seed row.
NOW_MS = int(datetime(2025, 6, 25, 10, 0, tzinfo=UTC).timestamp() * 1000)


@pytest.fixture
def config(tmp_path: Path) -> PulseConfig:
    return PulseConfig(
        primary_url=None,
        data_path=str(tmp_path / "gym_history.json"),
        cache_path=str(tmp_path / "gym_pulse_cache.json"),
        time_zone="UTC",
    )


@pytest_asyncio.fixture
async def client(config: PulseConfig, transport: FakeTransport) -> AsyncIterator[test_utils.TestClient]:
    transport.texts["FP_Glattpark"] = "95"
    transport.texts["FP_Oerlikon"] = " 40\n"
    monitor = PulseMonitor(config, standalone=True, transport=transport, clock=lambda: NOW_MS)
    async with monitor:
        await monitor.resolve()
        async with test_utils.TestClient(test_utils.TestServer(create_app(monitor))) as test_client:
            yield test_client


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_e2e_seeded_service_lists_and_refreshes(client: test_utils.TestClient, config: PulseConfig) -> None:
    resp = await client.get("/health")
    assert resp.status == 200
    health = await resp.json()
    assert health["origin"] == OriginTag.CACHE
    assert health["facilities"] == 1

    resp = await client.get("/facilities")
    listing = await resp.json()
    assert [f["config"]["id"] for f in listing] == ["glattpark"]
    assert listing[0]["current"]["visitors"] == 65
    assert resp.headers["Access-Control-Allow-Origin"] == "*"
    # The seeded state is owned locally and written right away.
    assert Path(config.data_path).exists()

    resp = await client.post("/refresh")
    body = await resp.json()
    assert body == {"success": True, "accepted": ["glattpark"], "skipped": [], "failed": {}}

    resp = await client.get("/facilities")
    listing = await resp.json()
    assert listing[0]["current"] == {"timestamp": NOW_MS, "visitors": 95, "maxCapacity": 300}
    assert listing[0]["lastUpdatedAt"] == NOW_MS

    document = json.loads(Path(config.data_path).read_text(encoding="utf-8"))
    assert document["glattpark"][-1]["visitors"] == 95


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_e2e_add_facility(client: test_utils.TestClient) -> None:
    resp = await client.post(
        "/facilities",
        json={"id": "oerlikon", "name": "FP Oerlikon", "parkId": "698", "locationId": "32", "locationName": "FP_Oerlikon"},
    )
    assert resp.status == 200
    body = await resp.json()
    assert body["success"] is True
    assert body["facility"]["endpointParams"]["location_name"] == "FP_Oerlikon"
    assert body["current"]["visitors"] == 40

    resp = await client.get("/facilities")
    assert sorted(f["config"]["id"] for f in await resp.json()) == ["glattpark", "oerlikon"]


@pytest.mark.asyncio
@pytest.mark.e2e
@pytest.mark.parametrize("payload", ["not json", "[1, 2]", '{"id": "x"}'])
async def test_e2e_add_facility_rejects_bad_body(client: test_utils.TestClient, payload: str) -> None:
    resp = await client.post("/facilities", data=payload, headers={"Content-Type": "application/json"})

    assert resp.status == 400
    assert "error" in await resp.json()


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_e2e_aggregates(client: test_utils.TestClient) -> None:
    resp = await client.get("/facilities/glattpark/aggregates")
    assert resp.status == 200
    views = await resp.json()
    assert views["facilityId"] == "glattpark"
    assert len(views["weekday"]) == 7
    assert len(views["hourly"]) == 17
    # Nothing in the last day, so the last 20 seed samples are shown.
    assert len(views["recent"]) == 20

    resp = await client.get("/facilities/unknown/aggregates")
    assert resp.status == 404


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_e2e_failed_vendor_reported(client: test_utils.TestClient, transport: FakeTransport) -> None:
    transport.texts["FP_Glattpark"] = "closed"

    resp = await client.post("/refresh")
    body = await resp.json()

    assert body["accepted"] == []
    assert "glattpark" in body["failed"]


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_e2e_router_errors_carry_cors_headers(client: test_utils.TestClient) -> None:
    resp = await client.get("/no-such-route")

    assert resp.status == 404
    assert resp.headers["Access-Control-Allow-Origin"] == "*"


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_e2e_health_reports_session_age(client: test_utils.TestClient) -> None:
    health = await (await client.get("/health")).json()

    assert health["status"] == "healthy"
    assert health["sessionAge"] >= 0


def test_cli_rejects_bad_configuration(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GYMPULSE_MAX_RETAIN", "many")

    assert main(["refresh"]) == 2

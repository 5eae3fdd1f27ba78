from __future__ import annotations

import pytest
from aiohttp.test_utils import TestClient, TestServer

from monitoring.status_server import StatusServer
from monitoring.store import TargetStore
from tests.conftest import failed, make_target, succeeded


def _store() -> TargetStore:
    store = TargetStore()
    store.load([make_target("t1"), make_target("t2")])
    store.record_result("t1", succeeded())
    store.record_result("t1", failed())
    return store


@pytest.mark.asyncio
async def test_root_and_health() -> None:
    server = StatusServer(_store())

    async with TestClient(TestServer(server.app)) as client:
        root = await client.get("/")
        assert root.status == 200
        assert await root.text() == "OK"

        health = await client.get("/health")
        body = await health.json()

    assert body["status"] == "healthy"
    assert body["targets"] == 2
    assert body["active_targets"] == 2
    assert body["requests_served"] == 2
    assert "scheduler" not in body


@pytest.mark.asyncio
async def test_targets_show_live_status() -> None:
    server = StatusServer(_store())

    async with TestClient(TestServer(server.app)) as client:
        response = await client.get("/targets")
        body = await response.json()

    assert body["count"] == 2
    by_id = {t["id"]: t for t in body["targets"]}
    assert by_id["t1"]["last_status"] == "DOWN"
    assert by_id["t2"]["last_status"] == "UNKNOWN"


@pytest.mark.asyncio
async def test_history_newest_first_and_unknown_target() -> None:
    server = StatusServer(_store())

    async with TestClient(TestServer(server.app)) as client:
        response = await client.get("/targets/t1/history")
        body = await response.json()
        missing = await client.get("/targets/nope/history")
        missing_body = await missing.json()

    assert [entry["is_success"] for entry in body["history"]] == [False, True]
    assert body["target"]["id"] == "t1"
    assert missing.status == 404
    assert "nope" in missing_body["error"]

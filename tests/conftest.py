from __future__ import annotations

from collections import Counter
from collections.abc import Iterator
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from loguru import logger

from fleetview.fetcher import SnapshotFetcher
from fleetview.infra.http import HttpClient
from fleetview.models import Entity

GENERATED_AT = "2026-10-19T12:00:00+00:00"


def raw_agent(agent_id: str, *, name: str | None = None, status: str = "online", **extra: Any) -> dict[str, Any]:
    return {
        "id": agent_id,
        "machine_name": name or f"node-{agent_id}",
        "ip_address": f"10.0.0.{len(agent_id)}",
        "port": 11434,
        "runtime_version": "0.5.1",
        "status": status,
        "uptime_seconds": 3600,
        "cpu_usage": 12.5,
        "memory_usage": 40.0,
        "active_requests": 0,
        "total_requests": 10,
        "successful_requests": 9,
        "failed_requests": 1,
        "average_response_time_ms": 120,
        "last_seen": GENERATED_AT,
        "loaded_models": ["llama3:8b"],
        **extra,
    }


def make_entity(agent_id: str, **kwargs: Any) -> Entity:
    return Entity.from_dict(raw_agent(agent_id, **kwargs))


STATS = {
    "total_agents": 2,
    "online_agents": 1,
    "offline_agents": 1,
    "total_requests": 20,
    "successful_requests": 18,
    "failed_requests": 2,
    "total_active_requests": 0,
    "average_response_time_ms": 120,
}


class FakeCoordinator:
    """In-process coordinator with switchable failure modes."""

    def __init__(self) -> None:
        self.agents: list[dict[str, Any]] = [
            raw_agent("a", name="alpha"),
            raw_agent("b", name="bravo", status="offline"),
        ]
        self.stats: dict[str, Any] = dict(STATS)
        self.history: list[dict[str, Any]] = [
            {"minute": "2026-10-19T11:58:00+00:00", "success": 4, "error": 1},
            {"minute": "2026-10-19T11:59:00+00:00", "success": 6, "error": 0},
        ]
        self.overview_status = 200
        self.legacy_status = 200
        self.overview_body: Any = None
        self.mutation_status = 200
        self.metrics: dict[str, list[dict[str, Any]]] = {}
        self.coordinator_logs: list[dict[str, Any]] = []
        self.agent_logs: dict[str, list[dict[str, Any]]] = {}
        self.hits: Counter[str] = Counter()
        self.last_query: dict[str, dict[str, str]] = {}
        self.last_body: dict[str, Any] = {}

    def _track(self, name: str, request: web.Request) -> None:
        self.hits[name] += 1
        self.last_query[name] = dict(request.query)

    def app(self) -> web.Application:
        app = web.Application()

        async def overview(request: web.Request) -> web.Response:
            self._track("overview", request)
            if self.overview_status != 200:
                return web.Response(status=self.overview_status, text="overview unavailable")
            if self.overview_body is not None:
                return web.json_response(self.overview_body)
            return web.json_response({
                "agents": self.agents,
                "stats": self.stats,
                "history": self.history,
                "generated_at": GENERATED_AT,
                "generation_time_ms": 12,
            })

        def legacy(name: str, payload: Any):
            async def handler(request: web.Request) -> web.Response:
                self._track(name, request)
                if self.legacy_status != 200:
                    return web.Response(status=self.legacy_status, text="legacy failure")
                return web.json_response(payload())
            return handler

        async def metrics(request: web.Request) -> web.Response:
            self._track("metrics", request)
            return web.json_response(self.metrics.get(request.match_info["id"], []))

        async def coordinator_logs(request: web.Request) -> web.Response:
            self._track("coordinator_logs", request)
            return web.json_response({"entries": self.coordinator_logs, "path": "/var/log/coordinator.log"})

        async def agent_logs(request: web.Request) -> web.Response:
            self._track("agent_logs", request)
            entries = self.agent_logs.get(request.match_info["id"])
            if entries is None:
                return web.Response(status=404, text="no logs")
            return web.json_response({"entries": entries})

        async def settings(request: web.Request) -> web.Response:
            self._track("settings", request)
            if self.mutation_status != 200:
                return web.Response(status=self.mutation_status, text="rejected")
            self.last_body = await request.json()
            return web.json_response({"id": request.match_info["id"], **self.last_body})

        async def delete(request: web.Request) -> web.Response:
            self._track("delete", request)
            if self.mutation_status != 200:
                return web.Response(status=self.mutation_status, text="rejected")
            return web.Response(status=204)

        async def disconnect(request: web.Request) -> web.Response:
            self._track("disconnect", request)
            if self.mutation_status != 200:
                return web.Response(status=self.mutation_status, text="rejected")
            return web.Response(status=204)

        app.router.add_get("/api/dashboard/overview", overview)
        app.router.add_get("/api/dashboard/agents", legacy("legacy_agents", lambda: self.agents))
        app.router.add_get("/api/dashboard/stats", legacy("legacy_stats", lambda: self.stats))
        app.router.add_get("/api/dashboard/request-history", legacy("legacy_history", lambda: self.history))
        app.router.add_get("/api/dashboard/metrics/{id}", metrics)
        app.router.add_get("/api/dashboard/logs/coordinator", coordinator_logs)
        app.router.add_get("/api/dashboard/logs/agents/{id}", agent_logs)
        app.router.add_put("/api/agents/{id}/settings", settings)
        app.router.add_delete("/api/agents/{id}", delete)
        app.router.add_post("/api/agents/{id}/disconnect", disconnect)
        return app


@pytest.fixture
def coordinator() -> FakeCoordinator:
    return FakeCoordinator()


@pytest.fixture
async def server(coordinator: FakeCoordinator):
    srv = TestServer(coordinator.app())
    await srv.start_server()
    yield srv
    await srv.close()


@pytest.fixture
def base_url(server: TestServer) -> str:
    return f"http://{server.host}:{server.port}"


@pytest.fixture
async def http(base_url: str):
    async with HttpClient(base_url) as client:
        yield client


@pytest.fixture
def fetcher(http: HttpClient) -> SnapshotFetcher:
    return SnapshotFetcher(http)


@pytest.fixture
def log_records() -> Iterator[list[dict[str, Any]]]:
    """Capture fleetview log records at WARNING and above."""
    records: list[dict[str, Any]] = []
    logger.enable("fleetview")
    hid = logger.add(
        lambda message: records.append({
            "level": message.record["level"].name,
            "message": message.record["message"],
            "extra": dict(message.record["extra"]),
        }),
        level="WARNING",
        filter="fleetview",
    )
    yield records
    logger.remove(hid)
    logger.disable("fleetview")

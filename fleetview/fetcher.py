"""Snapshot fetcher.

Retrieves fleet snapshots from the coordinator, preferring the consolidated
overview endpoint and degrading to the three legacy endpoints when the
overview is not deployed (HTTP 404). Also wraps the per-entity metrics,
log and mutation endpoints used by the detail view.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from loguru import logger

from .errors import HttpError
from .infra.http import HttpClient
from .models import LogBatch, MetricSample, Snapshot


@dataclass(frozen=True, slots=True)
class Endpoints:
    """Coordinator paths. Entity-scoped paths take an ``{id}`` placeholder."""

    overview: str = "/api/dashboard/overview"
    legacy_agents: str = "/api/dashboard/agents"
    legacy_stats: str = "/api/dashboard/stats"
    legacy_history: str = "/api/dashboard/request-history"
    metrics: str = "/api/dashboard/metrics/{id}"
    coordinator_logs: str = "/api/dashboard/logs/coordinator"
    entity_logs: str = "/api/dashboard/logs/agents/{id}"
    settings: str = "/api/agents/{id}/settings"
    entity: str = "/api/agents/{id}"
    disconnect: str = "/api/agents/{id}/disconnect"

    def scoped(self, template: str, entity_id: str) -> str:
        return template.format(id=quote(entity_id, safe=""))


class SnapshotFetcher:
    """Capability-negotiating fetcher for fleet snapshots.

    The fallback is tried on every cycle for as long as the overview answers
    404. The warning about it is logged once per outage episode: the flag
    resets as soon as the overview answers again.
    """

    def __init__(self, http: HttpClient, endpoints: Endpoints | None = None) -> None:
        self._http = http
        self._endpoints = endpoints or Endpoints()
        self._fallback_notified = False
        self._log = logger.bind(component="fetcher")

    @property
    def endpoints(self) -> Endpoints:
        return self._endpoints

    @property
    def fallback_notified(self) -> bool:
        return self._fallback_notified

    async def fetch_snapshot(self) -> Snapshot:
        """Fetch one snapshot.

        Raises:
            NetworkError: The request never completed.
            HttpError: The coordinator answered with a failure other than an
                overview 404, or a legacy endpoint failed.
            ParseError: A response body was malformed.
        """
        try:
            raw = await self._http.get(self._endpoints.overview)
        except HttpError as e:
            if not e.not_found:
                raise
            snapshot = await self._fetch_legacy()
            if not self._fallback_notified:
                self._log.warning(
                    "Overview endpoint not available; falling back to legacy endpoints"
                )
                self._fallback_notified = True
            return snapshot

        if self._fallback_notified:
            self._log.info("Overview endpoint recovered")
        self._fallback_notified = False
        return Snapshot.from_overview(raw)

    async def _fetch_legacy(self) -> Snapshot:
        agents, stats, history = await asyncio.gather(
            self._http.get(self._endpoints.legacy_agents),
            self._http.get(self._endpoints.legacy_stats),
            self._http.get(self._endpoints.legacy_history),
        )
        return Snapshot.from_legacy(agents, stats, history)

    # ─── Detail view ─────────────────────────────────────────────────

    async def fetch_metrics(self, entity_id: str) -> tuple[MetricSample, ...]:
        raw = await self._http.get(self._endpoints.scoped(self._endpoints.metrics, entity_id))
        if not isinstance(raw, Sequence) or isinstance(raw, str):
            return ()
        samples = (MetricSample.from_dict(item) for item in raw)
        return tuple(s for s in samples if s is not None)

    async def fetch_coordinator_logs(self, limit: int) -> LogBatch:
        raw = await self._http.get(self._endpoints.coordinator_logs, params={"limit": limit})
        return LogBatch.from_dict(raw)

    async def fetch_entity_logs(self, entity_id: str, limit: int) -> LogBatch:
        path = self._endpoints.scoped(self._endpoints.entity_logs, entity_id)
        raw = await self._http.get(path, params={"limit": limit})
        return LogBatch.from_dict(raw)

    # ─── Mutations ───────────────────────────────────────────────────

    async def update_settings(
        self,
        entity_id: str,
        *,
        custom_name: str | None,
        tags: Sequence[str],
        notes: str | None,
    ) -> Mapping[str, Any]:
        payload = {
            "custom_name": (custom_name or "").strip() or None,
            "tags": [t.strip() for t in tags if t.strip()],
            "notes": (notes or "").strip() or None,
        }
        path = self._endpoints.scoped(self._endpoints.settings, entity_id)
        raw = await self._http.put(path, json=payload)
        return raw if isinstance(raw, Mapping) and raw else payload

    async def delete_entity(self, entity_id: str) -> None:
        await self._http.delete(self._endpoints.scoped(self._endpoints.entity, entity_id))

    async def disconnect_entity(self, entity_id: str) -> None:
        await self._http.post(self._endpoints.scoped(self._endpoints.disconnect, entity_id))

"""Fleet data model.

Immutable records decoded from coordinator payloads. Every record is a
frozen dataclass; a new snapshot replaces all of them wholesale.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import Any, Literal

from fleetview.errors import ParseError

type Status = Literal["online", "offline"]
type RawPayload = Mapping[str, Any]


# =============================================================================
# Coercion helpers
# =============================================================================


def as_number(value: Any) -> float | None:
    """Return value as a finite float, or None for anything non-numeric."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    if not math.isfinite(value):
        return None
    return value


def _as_int(value: Any) -> int:
    number = as_number(value)
    return int(number) if number is not None else 0


def _as_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _as_str_list(value: Any) -> tuple[str, ...]:
    if not isinstance(value, Sequence) or isinstance(value, str):
        return ()
    return tuple(item.strip() for item in value if isinstance(item, str) and item.strip())


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp, returning None when it is missing or invalid."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


# =============================================================================
# Entity
# =============================================================================


@dataclass(frozen=True, slots=True)
class GpuDevice:
    model: str
    count: int = 1


@dataclass(frozen=True, slots=True)
class Entity:
    """One monitored worker."""

    id: str
    machine_name: str = ""
    custom_name: str | None = None
    ip_address: str = ""
    port: int | None = None
    runtime_version: str | None = None
    status: Status = "offline"
    uptime_seconds: float | None = None
    cpu_usage: float | None = None
    memory_usage: float | None = None
    gpu_usage: float | None = None
    gpu_memory_usage: float | None = None
    gpu_devices: tuple[GpuDevice, ...] = ()
    gpu_count: int | None = None
    gpu_model: str | None = None
    gpu_model_name: str | None = None
    gpu_compute_capability: str | None = None
    gpu_capability_score: float | None = None
    active_requests: int = 0
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    average_response_time_ms: float | None = None
    registered_at: str | None = None
    last_seen: str | None = None
    metrics_last_updated_at: str | None = None
    metrics_stale: bool = False
    loaded_models: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    notes: str | None = None

    @classmethod
    def from_dict(cls, raw: RawPayload) -> Entity:
        if not isinstance(raw, Mapping):
            raise ParseError(f"entity must be an object, got {type(raw).__name__}")
        entity_id = raw.get("id")
        if not isinstance(entity_id, str) or not entity_id:
            raise ParseError("entity is missing a string 'id'")

        devices = raw.get("gpu_devices")
        gpu_devices = tuple(
            GpuDevice(model=str(d.get("model") or ""), count=_as_int(d.get("count")))
            for d in (devices if isinstance(devices, list) else [])
            if isinstance(d, Mapping)
        )
        port = as_number(raw.get("port", raw.get("ollama_port")))
        gpu_count = as_number(raw.get("gpu_count"))

        return cls(
            id=entity_id,
            machine_name=_as_str(raw.get("machine_name")) or "",
            custom_name=_as_str(raw.get("custom_name")),
            ip_address=_as_str(raw.get("ip_address")) or "",
            port=int(port) if port is not None else None,
            runtime_version=_as_str(raw.get("runtime_version", raw.get("ollama_version"))),
            status="online" if raw.get("status") == "online" else "offline",
            uptime_seconds=as_number(raw.get("uptime_seconds")),
            cpu_usage=as_number(raw.get("cpu_usage")),
            memory_usage=as_number(raw.get("memory_usage")),
            gpu_usage=as_number(raw.get("gpu_usage")),
            gpu_memory_usage=as_number(raw.get("gpu_memory_usage")),
            gpu_devices=gpu_devices,
            gpu_count=int(gpu_count) if gpu_count is not None else None,
            gpu_model=_as_str(raw.get("gpu_model")),
            gpu_model_name=_as_str(raw.get("gpu_model_name")),
            gpu_compute_capability=_as_str(raw.get("gpu_compute_capability")),
            gpu_capability_score=as_number(raw.get("gpu_capability_score")),
            active_requests=_as_int(raw.get("active_requests")),
            total_requests=_as_int(raw.get("total_requests")),
            successful_requests=_as_int(raw.get("successful_requests")),
            failed_requests=_as_int(raw.get("failed_requests")),
            average_response_time_ms=as_number(raw.get("average_response_time_ms")),
            registered_at=_as_str(raw.get("registered_at")),
            last_seen=_as_str(raw.get("last_seen")),
            metrics_last_updated_at=_as_str(raw.get("metrics_last_updated_at")),
            metrics_stale=bool(raw.get("metrics_stale")),
            loaded_models=_as_str_list(raw.get("loaded_models")),
            tags=_as_str_list(raw.get("tags")),
            notes=_as_str(raw.get("notes")),
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["gpu_devices"] = [asdict(d) for d in self.gpu_devices]
        data["loaded_models"] = list(self.loaded_models)
        data["tags"] = list(self.tags)
        return data

    def merged(self, raw: RawPayload) -> Entity:
        """Return a copy with the fields present in raw applied. Identity never changes."""
        return Entity.from_dict({**self.to_dict(), **raw, "id": self.id})

    def with_status(self, status: Status) -> Entity:
        return replace(self, status=status)

    @property
    def display_name(self) -> str:
        custom = (self.custom_name or "").strip()
        if custom:
            return custom
        return self.machine_name or "-"

    @property
    def is_online(self) -> bool:
        return self.status == "online"

    @property
    def gpu_total(self) -> int:
        from_devices = sum(d.count for d in self.gpu_devices)
        return from_devices or (self.gpu_count or 0)

    @property
    def primary_gpu_model(self) -> str | None:
        if self.gpu_devices and self.gpu_devices[0].model:
            return self.gpu_devices[0].model
        return self.gpu_model


# =============================================================================
# Aggregates
# =============================================================================


@dataclass(frozen=True, slots=True)
class FleetStats:
    total_agents: int = 0
    online_agents: int = 0
    offline_agents: int = 0
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_active_requests: int = 0
    average_response_time_ms: float | None = None
    average_gpu_usage: float | None = None
    average_gpu_memory_usage: float | None = None
    last_metrics_updated_at: str | None = None
    last_registered_at: str | None = None
    last_seen_at: str | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> FleetStats | None:
        if not isinstance(raw, Mapping):
            return None
        return cls(
            total_agents=_as_int(raw.get("total_agents")),
            online_agents=_as_int(raw.get("online_agents")),
            offline_agents=_as_int(raw.get("offline_agents")),
            total_requests=_as_int(raw.get("total_requests")),
            successful_requests=_as_int(raw.get("successful_requests")),
            failed_requests=_as_int(raw.get("failed_requests")),
            total_active_requests=_as_int(raw.get("total_active_requests")),
            average_response_time_ms=as_number(raw.get("average_response_time_ms")),
            average_gpu_usage=as_number(raw.get("average_gpu_usage")),
            average_gpu_memory_usage=as_number(raw.get("average_gpu_memory_usage")),
            last_metrics_updated_at=_as_str(raw.get("last_metrics_updated_at")),
            last_registered_at=_as_str(raw.get("last_registered_at")),
            last_seen_at=_as_str(raw.get("last_seen_at")),
        )


@dataclass(frozen=True, slots=True)
class HistoryPoint:
    """Request counts for one minute bucket."""

    minute: str
    success: int = 0
    error: int = 0

    @classmethod
    def from_dict(cls, raw: Any) -> HistoryPoint | None:
        if not isinstance(raw, Mapping):
            return None
        return cls(
            minute=_as_str(raw.get("minute")) or "",
            success=_as_int(raw.get("success")),
            error=_as_int(raw.get("error")),
        )


def parse_entities(raw: Any) -> tuple[Entity, ...]:
    if not isinstance(raw, list):
        return ()
    return tuple(Entity.from_dict(item) for item in raw)


def parse_history(raw: Any) -> tuple[HistoryPoint, ...]:
    if not isinstance(raw, list):
        return ()
    return tuple(p for p in (HistoryPoint.from_dict(item) for item in raw) if p is not None)


# =============================================================================
# Snapshot
# =============================================================================


@dataclass(frozen=True, slots=True)
class Snapshot:
    """One complete fetch result. Superseded entirely by the next one."""

    entities: tuple[Entity, ...] = ()
    stats: FleetStats | None = None
    history: tuple[HistoryPoint, ...] = ()
    generated_at: datetime | None = None
    generation_time_ms: float | None = None
    used_fallback: bool = False

    @classmethod
    def from_overview(cls, raw: Any) -> Snapshot:
        if not isinstance(raw, Mapping):
            raise ParseError(f"overview must be an object, got {type(raw).__name__}")
        return cls(
            entities=parse_entities(raw.get("agents")),
            stats=FleetStats.from_dict(raw.get("stats")),
            history=parse_history(raw.get("history")),
            generated_at=parse_timestamp(raw.get("generated_at")),
            generation_time_ms=as_number(raw.get("generation_time_ms")),
        )

    @classmethod
    def from_legacy(cls, agents: Any, stats: Any, history: Any) -> Snapshot:
        return cls(
            entities=parse_entities(agents),
            stats=FleetStats.from_dict(stats),
            history=parse_history(history),
            used_fallback=True,
        )


# =============================================================================
# Detail view records
# =============================================================================


@dataclass(frozen=True, slots=True)
class MetricSample:
    timestamp: str
    cpu_usage: float | None = None
    memory_usage: float | None = None
    gpu_usage: float | None = None
    gpu_memory_usage: float | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> MetricSample | None:
        if not isinstance(raw, Mapping):
            return None
        return cls(
            timestamp=_as_str(raw.get("timestamp")) or "",
            cpu_usage=as_number(raw.get("cpu_usage")),
            memory_usage=as_number(raw.get("memory_usage")),
            gpu_usage=as_number(raw.get("gpu_usage")),
            gpu_memory_usage=as_number(raw.get("gpu_memory_usage")),
        )


@dataclass(frozen=True, slots=True)
class LogEntry:
    timestamp: str | None = None
    level: str = "info"
    target: str | None = None
    message: str | None = None
    fields: dict[str, Any] = field(default_factory=dict)
    file: str | None = None
    line: int | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> LogEntry | None:
        if not isinstance(raw, Mapping):
            return None
        fields = raw.get("fields")
        line = as_number(raw.get("line"))
        return cls(
            timestamp=_as_str(raw.get("timestamp")),
            level=_as_str(raw.get("level")) or "info",
            target=str(raw["target"]) if raw.get("target") else None,
            message=_as_str(raw.get("message")),
            fields=dict(fields) if isinstance(fields, Mapping) else {},
            file=_as_str(raw.get("file")),
            line=int(line) if line is not None else None,
        )


@dataclass(frozen=True, slots=True)
class LogBatch:
    entries: tuple[LogEntry, ...] = ()
    path: str | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> LogBatch:
        if not isinstance(raw, Mapping):
            raise ParseError(f"log payload must be an object, got {type(raw).__name__}")
        entries = raw.get("entries")
        parsed = (LogEntry.from_dict(e) for e in (entries if isinstance(entries, list) else []))
        return cls(
            entries=tuple(e for e in parsed if e is not None),
            path=_as_str(raw.get("path")),
        )

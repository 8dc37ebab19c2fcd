"""Row content and content signatures for the fleet table."""

from __future__ import annotations

from collections.abc import Iterable

from rich.text import Text

from fleetview.models import Entity

from .dom import RowNode
from .format import format_average, format_duration, format_percentage, format_timestamp

COLUMNS: tuple[str, ...] = (
    "Name",
    "Address",
    "Status",
    "Uptime",
    "CPU",
    "Memory",
    "Active",
    "Requests",
    "Avg",
    "Models",
    "Last seen",
)

# Column header -> sort key, for the sortable columns.
SORTABLE_COLUMNS: dict[str, str] = {
    "Name": "name",
    "Address": "address",
    "Status": "status",
    "Uptime": "uptime",
    "Requests": "total",
}

OFFLINE_CLASS = "offline"


def _field(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def entity_signature(entity: Entity) -> str:
    """Ordered join of every field that affects the rendered row."""
    return "|".join(
        _field(v)
        for v in (
            entity.machine_name,
            entity.custom_name,
            entity.ip_address,
            entity.port,
            entity.runtime_version,
            entity.status,
            entity.uptime_seconds,
            entity.cpu_usage,
            entity.memory_usage,
            entity.gpu_usage,
            entity.gpu_memory_usage,
            entity.gpu_capability_score,
            entity.primary_gpu_model,
            entity.gpu_total,
            entity.gpu_model_name,
            entity.gpu_compute_capability,
            entity.active_requests,
            entity.total_requests,
            entity.successful_requests,
            entity.failed_requests,
            entity.average_response_time_ms,
            entity.last_seen,
            entity.metrics_last_updated_at,
            entity.metrics_stale,
            "|".join(entity.loaded_models),
        )
    )


def page_signature(page: Iterable[Entity]) -> str:
    return "|".join(f"{e.id}:{entity_signature(e)}" for e in page)


def _two_line(title: str, sub: str | None = None, *, title_style: str = "") -> Text:
    text = Text(title, style=title_style)
    if sub:
        text.append("\n")
        text.append(sub, style="dim")
    return text


def _gpu_label(entity: Entity) -> str:
    model = entity.primary_gpu_model
    if not model:
        label = "GPU info pending"
    elif entity.gpu_total > 1:
        label = f"{model} (x{entity.gpu_total})"
    else:
        label = model
    if entity.gpu_capability_score is not None:
        label += f" / score {entity.gpu_capability_score:g}"
    return label


def build_cells(entity: Entity) -> tuple[Text, ...]:
    secondary = entity.machine_name if entity.custom_name else (
        entity.runtime_version or entity.machine_name
    )
    status = (
        Text("Online", style="bold green") if entity.is_online else Text("Offline", style="bold red")
    )

    gpu = _gpu_label(entity)
    cpu_sub = f"GPU {format_percentage(entity.gpu_usage)} ({gpu})" if entity.gpu_usage is not None else gpu
    mem_sub = (
        f"GPU {format_percentage(entity.gpu_memory_usage)} ({gpu})"
        if entity.gpu_memory_usage is not None
        else gpu
    )

    models = entity.loaded_models
    extra = ", ".join(models[1:4])
    remainder = max(0, len(models) - 4)
    model_sub = f"{extra} +{remainder} more" if extra and remainder else extra

    seen_sub = format_timestamp(entity.metrics_last_updated_at)
    if entity.metrics_stale:
        seen_sub = f"STALE {seen_sub}"

    return (
        _two_line(entity.display_name, secondary or "-", title_style="bold"),
        _two_line(entity.ip_address or "-", f"Port {entity.port if entity.port is not None else '-'}"),
        status,
        Text(format_duration(entity.uptime_seconds)),
        _two_line(format_percentage(entity.cpu_usage), cpu_sub),
        _two_line(format_percentage(entity.memory_usage), mem_sub),
        Text(str(entity.active_requests)),
        _two_line(
            str(entity.total_requests),
            f"ok {entity.successful_requests} / fail {entity.failed_requests}",
        ),
        Text(format_average(entity.average_response_time_ms)),
        _two_line(models[0] if models else "-", model_sub or None),
        _two_line(format_timestamp(entity.last_seen), seen_sub),
    )


def build_row(node: RowNode, entity: Entity, selected: bool) -> RowNode:
    """Rebuild a row's content in place."""
    node.key = entity.id
    node.set_cells(build_cells(entity))
    sync_row(node, entity, selected)
    return node


def sync_row(node: RowNode, entity: Entity, selected: bool) -> None:
    """Cheap path: only the checkbox and offline styling."""
    node.set_checked(selected)
    node.toggle_class(OFFLINE_CLASS, not entity.is_online)

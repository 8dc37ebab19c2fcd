"""Export the filtered entity list to JSON or CSV."""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Literal

from loguru import logger

from .models import Entity

type ExportFormat = Literal["json", "csv"]

CSV_HEADER: tuple[str, ...] = (
    "id",
    "display_name",
    "machine_name",
    "ip_address",
    "runtime_version",
    "status",
    "cpu_usage",
    "memory_usage",
    "gpu_usage",
    "gpu_memory_usage",
    "registered_at",
    "last_seen",
    "loaded_models",
    "tags",
)


def to_json(entities: Sequence[Entity]) -> str:
    return json.dumps([e.to_dict() for e in entities], indent=2)


def _csv_value(value: Any) -> str:
    match value:
        case None:
            return ""
        case tuple() | list():
            return "|".join(str(v) for v in value)
        case _:
            return str(value)


def csv_row(entity: Entity) -> list[str]:
    values = {
        "id": entity.id,
        "display_name": entity.display_name,
        "machine_name": entity.machine_name,
        "ip_address": entity.ip_address,
        "runtime_version": entity.runtime_version,
        "status": entity.status,
        "cpu_usage": entity.cpu_usage,
        "memory_usage": entity.memory_usage,
        "gpu_usage": entity.gpu_usage,
        "gpu_memory_usage": entity.gpu_memory_usage,
        "registered_at": entity.registered_at,
        "last_seen": entity.last_seen,
        "loaded_models": entity.loaded_models,
        "tags": entity.tags,
    }
    return [_csv_value(values[column]) for column in CSV_HEADER]


def to_csv(entities: Sequence[Entity]) -> str:
    """Every value quoted; embedded quotes doubled."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    writer.writerows(csv_row(e) for e in entities)
    return buffer.getvalue()


def write_export(
    path: str | Path,
    entities: Sequence[Entity],
    fmt: ExportFormat | None = None,
) -> Path:
    """Write ``entities`` to ``path``. The format defaults to the file suffix."""
    target = Path(path)
    match fmt or target.suffix.lstrip(".").lower():
        case "json":
            content = to_json(entities)
        case "csv":
            content = to_csv(entities)
        case other:
            raise ValueError(f"Unsupported export format '{other}'. Valid: json, csv")

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    logger.bind(component="export").info(
        "Exported {n} agents to {path}", n=len(entities), path=str(target)
    )
    return target

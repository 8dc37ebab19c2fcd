"""Log viewer: coordinator log feed and per-entity log feeds."""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from loguru import logger
from rich.text import Text

from .errors import FleetError
from .fetcher import SnapshotFetcher
from .models import Entity, LogBatch, LogEntry
from .view.format import format_log_timestamp

LOG_ENTRY_LIMIT = 200

LEVEL_STYLES: dict[str, str] = {
    "trace": "bright_black",
    "debug": "cyan",
    "info": "green",
    "warn": "yellow",
    "warning": "yellow",
    "error": "bold red",
}


@dataclass(slots=True)
class LogFeed:
    """One log list and its loading state."""

    entries: tuple[LogEntry, ...] = ()
    path: str | None = None
    loading: bool = False
    error: str | None = None
    fetched: bool = False
    source_id: str | None = None

    def reset(self) -> None:
        self.entries = ()
        self.path = None
        self.loading = False
        self.error = None
        self.fetched = False
        self.source_id = None

    def apply(self, batch: LogBatch) -> None:
        self.entries = batch.entries
        self.path = batch.path
        self.error = None
        self.fetched = True

    def status_line(self, empty_message: str) -> str:
        if self.loading:
            return "Loading..."
        if self.error:
            return self.error
        if self.entries:
            return f"Showing latest {len(self.entries)}"
        return empty_message


# =============================================================================
# Formatting
# =============================================================================


def summarize_field_value(value: Any) -> str:
    match value:
        case None:
            return "null"
        case bool():
            return "true" if value else "false"
        case str():
            return value
        case int() | float():
            return str(value)
        case _:
            try:
                return json.dumps(value)
            except (TypeError, ValueError):
                return str(value)


def format_log_fields(fields: Mapping[str, Any]) -> str:
    return " · ".join(f"{k}={summarize_field_value(v)}" for k, v in fields.items())


def render_log_line(entry: LogEntry) -> Text:
    level = entry.level.lower()
    context = format_log_fields(entry.fields)
    message = entry.message or context or "-"

    text = Text()
    text.append(format_log_timestamp(entry.timestamp), style="bright_black")
    text.append(" ")
    text.append(f"{level.upper():<5}", style=LEVEL_STYLES.get(level, "white"))
    text.append(" ")
    text.append(message)

    meta = [entry.target or "-"]
    if entry.file:
        meta.append(f"{entry.file}:{entry.line}" if entry.line is not None else entry.file)
    if context and entry.message:
        meta.append(context)
    text.append(f"  [{'  '.join(meta)}]", style="dim")
    return text


def render_feed(feed: LogFeed, empty_message: str) -> Text:
    if feed.loading:
        return Text("Loading...", style="dim italic")
    if feed.error:
        return Text(feed.error, style="red")
    if not feed.entries:
        return Text(empty_message, style="dim italic")
    return Text("\n").join(render_log_line(e) for e in reversed(feed.entries))


async def load_feed(
    feed: LogFeed,
    fetch: Callable[[], Awaitable[LogBatch]],
    *,
    source_id: str | None = None,
    keep_fetched_on_error: bool = True,
) -> None:
    """Fill ``feed`` from ``fetch()``, recording the failure on the feed itself."""
    feed.loading = True
    feed.error = None
    feed.source_id = source_id
    try:
        feed.apply(await fetch())
    except FleetError as e:
        feed.error = f"Could not load logs: {e}"
        if not keep_fetched_on_error:
            feed.fetched = False
        logger.bind(component="logs").warning(
            "Log fetch failed for {source}: {error}", source=source_id or "coordinator", error=e
        )
    finally:
        feed.loading = False


# =============================================================================
# Viewer
# =============================================================================


class LogViewer:
    """Coordinator feed plus one entity feed chosen from the fleet."""

    def __init__(self, fetcher: SnapshotFetcher, *, limit: int = LOG_ENTRY_LIMIT) -> None:
        self._fetcher = fetcher
        self._limit = limit
        self.coordinator = LogFeed()
        self.agent = LogFeed()
        self.selected_entity_id: str | None = None
        self.options: tuple[tuple[str, str], ...] = ()

    async def refresh_coordinator(self, *, skip_if_fetched: bool = False) -> None:
        if skip_if_fetched and self.coordinator.fetched:
            return
        await load_feed(self.coordinator, lambda: self._fetcher.fetch_coordinator_logs(self._limit))

    async def refresh_agent(self, *, skip_if_fetched: bool = False) -> None:
        entity_id = self.selected_entity_id
        if entity_id is None:
            self.agent.reset()
            return
        if skip_if_fetched and self.agent.fetched:
            return
        await load_feed(
            self.agent,
            lambda: self._fetcher.fetch_entity_logs(entity_id, self._limit),
            source_id=entity_id,
            keep_fetched_on_error=False,
        )

    async def refresh(self, *, force: bool = False) -> None:
        await self.refresh_coordinator(skip_if_fetched=not force)
        await self.refresh_agent(skip_if_fetched=not force)

    def select(self, entity_id: str | None) -> None:
        self.selected_entity_id = entity_id or None
        self.agent.reset()

    def sync_options(self, entities: Sequence[Entity]) -> tuple[tuple[str, str], ...]:
        """Rebuild the entity selector.

        The previous choice is kept while it still exists; otherwise the first
        online entity is chosen, then the first entity at all.
        """
        self.options = tuple(
            (
                e.id,
                f"{e.machine_name.strip() or e.id[:8]} ({'online' if e.is_online else 'offline'})",
            )
            for e in entities
        )
        previous = self.selected_entity_id
        if previous and any(e.id == previous for e in entities):
            return self.options
        if entities:
            fallback = next((e for e in entities if e.is_online), entities[0])
            self.select(fallback.id)
        else:
            self.select(None)
        return self.options

    def agent_empty_message(self, has_entities: bool) -> str:
        if self.selected_entity_id:
            return "No logs yet"
        return "Select an agent" if has_entities else "No agents registered"

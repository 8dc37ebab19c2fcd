"""Dashboard layout.

Assembles the controller's state into one rich renderable: header with
connection status and the performance indicator, error banner, stats tiles,
request-history chart, the fleet table, pagination, and the optional detail
and log panels.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from fleetview.detail import SERIES_LABELS
from fleetview.logs import render_feed
from fleetview.state import CONNECTION_STYLES

from .dom import RowNode
from .format import format_date, format_duration, format_percentage
from .rows import COLUMNS, OFFLINE_CLASS, SORTABLE_COLUMNS
from .stats import STAT_LABELS, Sparkline

if TYPE_CHECKING:
    from fleetview.controller import DashboardController

STATS_PER_ROW = 5
SERIES_STYLES: dict[str, str] = {
    "cpu": "cyan",
    "memory": "magenta",
    "gpu": "green",
    "gpu-memory": "yellow",
}


def _checkbox(checked: bool) -> Text:
    return Text("[x]" if checked else "[ ]", style="bold" if checked else "dim")


class DashboardLayout:
    """Builds the full dashboard from controller state.

    Layout structure:
    1. Header: title, connection pill, refresh times, performance indicator
    2. Error banner (only after a failed cycle)
    3. Stats tiles and request-history chart
    4. Fleet table with pagination footer
    5. Detail panel, then log panel, when open
    """

    def __init__(self, controller: DashboardController, width: int = 120) -> None:
        self._c = controller
        self._width = width

    def render(self) -> RenderableType:
        parts: list[RenderableType] = [self._header()]
        if (banner := self._banner()) is not None:
            parts.append(banner)
        parts.append(self._stats())
        parts.append(self._history())
        parts.append(self._table())
        parts.append(self._footer())
        if self._c.detail.is_open:
            parts.append(self._detail())
        if self._c.state.logs_visible:
            parts.append(self._logs())
        return Group(*parts)

    # ─── Header ──────────────────────────────────────────────────────

    def _header(self) -> Text:
        state = self._c.state
        text = Text()
        text.append("fleetview", style="bold")
        text.append("  ")
        text.append(f" {state.connection_label} ", style=f"reverse {CONNECTION_STYLES[state.connection]}")
        text.append("  last refresh: ", style="dim")
        text.append(format_date(state.last_refreshed))
        text.append("  server: ", style="dim")
        text.append(format_date(state.server_generated_at))
        text.append("  ")
        text.append_text(self._c.monitor.indicator())
        return text

    def _banner(self) -> Text | None:
        error = self._c.state.error
        if not error:
            return None
        return Text(f"! {error}", style="bold white on red")

    # ─── Stats and history ───────────────────────────────────────────

    def _stats(self) -> Table:
        grid = Table.grid(padding=(0, 3))
        for _ in range(STATS_PER_ROW):
            grid.add_column()
        values = self._c.stats_view.values
        cells: list[Text] = []
        for key, label in STAT_LABELS.items():
            cell = Text()
            cell.append(f"{label}\n", style="dim")
            cell.append(values.get(key, "-"), style="bold")
            cells.append(cell)
        for i in range(0, len(cells), STATS_PER_ROW):
            row = cells[i : i + STATS_PER_ROW]
            grid.add_row(*row, *[Text()] * (STATS_PER_ROW - len(row)))
        return grid

    def _history(self) -> Text:
        chart = self._c.history_chart
        return chart.render(width=max(10, min(len(chart.labels) or 60, self._width - 20)))

    # ─── Fleet table ─────────────────────────────────────────────────

    def _column_header(self, column: str) -> str:
        display = self._c.state.display
        key = SORTABLE_COLUMNS.get(column)
        if key is None or key != display.sort_key:
            return column
        return f"{column} {'▲' if display.sort_order == 'asc' else '▼'}"

    def _table(self) -> Table:
        table = Table(expand=True, show_lines=False, header_style="bold")
        table.add_column(_checkbox(self._c.state.select_all), width=3, no_wrap=True)
        for column in COLUMNS:
            table.add_column(self._column_header(column))

        for node in self._c.reconciler.body.children:
            table.add_row(*self._row(node), style="dim" if node.has_class(OFFLINE_CLASS) else None)
        return table

    def _row(self, node: RowNode) -> list[RenderableType]:
        if node.has_class("empty-row"):
            return [Text(), *node.cells]
        return [_checkbox(node.checked), *node.cells]

    def _footer(self) -> Text:
        state = self._c.state
        text = Text()
        text.append(f"Page {state.display.current_page} / {state.total_pages}", style="bold")
        text.append(f"  {len(self._c.selection)} selected", style="dim")
        display = state.display
        if display.filter_status != "all" or display.filter_query:
            text.append(f"  filter: {display.filter_status}", style="dim")
            if display.filter_query:
                text.append(f" '{display.filter_query}'", style="dim")
        return text

    # ─── Detail and logs ─────────────────────────────────────────────

    def _detail(self) -> Panel:
        detail = self._c.detail
        entity = detail.entity
        assert entity is not None

        body = Table.grid(padding=(0, 2))
        body.add_column(style="dim")
        body.add_column()
        body.add_row("Address", f"{entity.ip_address}:{entity.port}" if entity.port else entity.ip_address or "-")
        body.add_row("Status", entity.status)
        body.add_row("Uptime", format_duration(entity.uptime_seconds))
        body.add_row("Runtime", entity.runtime_version or "-")
        body.add_row("GPU", f"{entity.gpu_total}x {entity.primary_gpu_model}" if entity.gpu_total else "-")
        body.add_row("Models", ", ".join(entity.loaded_models) or "-")
        body.add_row("Tags", ", ".join(entity.tags) or "-")
        body.add_row("Notes", entity.notes or "-")

        for key, series in detail.series.items():
            values = tuple(v for v in series if v is not None)
            line = Sparkline(values, width=40, style=SERIES_STYLES[key]).render()
            line.append(f" {format_percentage(values[-1] if values else None)}")
            body.add_row(SERIES_LABELS[key], line)

        body.add_row("Metrics", Text(detail.status, style="red" if detail.is_error else ""))
        if detail.error:
            body.add_row("Error", Text(detail.error, style="bold red"))
        body.add_row("Logs", render_feed(detail.logs, "No logs yet"))
        return Panel(body, title=entity.display_name, border_style="cyan")

    def _logs(self) -> Panel:
        viewer = self._c.log_viewer
        grid = Table.grid(padding=(0, 2))
        grid.add_column()
        grid.add_row(Text(f"Coordinator  {viewer.coordinator.status_line('No logs yet')}", style="bold"))
        grid.add_row(render_feed(viewer.coordinator, "No logs yet"))

        has_entities = bool(viewer.options)
        label = dict(viewer.options).get(viewer.selected_entity_id or "", "-")
        empty = viewer.agent_empty_message(has_entities)
        grid.add_row(Text(f"Agent {label}  {viewer.agent.status_line(empty)}", style="bold"))
        grid.add_row(render_feed(viewer.agent, empty))
        return Panel(grid, title="Logs", border_style="blue")

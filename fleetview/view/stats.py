"""Aggregate stats panel and request-history chart.

Both keep the signature of what they last rendered and skip the update when
a refresh brings identical data.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime, timedelta

from rich.text import Text

from fleetview.models import FleetStats, HistoryPoint, parse_timestamp

from .dom import MutationLog
from .format import format_average, format_clock, format_percentage, format_timestamp

# Sparkline characters (8 levels from empty to full)
_SPARKLINE_CHARS = "▁▂▃▄▅▆▇█"

HISTORY_MINUTES = 60

STAT_LABELS: dict[str, str] = {
    "total-agents": "Agents",
    "online-agents": "Online",
    "offline-agents": "Offline",
    "total-requests": "Requests",
    "successful-requests": "Succeeded",
    "failed-requests": "Failed",
    "total-active-requests": "Active",
    "average-response-time-ms": "Avg latency",
    "average-gpu-usage": "Avg GPU",
    "average-gpu-memory-usage": "Avg GPU mem",
    "last-metrics-updated-at": "Metrics updated",
    "last-registered-at": "Last registered",
    "last-seen-at": "Last seen",
}


class Sparkline:
    """Renders a series as a unicode sparkline, scaled against ``ceiling``."""

    def __init__(
        self,
        history: tuple[float, ...],
        width: int = 8,
        style: str = "green",
        ceiling: float = 100.0,
    ) -> None:
        self._history = history
        self._width = width
        self._style = style
        self._ceiling = ceiling

    def render(self) -> Text:
        if not self._history:
            return Text(_SPARKLINE_CHARS[0] * self._width, style=self._style)

        values = list(self._history)[-self._width :]
        while len(values) < self._width:
            values.insert(0, 0.0)

        ceiling = self._ceiling if self._ceiling > 0 else 1.0
        chars: list[str] = []
        for v in values:
            v = max(0.0, min(ceiling, v))
            idx = min(int((v / ceiling) * 7), 7)
            chars.append(_SPARKLINE_CHARS[idx])

        return Text("".join(chars), style=self._style)


def stats_values(stats: FleetStats) -> dict[str, str]:
    return {
        "total-agents": str(stats.total_agents),
        "online-agents": str(stats.online_agents),
        "offline-agents": str(stats.offline_agents),
        "total-requests": str(stats.total_requests),
        "successful-requests": str(stats.successful_requests),
        "failed-requests": str(stats.failed_requests),
        "total-active-requests": str(stats.total_active_requests),
        "average-response-time-ms": format_average(stats.average_response_time_ms),
        "average-gpu-usage": format_percentage(stats.average_gpu_usage),
        "average-gpu-memory-usage": format_percentage(stats.average_gpu_memory_usage),
        "last-metrics-updated-at": format_timestamp(stats.last_metrics_updated_at),
        "last-registered-at": format_timestamp(stats.last_registered_at),
        "last-seen-at": format_timestamp(stats.last_seen_at),
    }


class StatsView:
    """Current text of each stat tile."""

    def __init__(self, log: MutationLog) -> None:
        self._log = log
        self._signature = ""
        self.values: dict[str, str] = {}

    def update(self, stats: FleetStats | None) -> bool:
        """Apply new stats. Returns False when nothing changed or stats are missing."""
        if stats is None:
            return False
        values = stats_values(stats)
        signature = "|".join(f"{k}:{v}" for k, v in values.items())
        if signature == self._signature:
            return False
        self._signature = signature
        for key, value in values.items():
            if self.values.get(key) != value:
                self.values[key] = value
                self._log.record("stat")
        return True


def _minute_floor(date: datetime) -> datetime:
    return date.replace(second=0, microsecond=0)


def history_labels(history: tuple[HistoryPoint, ...], now: datetime | None = None) -> tuple[str, ...]:
    """Minute labels; an empty history yields the last hour of minutes."""
    if not history:
        end = _minute_floor(now or datetime.now())
        return tuple(
            format_clock(end - timedelta(minutes=HISTORY_MINUTES - 1 - i), seconds=False)
            for i in range(HISTORY_MINUTES)
        )
    return tuple(format_clock(parse_timestamp(p.minute), seconds=False) for p in history)


class HistoryChart:
    """Success and failure series of the request-history chart."""

    def __init__(self, log: MutationLog) -> None:
        self._log = log
        self._signature: str | None = None
        self.labels: tuple[str, ...] = ()
        self.success: tuple[int, ...] = ()
        self.failures: tuple[int, ...] = ()

    def update(self, history: tuple[HistoryPoint, ...], now: datetime | None = None) -> bool:
        signature = json.dumps([asdict(p) for p in history])
        if signature == self._signature:
            return False
        self._signature = signature
        self.labels = history_labels(history, now)
        if history:
            self.success = tuple(p.success for p in history)
            self.failures = tuple(p.error for p in history)
        else:
            self.success = self.failures = (0,) * len(self.labels)
        self._log.record("chart")
        return True

    def render(self, width: int = 60) -> Text:
        ceiling = float(max((*self.success, *self.failures, 1)))
        text = Text()
        text.append("ok   ", style="dim")
        text.append_text(Sparkline(tuple(map(float, self.success)), width, "blue", ceiling).render())
        text.append(f" {sum(self.success)}\n", style="blue bold")
        text.append("fail ", style="dim")
        text.append_text(Sparkline(tuple(map(float, self.failures)), width, "red", ceiling).render())
        text.append(f" {sum(self.failures)}", style="red bold")
        if self.labels:
            text.append(f"\n     {self.labels[0]} - {self.labels[-1]}", style="bright_black")
        return text

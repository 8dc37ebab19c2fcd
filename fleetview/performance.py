"""Refresh-cycle performance classification."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from loguru import logger
from rich.text import Text

type Severity = Literal["idle", "ok", "warn", "error"]

# Fallback use alone must classify as at least "warn".
FALLBACK_RATIO = 1.1

SEVERITY_STYLES: dict[Severity, str] = {
    "idle": "bright_black",
    "ok": "green",
    "warn": "yellow",
    "error": "bold red",
}


@dataclass(frozen=True, slots=True)
class Thresholds:
    """Budget per measured dimension, in milliseconds. Zero disables one."""

    fetch: float = 2000
    render: float = 100
    server: float = 100


@dataclass(frozen=True, slots=True)
class PerformanceMetrics:
    fetch_ms: int | None = None
    render_ms: int | None = None
    server_ms: int | None = None
    used_fallback: bool = False
    severity: Severity = "idle"
    generated_at: datetime | None = None


def _round_ms(value: float | None) -> int | None:
    if value is None:
        return None
    return math.floor(value + 0.5)


def evaluate_severity(
    fetch_ms: float | None,
    render_ms: float | None,
    server_ms: float | None,
    used_fallback: bool,
    thresholds: Thresholds = Thresholds(),
) -> Severity:
    """Classify one cycle by its worst measured/threshold ratio."""
    ratios: list[float] = []
    for measured, budget in (
        (fetch_ms, thresholds.fetch),
        (render_ms, thresholds.render),
        (server_ms, thresholds.server),
    ):
        if measured is not None and budget > 0:
            ratios.append(measured / budget)
    if used_fallback:
        ratios.append(FALLBACK_RATIO)

    if not ratios:
        return "idle"
    worst = max(ratios)
    if worst >= 2:
        return "error"
    if worst > 1:
        return "warn"
    return "ok"


class PerformanceMonitor:
    """Records timings for the latest refresh cycle.

    Nothing accumulates across cycles: each call to record() replaces the
    previous measurement.
    """

    def __init__(self, thresholds: Thresholds | None = None) -> None:
        self._thresholds = thresholds or Thresholds()
        self._latest = PerformanceMetrics()
        self._log = logger.bind(component="performance")

    @property
    def latest(self) -> PerformanceMetrics:
        return self._latest

    @property
    def thresholds(self) -> Thresholds:
        return self._thresholds

    def record(
        self,
        fetch_ms: float | None,
        render_ms: float | None,
        server_ms: float | None = None,
        used_fallback: bool = False,
        generated_at: datetime | None = None,
    ) -> PerformanceMetrics:
        fetch = _round_ms(fetch_ms)
        render = _round_ms(render_ms)
        server = _round_ms(server_ms)
        severity = evaluate_severity(fetch, render, server, used_fallback, self._thresholds)
        self._latest = PerformanceMetrics(
            fetch_ms=fetch,
            render_ms=render,
            server_ms=server,
            used_fallback=used_fallback,
            severity=severity,
            generated_at=generated_at,
        )
        if severity in ("warn", "error"):
            self._log.debug(
                "Slow refresh cycle: fetch={fetch} render={render} server={server} "
                "fallback={fallback} severity={severity}",
                fetch=fetch, render=render, server=server,
                fallback=used_fallback, severity=severity,
            )
        return self._latest

    def indicator(self) -> Text:
        """Render the one-line indicator shown next to the refresh button."""
        m = self._latest

        def fmt(value: int | None) -> str:
            return "-" if value is None else f"{value} ms"

        text = Text(
            f"fetch: {fmt(m.fetch_ms)} / render: {fmt(m.render_ms)} / server: {fmt(m.server_ms)}",
            style=SEVERITY_STYLES[m.severity],
        )
        if m.used_fallback:
            text.append(" (legacy)", style="magenta")
        return text

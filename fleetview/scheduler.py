"""Poll scheduler.

Drives periodic refreshes on the running event loop. Every tick spawns its
refresh cycle as a background task, so a slow cycle never delays the next
tick. The timer is paused while the view is hidden and resumed, with one
immediate refresh, when it becomes visible again.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any, Literal

from loguru import logger

type SchedulerState = Literal["stopped", "running", "paused"]
type RefreshFn = Callable[[bool], Coroutine[Any, Any, None]]


class PollScheduler:
    """Timer-driven refresh loop with visibility-aware pausing.

    Args:
        refresh: Coroutine function taking ``manual`` and running one cycle.
    """

    def __init__(self, refresh: RefreshFn) -> None:
        self._refresh = refresh
        self._interval = 5.0
        self._state: SchedulerState = "stopped"
        self._timer: asyncio.Task[None] | None = None
        self._inflight: set[asyncio.Task[None]] = set()
        self._log = logger.bind(component="scheduler")

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def timer_active(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    def start(self, interval_ms: float) -> None:
        """Refresh once now and then every ``interval_ms`` milliseconds."""
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self._interval = interval_ms / 1000
        self._cancel_timer()
        self._state = "running"
        self._log.debug("Polling every {interval}s", interval=self._interval)
        self._spawn(manual=False)
        self._arm_timer()

    def stop(self) -> None:
        """Stop the timer. Cycles already in flight are left to finish."""
        self._cancel_timer()
        self._state = "stopped"

    def refresh_now(self) -> None:
        """Run one manual cycle without touching the timer."""
        self._spawn(manual=True)

    def set_visible(self, visible: bool) -> None:
        match (self._state, visible):
            case ("running", False):
                self._cancel_timer()
                self._state = "paused"
                self._log.debug("View hidden; polling paused")
            case ("paused", True):
                self._state = "running"
                self._log.debug("View visible; polling resumed")
                self._spawn(manual=False)
                self._arm_timer()
            case _:
                pass

    async def aclose(self) -> None:
        """Stop and wait for in-flight cycles."""
        self.stop()
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

    # ─── Internals ───────────────────────────────────────────────────

    def _arm_timer(self) -> None:
        self._timer = asyncio.get_running_loop().create_task(self._tick_loop())

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self._spawn(manual=False)

    def _spawn(self, *, manual: bool) -> None:
        task = asyncio.get_running_loop().create_task(self._refresh(manual))
        self._inflight.add(task)
        task.add_done_callback(self._on_cycle_done)

    def _on_cycle_done(self, task: asyncio.Task[None]) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        if (exc := task.exception()) is not None:
            self._log.opt(exception=exc).error("Refresh cycle crashed: {error}", error=exc)

"""Dashboard renderer.

Manages the Rich Live display. The renderable reads controller state on
every refresh, so Live only needs to be told when something changed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console, ConsoleOptions, RenderResult
from rich.live import Live
from rich.style import Style
from rich.text import Text

from .layout import DashboardLayout

if TYPE_CHECKING:
    from fleetview.controller import DashboardController

STYLE_SUCCESS = Style(color="green")
STYLE_DIM = Style(color="bright_black")


class DashboardRenderable:
    """Rich renderable that lays out the dashboard from controller state on each render."""

    def __init__(self, controller: DashboardController) -> None:
        self._controller = controller

    def __rich_console__(self, console: Console, options: ConsoleOptions) -> RenderResult:
        yield DashboardLayout(self._controller, width=options.max_width).render()


class DashboardRenderer:
    """Owns the Live display for one controller."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console
        self._live: Live | None = None

    @property
    def console(self) -> Console:
        if self._live:
            return self._live.console
        return self._console or Console()

    @property
    def active(self) -> bool:
        return self._live is not None

    def start(self, controller: DashboardController) -> None:
        self._live = Live(
            DashboardRenderable(controller),
            console=self._console,
            refresh_per_second=4,
            transient=False,
            auto_refresh=False,
        )
        self._live.console.clear()
        self._live.start()
        controller.subscribe(self.refresh)

    def refresh(self) -> None:
        if self._live:
            self._live.refresh()

    def stop(self) -> None:
        if self._live:
            self._live.stop()
            self._live = None

    def print_once(self, controller: DashboardController) -> None:
        """Print a single frame without starting Live."""
        self.console.print(DashboardRenderable(controller))

    def print_final_status(self, controller: DashboardController) -> None:
        state = controller.state
        if state.error:
            self.console.print(Text(f"x {state.error}", style="bold red"))
            return
        final = Text()
        final.append("v ", style=STYLE_SUCCESS)
        final.append("Stopped", style="bold green")
        final.append(f" | {len(controller.store)} agents", style=STYLE_DIM)
        final.append(f" | {state.applied_cycle} cycles", style=STYLE_DIM)
        self.console.print(final)

"""Dashboard state container shared by the controller and the renderer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from .pipeline import DisplayState

type ConnectionStatus = Literal["loading", "updating", "online", "offline"]

CONNECTION_LABELS: dict[ConnectionStatus, str] = {
    "loading": "Connecting...",
    "updating": "Updating...",
    "online": "Online",
    "offline": "Offline",
}

CONNECTION_STYLES: dict[ConnectionStatus, str] = {
    "loading": "yellow",
    "updating": "cyan",
    "online": "bold green",
    "offline": "bold red",
}


@dataclass
class DashboardState:
    """Everything the front-end shows besides the table and the panels.

    Attributes:
        display: Filter, sort and pagination chosen by the user.
        connection: Coordinator reachability as seen by the last cycle.
        error: Banner text of the last failed cycle, cleared on success.
        last_refreshed: Client time the last successful cycle was applied.
        server_generated_at: Server time of the snapshot on display.
        total_pages: Page count from the last render pass.
        select_all: Derived state of the select-all control.
        logs_visible: Whether the log viewer is shown and refreshed.
    """

    display: DisplayState = field(default_factory=DisplayState)
    connection: ConnectionStatus = "loading"
    error: str | None = None
    last_refreshed: datetime | None = None
    server_generated_at: datetime | None = None
    total_pages: int = 1
    select_all: bool = False
    logs_visible: bool = False
    cycle: int = 0
    applied_cycle: int = 0

    @property
    def connection_label(self) -> str:
        return CONNECTION_LABELS[self.connection]

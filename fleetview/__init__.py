"""fleetview - Live dashboard state for an inference agent fleet.

Example:

    from fleetview import DashboardController, HttpClient, SnapshotFetcher

    async with HttpClient("http://localhost:8080") as http:
        controller = DashboardController(SnapshotFetcher(http))
        await controller.refresh()
        controller.sort_by("uptime")
        controller.set_filter_status("online")
        controller.export_csv("online.csv")
"""

from fleetview.config import DashboardConfig, load_config, resolve_dashboard
from fleetview.controller import DashboardController
from fleetview.detail import DetailPanel
from fleetview.errors import AbortError, FleetError, HttpError, NetworkError, ParseError
from fleetview.export import to_csv, to_json, write_export
from fleetview.fetcher import Endpoints, SnapshotFetcher
from fleetview.infra.http import BearerAuth, HttpClient
from fleetview.logs import LogViewer
from fleetview.models import Entity, FleetStats, HistoryPoint, LogBatch, LogEntry, MetricSample, Snapshot
from fleetview.observability import LogConfig, setup_logging, teardown_logging
from fleetview.performance import PerformanceMetrics, PerformanceMonitor, Thresholds, evaluate_severity
from fleetview.pipeline import DisplayState, derive
from fleetview.scheduler import PollScheduler
from fleetview.selection import SelectionManager
from fleetview.state import DashboardState
from fleetview.store import EntityStore

__version__ = "0.1.0"

__all__ = [
    # Controller
    "DashboardController",
    "DashboardState",
    "DetailPanel",
    "LogViewer",
    # Engine
    "DisplayState",
    "EntityStore",
    "PerformanceMetrics",
    "PerformanceMonitor",
    "PollScheduler",
    "SelectionManager",
    "Thresholds",
    "derive",
    "evaluate_severity",
    # Coordinator access
    "BearerAuth",
    "Endpoints",
    "HttpClient",
    "SnapshotFetcher",
    # Models
    "Entity",
    "FleetStats",
    "HistoryPoint",
    "LogBatch",
    "LogEntry",
    "MetricSample",
    "Snapshot",
    # Errors
    "AbortError",
    "FleetError",
    "HttpError",
    "NetworkError",
    "ParseError",
    # Export
    "to_csv",
    "to_json",
    "write_export",
    # Configuration
    "DashboardConfig",
    "LogConfig",
    "load_config",
    "resolve_dashboard",
    "setup_logging",
    "teardown_logging",
]

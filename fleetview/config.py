"""TOML-based dashboard configuration.

Loads ~/.fleetview/defaults.toml (global) and fleetview.toml (project),
merges them, and resolves named dashboards into DashboardConfig instances.

Example fleetview.toml::

    [dashboard]
    base_url = "http://localhost:8080"
    refresh_interval_ms = 5000

    [dashboards.staging]
    base_url = "https://coordinator.staging.internal"
    token = "..."
    page_size = 100

    [dashboards.staging.thresholds]
    fetch = 1500
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from .performance import Thresholds

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".fleetview" / "defaults.toml"
PROJECT_CONFIG_NAME = "fleetview.toml"


@dataclass(frozen=True, slots=True)
class DashboardConfig:
    """Connection and display settings for one coordinator.

    Attributes:
        base_url: Coordinator root URL.
        token: Bearer token sent with every request, if any.
        timeout: Per-request timeout in seconds.
        refresh_interval_ms: Poll interval.
        page_size: Table rows per page.
        thresholds: Performance budgets in milliseconds.
        log_limit: Entries requested by the log viewer.
        modal_log_limit: Entries requested by the detail view.
        metrics_limit: Samples kept by the detail view.
        metrics_cache_ttl: Seconds a detail metrics series is reused.
    """

    base_url: str = "http://localhost:8080"
    token: str | None = None
    timeout: float = 30.0
    refresh_interval_ms: int = 5000
    page_size: int = 50
    thresholds: Thresholds = field(default_factory=Thresholds)
    log_limit: int = 200
    modal_log_limit: int = 100
    metrics_limit: int = 120
    metrics_cache_ttl: float = 10.0

    def __post_init__(self) -> None:
        if self.refresh_interval_ms <= 0:
            raise ValueError("refresh_interval_ms must be positive")
        if self.page_size <= 0:
            raise ValueError("page_size must be positive")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    with path.open("rb") as f:
        return tomllib.load(f)


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)

    merged = _deep_merge(global_cfg, project_cfg)
    merged.setdefault("dashboard", {})
    merged.setdefault("dashboards", {})
    return merged


def _check_keys(section: str, raw: RawConfig, valid: set[str]) -> None:
    unknown = sorted(set(raw) - valid)
    if unknown:
        raise ValueError(
            f"Unknown keys in {section}: {', '.join(unknown)}. Valid: {', '.join(sorted(valid))}"
        )


def _build_thresholds(section: str, raw: Any) -> Thresholds:
    if not isinstance(raw, dict):
        raise ValueError(f"{section}.thresholds must be a table")
    _check_keys(f"{section}.thresholds", raw, {f.name for f in fields(Thresholds)})
    return Thresholds(**raw)


def build_dashboard(raw: RawConfig, section: str = "dashboard") -> DashboardConfig:
    raw = dict(raw)
    _check_keys(section, raw, {f.name for f in fields(DashboardConfig)})
    if "thresholds" in raw:
        raw["thresholds"] = _build_thresholds(section, raw["thresholds"])
    return DashboardConfig(**raw)


def resolve_dashboard(
    name: str | None = None,
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
    **overrides: Any,
) -> DashboardConfig:
    """Resolve the ``[dashboard]`` defaults, optionally overlaid by a named profile.

    Keyword overrides whose value is None are ignored, so CLI flags can be
    passed straight through.

    Raises:
        KeyError: ``name`` is not a configured profile.
        ValueError: A section holds unknown keys or invalid values.
    """
    config = load_config(project_dir=project_dir, global_path=global_path)
    raw = dict(config["dashboard"])
    section = "dashboard"

    if name is not None:
        profiles = config["dashboards"]
        if name not in profiles:
            raise KeyError(f"Dashboard '{name}' not found. Available: {', '.join(profiles) or 'none'}")
        raw = _deep_merge(raw, profiles[name])
        section = f"dashboards.{name}"

    raw.update({k: v for k, v in overrides.items() if v is not None})
    return build_dashboard(raw, section)

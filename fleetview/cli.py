"""Command-line entry point: ``fleetview`` / ``python -m fleetview``."""

from __future__ import annotations

import argparse
import asyncio
import locale
from collections.abc import Sequence
from pathlib import Path

from loguru import logger

from .config import DashboardConfig, resolve_dashboard
from .controller import DashboardController
from .fetcher import SnapshotFetcher
from .infra.http import BearerAuth, HttpClient
from .observability import LogConfig, setup_logging, teardown_logging
from .view.renderer import DashboardRenderer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fleetview", description="Terminal dashboard for an agent fleet")
    parser.add_argument("--url", type=str, default=None, help="Coordinator base URL")
    parser.add_argument("--profile", type=str, default=None, help="Named [dashboards.<name>] profile")
    parser.add_argument("--token", type=str, default=None, help="Bearer token")
    parser.add_argument("--interval", type=int, default=None, help="Refresh interval in milliseconds")
    parser.add_argument("--page-size", type=int, default=None)
    parser.add_argument(
        "--log-level",
        type=str.upper,
        default="INFO",
        choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"],
    )
    parser.add_argument("--log-file", type=str, default=".fleetview/fleetview.log")
    parser.add_argument("--once", action="store_true", help="Fetch one snapshot, print it and exit")
    parser.add_argument("--export-json", type=Path, default=None, help="Write filtered agents as JSON")
    parser.add_argument("--export-csv", type=Path, default=None, help="Write filtered agents as CSV")
    return parser


def build_controller(config: DashboardConfig) -> tuple[DashboardController, HttpClient]:
    auth = BearerAuth(config.token) if config.token else None
    http = HttpClient(config.base_url, auth, timeout=config.timeout)
    controller = DashboardController(
        SnapshotFetcher(http),
        page_size=config.page_size,
        thresholds=config.thresholds,
        log_limit=config.log_limit,
        modal_log_limit=config.modal_log_limit,
        metrics_limit=config.metrics_limit,
        metrics_cache_ttl=config.metrics_cache_ttl,
    )
    return controller, http


async def run(
    config: DashboardConfig,
    *,
    once: bool = False,
    export_json: Path | None = None,
    export_csv: Path | None = None,
    renderer: DashboardRenderer | None = None,
) -> int:
    renderer = renderer or DashboardRenderer()
    controller, http = build_controller(config)
    async with http:
        if once or export_json or export_csv:
            await controller.refresh(manual=True)
            if export_json:
                controller.export_json(export_json)
            if export_csv:
                controller.export_csv(export_csv)
            if once:
                renderer.print_once(controller)
            return 1 if controller.state.error else 0

        renderer.start(controller)
        controller.start(config.refresh_interval_ms)
        try:
            await asyncio.Event().wait()
        finally:
            await controller.aclose()
            renderer.stop()
            renderer.print_final_status(controller)
    return 0


def cli(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error:
        logger.debug("System locale unavailable; sorting with the C locale")

    config = resolve_dashboard(
        args.profile,
        base_url=args.url,
        token=args.token,
        refresh_interval_ms=args.interval,
        page_size=args.page_size,
    )

    handler_ids = setup_logging(LogConfig(level=args.log_level, file=args.log_file))
    try:
        return asyncio.run(
            run(
                config,
                once=args.once,
                export_json=args.export_json,
                export_csv=args.export_csv,
            )
        )
    except KeyboardInterrupt:
        return 130
    finally:
        teardown_logging(handler_ids)


def main() -> None:
    raise SystemExit(cli())

from __future__ import annotations

import io
import json
from pathlib import Path

import pytest
from rich.console import Console

from fleetview.cli import build_controller, build_parser, run
from fleetview.config import DashboardConfig
from fleetview.view.renderer import DashboardRenderer

pytestmark = [pytest.mark.unit, pytest.mark.xdist_group("unit")]


def _renderer() -> tuple[DashboardRenderer, Console]:
    console = Console(file=io.StringIO(), width=160, record=True)
    return DashboardRenderer(console), console


# ─── argument parsing ────────────────────────────────────────────


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.url is None
    assert args.interval is None
    assert args.log_level == "INFO"
    assert not args.once


def test_parser_options():
    args = build_parser().parse_args(
        ["--url", "http://c:8080", "--interval", "2000", "--log-level", "debug", "--export-csv", "out.csv"]
    )
    assert args.url == "http://c:8080"
    assert args.interval == 2000
    assert args.log_level == "DEBUG"
    assert args.export_csv == Path("out.csv")


def test_parser_rejects_unknown_level():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--log-level", "chatty"])


# ─── wiring ──────────────────────────────────────────────────────


def test_build_controller_applies_config():
    config = DashboardConfig(base_url="http://c", token="t", page_size=10)
    controller, http = build_controller(config)
    assert controller.state.display.page_size == 10
    assert http.base_url == "http://c"


# ─── one-shot runs ───────────────────────────────────────────────


async def test_once_prints_frame(base_url):
    renderer, console = _renderer()

    code = await run(DashboardConfig(base_url=base_url), once=True, renderer=renderer)

    assert code == 0
    assert "alpha" in console.export_text()


async def test_export_writes_files(base_url, tmp_path):
    renderer, console = _renderer()
    json_path = tmp_path / "fleet.json"
    csv_path = tmp_path / "fleet.csv"

    code = await run(
        DashboardConfig(base_url=base_url),
        export_json=json_path,
        export_csv=csv_path,
        renderer=renderer,
    )

    assert code == 0
    assert [a["id"] for a in json.loads(json_path.read_text())] == ["a", "b"]
    assert csv_path.read_text().count("\n") == 3
    assert console.export_text() == ""


async def test_failed_refresh_exits_nonzero(base_url, coordinator):
    coordinator.overview_status = 500
    renderer, console = _renderer()

    code = await run(DashboardConfig(base_url=base_url), once=True, renderer=renderer)

    assert code == 1
    assert "Failed to refresh dashboard" in console.export_text()

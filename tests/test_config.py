from __future__ import annotations

from pathlib import Path

import pytest

from fleetview.config import DashboardConfig, _deep_merge, load_config, resolve_dashboard
from fleetview.performance import Thresholds

pytestmark = [pytest.mark.unit, pytest.mark.xdist_group("unit")]


@pytest.fixture
def dirs(tmp_path: Path) -> tuple[Path, Path]:
    project = tmp_path / "project"
    project.mkdir()
    global_path = tmp_path / "home" / "defaults.toml"
    global_path.parent.mkdir()
    return project, global_path


def write(path: Path, content: str) -> None:
    path.write_text(content)


class TestDeepMerge:
    def test_nested_tables_merge(self):
        base = {"dashboard": {"base_url": "a", "thresholds": {"fetch": 1}}}
        override = {"dashboard": {"thresholds": {"render": 2}}}
        assert _deep_merge(base, override) == {
            "dashboard": {"base_url": "a", "thresholds": {"fetch": 1, "render": 2}}
        }

    def test_scalars_override(self):
        assert _deep_merge({"a": 1}, {"a": 2}) == {"a": 2}


class TestLoadConfig:
    def test_missing_files_give_empty_sections(self, dirs):
        project, global_path = dirs
        config = load_config(project_dir=project, global_path=global_path)
        assert config == {"dashboard": {}, "dashboards": {}}

    def test_project_overrides_global(self, dirs):
        project, global_path = dirs
        write(global_path, '[dashboard]\nbase_url = "http://global"\npage_size = 20\n')
        write(project / "fleetview.toml", '[dashboard]\nbase_url = "http://project"\n')

        config = load_config(project_dir=project, global_path=global_path)

        assert config["dashboard"] == {"base_url": "http://project", "page_size": 20}


class TestResolveDashboard:
    def test_defaults(self, dirs):
        project, global_path = dirs
        config = resolve_dashboard(project_dir=project, global_path=global_path)
        assert config == DashboardConfig()
        assert config.refresh_interval_ms == 5000
        assert config.page_size == 50
        assert config.thresholds == Thresholds(fetch=2000, render=100, server=100)

    def test_named_profile_overlays_defaults(self, dirs):
        project, global_path = dirs
        write(
            project / "fleetview.toml",
            '[dashboard]\nbase_url = "http://localhost:8080"\npage_size = 25\n\n'
            '[dashboards.staging]\nbase_url = "https://staging"\ntoken = "secret"\n\n'
            "[dashboards.staging.thresholds]\nfetch = 1500\n",
        )

        config = resolve_dashboard("staging", project_dir=project, global_path=global_path)

        assert config.base_url == "https://staging"
        assert config.token == "secret"
        assert config.page_size == 25
        assert config.thresholds == Thresholds(fetch=1500)

    def test_overrides_ignore_none(self, dirs):
        project, global_path = dirs
        config = resolve_dashboard(
            project_dir=project, global_path=global_path, base_url="http://cli", token=None
        )
        assert config.base_url == "http://cli"
        assert config.token is None

    def test_missing_profile(self, dirs):
        project, global_path = dirs
        with pytest.raises(KeyError):
            resolve_dashboard("prod", project_dir=project, global_path=global_path)

    def test_unknown_key(self, dirs):
        project, global_path = dirs
        write(project / "fleetview.toml", "[dashboard]\nrefresh = 10\n")
        with pytest.raises(ValueError, match="refresh"):
            resolve_dashboard(project_dir=project, global_path=global_path)

    def test_unknown_threshold_key(self, dirs):
        project, global_path = dirs
        write(project / "fleetview.toml", "[dashboard.thresholds]\nnetwork = 10\n")
        with pytest.raises(ValueError, match="network"):
            resolve_dashboard(project_dir=project, global_path=global_path)

    def test_invalid_interval(self, dirs):
        project, global_path = dirs
        with pytest.raises(ValueError):
            resolve_dashboard(project_dir=project, global_path=global_path, refresh_interval_ms=0)

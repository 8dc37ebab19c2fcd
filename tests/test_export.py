from __future__ import annotations

import json

import pytest
from conftest import make_entity

from fleetview.export import CSV_HEADER, to_csv, to_json, write_export

pytestmark = [pytest.mark.unit, pytest.mark.xdist_group("unit")]


@pytest.fixture
def entities():
    return (
        make_entity("a", name='rack "7"', tags=["gpu", "fast"], loaded_models=["llama3:8b", "qwen2:7b"]),
        make_entity("b", custom_name="backup", status="offline", cpu_usage=None),
    )


class TestCsv:
    def test_header_and_quoting(self, entities):
        lines = to_csv(entities).splitlines()

        assert lines[0] == ",".join(f'"{h}"' for h in CSV_HEADER)
        assert lines[1].startswith('"a","rack ""7""","rack ""7""",')
        assert '"llama3:8b|qwen2:7b","gpu|fast"' in lines[1]

    def test_missing_values_are_empty_quoted(self, entities):
        row = to_csv(entities).splitlines()[2].split(",")
        cpu_index = CSV_HEADER.index("cpu_usage")
        assert row[cpu_index] == '""'
        assert row[1] == '"backup"'

    def test_empty_list_has_header_only(self):
        assert to_csv(()).count("\n") == 1


class TestJson:
    def test_full_records_with_indent(self, entities):
        text = to_json(entities)
        data = json.loads(text)

        assert [d["id"] for d in data] == ["a", "b"]
        assert data[0]["tags"] == ["gpu", "fast"]
        assert text.startswith("[\n  {")


class TestWriteExport:
    def test_format_from_suffix(self, entities, tmp_path):
        path = write_export(tmp_path / "out" / "fleet.csv", entities)
        assert path.read_text().startswith('"id"')

    def test_explicit_format_wins(self, entities, tmp_path):
        path = write_export(tmp_path / "fleet.txt", entities, "json")
        assert json.loads(path.read_text())[1]["status"] == "offline"

    def test_unknown_format(self, entities, tmp_path):
        with pytest.raises(ValueError):
            write_export(tmp_path / "fleet.xml", entities)

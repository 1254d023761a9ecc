from __future__ import annotations

from pathlib import Path

import pytest

from persistkit.descriptors import (
    DescriptorTable,
    Format,
    RecordDescriptor,
    Strategy,
    load_descriptor_table,
    table_from_dict,
)
from persistkit.errors import ConfigurationError


def test_descriptor_defaults_and_string_enums() -> None:
    d = RecordDescriptor("Settings")
    assert d.format is Format.JSON
    assert d.strategy is Strategy.DEV
    assert d.auto_save is True

    d2 = RecordDescriptor("Save", format="RON", strategy="secure")
    assert d2.format is Format.RON
    assert d2.strategy is Strategy.SECURE


def test_empty_name_rejected() -> None:
    with pytest.raises(ConfigurationError):
        RecordDescriptor("  ")


def test_format_from_path() -> None:
    assert Format.from_path("settings.ron") is Format.RON
    assert Format.from_path("save.ron.enc") is Format.RON
    assert Format.from_path("settings.json") is Format.JSON
    assert Format.from_path("settings") is Format.JSON


def test_table_rejects_duplicate_names() -> None:
    table = DescriptorTable([RecordDescriptor("Settings")])
    with pytest.raises(ConfigurationError):
        table.add(RecordDescriptor("Settings", strategy=Strategy.DYNAMIC))
    assert table.names() == ["Settings"]


def test_table_lookup() -> None:
    table = DescriptorTable([RecordDescriptor("A"), RecordDescriptor("B")])
    assert table.get("B").name == "B"
    assert "A" in table and "C" not in table
    assert len(table) == 2
    with pytest.raises(ConfigurationError):
        table.get("C")


def test_load_yaml_table(tmp_path: Path) -> None:
    path = tmp_path / "records.yaml"
    path.write_text(
        "records:\n"
        "  - name: Settings\n"
        "    strategy: dynamic\n"
        "    path: settings.ron\n"
        "  - name: SaveGame\n"
        "    format: json\n"
        "    strategy: secure\n"
        "    auto_save: false\n",
        encoding="utf-8",
    )
    table = load_descriptor_table(path)
    settings = table.get("Settings")
    assert settings.format is Format.RON  # inferred from extension
    assert settings.strategy is Strategy.DYNAMIC
    save = table.get("SaveGame")
    assert save.strategy is Strategy.SECURE
    assert save.auto_save is False
    assert save.path is None


@pytest.mark.parametrize(
    "data",
    [
        {},
        {"records": [{"strategy": "dev"}]},
        {"records": [{"name": "A", "strategy": "cloud"}]},
        {"records": [{"name": "A", "colour": "blue"}]},
        {"records": "A"},
    ],
)
def test_schema_violations_are_configuration_errors(data) -> None:
    with pytest.raises(ConfigurationError):
        table_from_dict(data)


def test_duplicate_names_in_yaml(tmp_path: Path) -> None:
    path = tmp_path / "records.yaml"
    path.write_text("records:\n  - name: A\n  - name: A\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_descriptor_table(path)


def test_to_dict_round_trip() -> None:
    d = RecordDescriptor("Save", Format.RON, Strategy.EMBED, path="save.ron", auto_save=False)
    assert RecordDescriptor.from_dict(d.to_dict()) == d

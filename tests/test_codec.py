from __future__ import annotations

import json

import pytest

from persistkit import codec
from persistkit.descriptors import Format
from persistkit.errors import FormatError

SAMPLE_VALUES = [
    {"volume": 0.8, "muted": False},
    {"level": 3, "party": [{"name": "Aerin", "hp": 28}, {"name": "Bran", "hp": 35}]},
    {"nickname": None, "unlocked_items": [], "stats": {}},
    {"resolution": [1280, 720], "title": 'Line "one"\nLine\ttwo', "ratio": -1.25e-7},
    [1, "two", 3.0, True, None],
    "plain string",
    42,
]


@pytest.mark.parametrize("fmt", list(Format))
@pytest.mark.parametrize("value", SAMPLE_VALUES)
def test_round_trip(fmt: Format, value) -> None:
    assert codec.decode(fmt, codec.encode(fmt, value)) == value


def test_json_encoding_is_sorted_and_stable() -> None:
    text = codec.encode(Format.JSON, {"b": 1, "a": {"d": 2, "c": 3}})
    assert text.index('"a"') < text.index('"b"')
    assert codec.encode(Format.JSON, json.loads(text)) == text


def test_json_decode_error_reports_location() -> None:
    with pytest.raises(FormatError) as info:
        codec.decode(Format.JSON, '{\n  "volume": 0.5,\n  oops\n}')
    err = info.value
    assert err.line == 3
    assert err.column == 3
    assert err.offset is not None


def test_ron_decode_error_reports_location() -> None:
    with pytest.raises(FormatError) as info:
        codec.decode(Format.RON, "(\n    volume: 0.5,\n    level: ?\n)")
    assert info.value.line == 3
    assert info.value.column == 12


def test_encode_unsupported_value_raises_format_error() -> None:
    with pytest.raises(FormatError):
        codec.encode(Format.JSON, {"when": object()})
    with pytest.raises(FormatError):
        codec.encode(Format.RON, {"when": object()})


@pytest.mark.parametrize("fmt", list(Format))
def test_container_round_trip(fmt: Format) -> None:
    mapping = {"Settings": {"volume": 0.8}, "GameState": {"level": 3}}
    data = codec.dump_container(fmt, mapping)
    assert isinstance(data, bytes)
    assert codec.load_container(fmt, data) == mapping


def test_ron_container_uses_map_syntax() -> None:
    text = codec.encode_container(Format.RON, {"Settings": {"volume": 0.8}})
    assert text.startswith("{")
    assert '"Settings": (' in text


def test_container_must_be_mapping() -> None:
    with pytest.raises(FormatError):
        codec.decode_container(Format.JSON, "[1, 2]")


def test_empty_container_text_is_empty_mapping() -> None:
    assert codec.decode_container(Format.JSON, "  \n") == {}


def test_container_rejects_invalid_utf8() -> None:
    with pytest.raises(FormatError):
        codec.load_container(Format.JSON, b"\xff\xfe{}")

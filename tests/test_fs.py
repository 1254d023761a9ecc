from __future__ import annotations

import os
from pathlib import Path

import pytest

from persistkit.backends import FileBackend
from persistkit.descriptors import Format
from persistkit.errors import IoError
from persistkit.fs import atomic_write_bytes, lock_key


def test_atomic_write_creates_parents_and_replaces(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "dir" / "settings.json"
    atomic_write_bytes(target, b"first")
    atomic_write_bytes(target, b"second")
    assert target.read_bytes() == b"second"
    assert sorted(p.name for p in target.parent.iterdir()) == ["settings.json"]


def test_atomic_write_failure_keeps_old_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    target = tmp_path / "settings.json"
    target.write_bytes(b"old")

    def broken_replace(src, dst):
        raise OSError("replace failed")

    monkeypatch.setattr(os, "replace", broken_replace)
    with pytest.raises(OSError):
        atomic_write_bytes(target, b"new")
    assert target.read_bytes() == b"old"
    assert [p.name for p in tmp_path.iterdir()] == ["settings.json"]


def test_lock_key_normalizes_paths(tmp_path: Path) -> None:
    assert lock_key(tmp_path / "a" / ".." / "b.json") == lock_key(tmp_path / "b.json")


def test_file_backend_wraps_os_errors(tmp_path: Path) -> None:
    directory = tmp_path / "settings.json"
    directory.mkdir()
    backend = FileBackend(directory, Format.JSON)
    with pytest.raises(IoError):
        backend.read()
    with pytest.raises(IoError):
        backend.write(b"{}")


def test_file_backend_missing_file_reads_none(tmp_path: Path) -> None:
    backend = FileBackend(tmp_path / "missing.json", Format.JSON)
    assert backend.read() is None
    assert not backend.exists()

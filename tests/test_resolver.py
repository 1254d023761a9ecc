from __future__ import annotations

from pathlib import Path

import pytest

from persistkit.backends import EmbeddedBackend, FileBackend, SecureFileBackend
from persistkit.config import BuildMode, PersistConfig
from persistkit.descriptors import Format, RecordDescriptor, Strategy
from persistkit.errors import ConfigurationError
from persistkit.resolver import DirKind, PlatformDirsResolver, StrategyResolver, default_filename


def make_resolver(tmp_path: Path, platform_dirs, mode: BuildMode, **kwargs) -> StrategyResolver:
    config = PersistConfig(build_mode=mode, base_dir=tmp_path / "local", **kwargs)
    return StrategyResolver(config, platform_dirs=platform_dirs)


@pytest.mark.parametrize("strategy", list(Strategy))
def test_dev_build_uses_local_files(tmp_path: Path, platform_dirs, strategy: Strategy) -> None:
    resolver = make_resolver(tmp_path, platform_dirs, BuildMode.DEV)
    backend = resolver.resolve(RecordDescriptor("Rec", strategy=strategy))
    assert type(backend) is FileBackend
    assert backend.path.parent == tmp_path / "local"
    assert platform_dirs.calls == []


def test_default_filenames() -> None:
    assert default_filename(RecordDescriptor("Settings")) == "settings.json"
    assert default_filename(RecordDescriptor("Settings", format=Format.RON)) == "settings.ron"
    assert default_filename(RecordDescriptor("Save", strategy=Strategy.SECURE)) == "Save.json"
    assert default_filename(RecordDescriptor("Tuning", strategy=Strategy.EMBED)) == "Tuning.json"


def test_production_dev_strategy_stays_local(tmp_path: Path, platform_dirs) -> None:
    resolver = make_resolver(tmp_path, platform_dirs, BuildMode.PRODUCTION)
    backend = resolver.resolve(RecordDescriptor("Settings", path="prefs.json"))
    assert isinstance(backend, FileBackend)
    assert backend.path == tmp_path / "local" / "prefs.json"


def test_production_dynamic_uses_config_dir(tmp_path: Path, platform_dirs) -> None:
    resolver = make_resolver(tmp_path, platform_dirs, BuildMode.PRODUCTION, vendor="Acme", app="Game")
    backend = resolver.resolve(RecordDescriptor("Settings", strategy=Strategy.DYNAMIC))
    assert isinstance(backend, FileBackend)
    assert backend.path == platform_dirs.root / "config" / "Acme" / "Game" / "settings.json"
    assert platform_dirs.calls == [("Acme", "Game", DirKind.CONFIG)]


def test_production_secure_uses_data_dir_and_extension(tmp_path: Path, platform_dirs) -> None:
    resolver = make_resolver(
        tmp_path, platform_dirs, BuildMode.PRODUCTION, vendor="Acme", app="Game", secret="k"
    )
    backend = resolver.resolve(RecordDescriptor("Save", strategy=Strategy.SECURE))
    assert isinstance(backend, SecureFileBackend)
    assert backend.path == platform_dirs.root / "data" / "Acme" / "Game" / "Save.json.enc"


def test_production_embed_is_read_only(tmp_path: Path, platform_dirs) -> None:
    resolver = make_resolver(tmp_path, platform_dirs, BuildMode.PRODUCTION)
    backend = resolver.resolve(RecordDescriptor("Tuning", strategy=Strategy.EMBED))
    assert isinstance(backend, EmbeddedBackend)
    assert backend.read_only is True
    assert backend.key == "embed:Tuning"


@pytest.mark.parametrize("strategy", [Strategy.DYNAMIC, Strategy.SECURE])
def test_production_without_app_info_fails_fast(tmp_path: Path, platform_dirs, strategy) -> None:
    resolver = make_resolver(tmp_path, platform_dirs, BuildMode.PRODUCTION, secret="k")
    with pytest.raises(ConfigurationError):
        resolver.resolve(RecordDescriptor("Rec", strategy=strategy))


def test_with_app_info_fixes_resolution(tmp_path: Path, platform_dirs) -> None:
    config = PersistConfig(build_mode=BuildMode.PRODUCTION, base_dir=tmp_path)
    resolver = StrategyResolver(config.with_app_info("Acme", "Game"), platform_dirs=platform_dirs)
    backend = resolver.resolve(RecordDescriptor("Settings", strategy=Strategy.DYNAMIC))
    assert "Acme" in str(backend.path)


def test_absolute_paths_are_kept(tmp_path: Path, platform_dirs) -> None:
    target = tmp_path / "elsewhere" / "prefs.json"
    resolver = make_resolver(tmp_path, platform_dirs, BuildMode.DEV)
    backend = resolver.resolve(RecordDescriptor("Settings", path=str(target)))
    assert backend.path == target


def test_platformdirs_resolver_paths() -> None:
    resolver = PlatformDirsResolver()
    config_dir = resolver.resolve("Acme", "Game", DirKind.CONFIG)
    data_dir = resolver.resolve("Acme", "Game", DirKind.DATA)
    assert "Game" in str(config_dir)
    assert "Game" in str(data_dir)

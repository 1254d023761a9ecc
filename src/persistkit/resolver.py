from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol

from platformdirs import PlatformDirs

from .backends import Backend, EmbeddedBackend, FileBackend, SecureFileBackend, Storage
from .config import PersistConfig
from .descriptors import RecordDescriptor, Strategy
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

SECURE_SUFFIX = ".enc"


class DirKind(str, Enum):
    CONFIG = "config"
    DATA = "data"


class PlatformDirectories(Protocol):
    def resolve(self, vendor: str, app: str, kind: DirKind) -> Path: ...


class PlatformDirsResolver:
    """Platform directories via platformdirs.

    Linux:   ~/.config/<app>, ~/.local/share/<app>
    macOS:   ~/Library/Application Support/<app>
    Windows: %APPDATA%\\<vendor>\\<app> (roaming)
    """

    def resolve(self, vendor: str, app: str, kind: DirKind) -> Path:
        d = PlatformDirs(appname=app, appauthor=vendor, roaming=True)
        if kind is DirKind.CONFIG:
            return Path(d.user_config_dir)
        return Path(d.user_data_dir)


def default_filename(descriptor: RecordDescriptor) -> str:
    """Default relative path for a descriptor that does not name one.

    Shared strategies default to one ``settings.<ext>`` container; dedicated
    strategies get a file named after the record.
    """
    ext = descriptor.format.extension
    if descriptor.strategy.dedicated:
        return f"{descriptor.name}.{ext}"
    return f"settings.{ext}"


class StrategyResolver:
    """Maps a descriptor's strategy and the configured build mode to a backend."""

    def __init__(
        self,
        config: PersistConfig,
        platform_dirs: Optional[PlatformDirectories] = None,
        storage: Optional[Storage] = None,
    ) -> None:
        self.config = config
        self.platform_dirs = platform_dirs or PlatformDirsResolver()
        self.storage = storage

    def resolve(self, descriptor: RecordDescriptor) -> Backend:
        strategy = descriptor.strategy
        fmt = descriptor.format
        relative = descriptor.path or default_filename(descriptor)

        if not self.config.is_production:
            path = self._local_path(relative)
            if strategy is Strategy.SECURE:
                logger.debug("Secure record %s stored as plaintext in dev mode", descriptor.name)
            backend: Backend = FileBackend(path, fmt, self.storage)
        elif strategy is Strategy.DEV:
            backend = FileBackend(self._local_path(relative), fmt, self.storage)
        elif strategy is Strategy.DYNAMIC:
            path = self._platform_path(descriptor, DirKind.CONFIG, relative)
            backend = FileBackend(path, fmt, self.storage)
        elif strategy is Strategy.EMBED:
            backend = EmbeddedBackend(
                descriptor.name,
                fmt,
                resource_name=Path(relative).name,
                package=self.config.embed_package,
                blobs=self.config.embedded_blobs,
            )
        elif strategy is Strategy.SECURE:
            path = self._platform_path(descriptor, DirKind.DATA, relative)
            path = path.with_name(path.name + SECURE_SUFFIX)
            backend = SecureFileBackend(path, fmt, self.config.secret, descriptor.name, self.storage)
        else:  # pragma: no cover - exhaustive over Strategy
            raise ConfigurationError(f"Unsupported strategy: {strategy!r}")

        logger.debug("Resolved %s (%s, %s) -> %r", descriptor.name, strategy.value,
                     self.config.build_mode.value, backend)
        return backend

    def _local_path(self, relative: str) -> Path:
        path = Path(relative).expanduser()
        if path.is_absolute():
            return path
        return self.config.base_dir / path

    def _platform_path(self, descriptor: RecordDescriptor, kind: DirKind, relative: str) -> Path:
        path = Path(relative).expanduser()
        if path.is_absolute():
            return path
        if not self.config.has_app_info:
            raise ConfigurationError(
                f"Record {descriptor.name!r} uses the {descriptor.strategy.value} strategy in a "
                "production build but no vendor/app identity was configured; call with_app_info()"
            )
        root = self.platform_dirs.resolve(self.config.vendor, self.config.app, kind)
        return root / path

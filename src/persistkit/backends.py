from __future__ import annotations

import contextlib
import logging
from abc import ABC, abstractmethod
from importlib import resources
from pathlib import Path
from typing import ContextManager, Mapping, Optional, Protocol

from .crypto import EncryptionContext, Secret
from .descriptors import Format
from .errors import IoError
from .fs import atomic_write_bytes, lock_key, path_lock

logger = logging.getLogger(__name__)


class Storage(Protocol):
    """Byte-level file access used by file backends."""

    def read(self, path: Path) -> bytes: ...

    def write(self, path: Path, data: bytes) -> None: ...

    def exists(self, path: Path) -> bool: ...


class LocalStorage:
    """Storage on the local filesystem with atomic replace-on-write."""

    def read(self, path: Path) -> bytes:
        return path.read_bytes()

    def write(self, path: Path, data: bytes) -> None:
        atomic_write_bytes(path, data)

    def exists(self, path: Path) -> bool:
        return path.exists()


class Backend(ABC):
    """A concrete storage target holding one container (record name -> payload)."""

    format: Format

    @property
    @abstractmethod
    def key(self) -> str:
        """Stable identity; records with equal keys share one container."""

    @abstractmethod
    def read(self) -> Optional[bytes]:
        """Return the container bytes, or None when nothing is stored."""

    @abstractmethod
    def write(self, data: bytes) -> None:
        ...

    @abstractmethod
    def exists(self) -> bool:
        ...

    @property
    def read_only(self) -> bool:
        return False

    def lock(self) -> ContextManager[None]:
        return contextlib.nullcontext()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.key!r})"


class FileBackend(Backend):
    def __init__(self, path: Path, fmt: Format, storage: Optional[Storage] = None) -> None:
        self.path = Path(path)
        self.format = fmt
        self.storage: Storage = storage or LocalStorage()

    @property
    def key(self) -> str:
        return lock_key(self.path)

    def exists(self) -> bool:
        return self.storage.exists(self.path)

    def read(self) -> Optional[bytes]:
        try:
            if not self.storage.exists(self.path):
                logger.debug("Persist file does not exist: %s", self.path)
                return None
            return self.storage.read(self.path)
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise IoError(f"Failed to read {self.path}: {exc}") from exc

    def write(self, data: bytes) -> None:
        try:
            self.storage.write(self.path, data)
        except OSError as exc:
            raise IoError(f"Failed to write {self.path}: {exc}") from exc
        logger.debug("Wrote %d bytes to %s", len(data), self.path)

    def lock(self) -> ContextManager[None]:
        return path_lock(self.path)


class SecureFileBackend(FileBackend):
    """File backend that seals the container before writing and opens it after reading.

    The secret is checked on every read and write, so a missing key fails
    that operation only.
    """

    def __init__(
        self,
        path: Path,
        fmt: Format,
        secret: Optional[Secret],
        record_name: str,
        storage: Optional[Storage] = None,
    ) -> None:
        super().__init__(path, fmt, storage)
        self._secret = secret
        self.record_name = record_name

    def _context(self) -> EncryptionContext:
        return EncryptionContext(self._secret, associated_data=self.record_name.encode("utf-8"))

    def read(self) -> Optional[bytes]:
        ctx = self._context()
        raw = super().read()
        if raw is None:
            return None
        return ctx.open(raw)

    def write(self, data: bytes) -> None:
        super().write(self._context().seal(data))


class EmbeddedBackend(Backend):
    """Read-only blob fixed at build time.

    Writes succeed without touching storage so the manager keeps one code path.
    """

    def __init__(
        self,
        record_name: str,
        fmt: Format,
        resource_name: str,
        package: Optional[str] = None,
        blobs: Optional[Mapping[str, bytes]] = None,
    ) -> None:
        self.record_name = record_name
        self.format = fmt
        self.resource_name = resource_name
        self.package = package
        self.blobs = blobs or {}

    @property
    def key(self) -> str:
        return f"embed:{self.record_name}"

    @property
    def read_only(self) -> bool:
        return True

    def _load(self) -> Optional[bytes]:
        if self.record_name in self.blobs:
            return self.blobs[self.record_name]
        if not self.package:
            return None
        try:
            entry = resources.files(self.package).joinpath(self.resource_name)
            if not entry.is_file():
                return None
            return entry.read_bytes()
        except (ModuleNotFoundError, FileNotFoundError):
            logger.warning("Embedded resource %s not found in %s", self.resource_name, self.package)
            return None
        except OSError as exc:
            raise IoError(f"Failed to read embedded resource {self.resource_name}: {exc}") from exc

    def exists(self) -> bool:
        return self._load() is not None

    def read(self) -> Optional[bytes]:
        return self._load()

    def write(self, data: bytes) -> None:
        logger.debug("Ignoring write of %d bytes to embedded record %s", len(data), self.record_name)

from __future__ import annotations

import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator

logger = logging.getLogger(__name__)

_path_locks: Dict[str, threading.RLock] = {}
_registry_lock = threading.Lock()


def ensure_dir(path: Path, *, mode: int = 0o700) -> None:
    """Ensure directory exists with owner-only permissions where supported."""
    existed = path.exists()
    path.mkdir(parents=True, exist_ok=True)
    if existed:
        return
    try:
        os.chmod(path, mode)
    except OSError:  # Platform may not support
        logger.debug("Could not chmod directory: %s", path, exc_info=True)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Atomically write bytes to a path using a temporary file and replace.

    Ensures that either the old file remains or the new file fully replaces it.
    """
    tmp_dir = path.parent
    ensure_dir(tmp_dir)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=tmp_dir)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    finally:
        if os.path.exists(tmp_name):
            try:
                os.remove(tmp_name)
            except OSError:
                logger.debug("Could not remove temp file %s", tmp_name, exc_info=True)


def lock_key(path: Path) -> str:
    return str(Path(path).expanduser().resolve(strict=False))


@contextmanager
def path_lock(path: Path) -> Iterator[None]:
    """Hold the process-wide exclusive lock for ``path``.

    Re-entrant, so a thread already merging into a file may call back in.
    """
    key = lock_key(path)
    with _registry_lock:
        lock = _path_locks.get(key)
        if lock is None:
            lock = _path_locks[key] = threading.RLock()
    with lock:
        yield

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass
class SnapshotEntry:
    """Last synchronized state of one record.

    ``serialized`` is exactly what was last written (or loaded) for the record,
    or None when nothing has been on disk yet.
    """

    last_version: int
    serialized: Optional[str] = None
    dirty: bool = False


class SnapshotStore:
    """Per-record cache of what is on disk, used for change detection.

    Versions only increase while the process runs, so a record is dirty
    exactly when its current version differs from the recorded one.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, SnapshotEntry] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> Optional[SnapshotEntry]:
        with self._lock:
            return self._entries.get(name)

    def put(self, name: str, entry: SnapshotEntry) -> None:
        with self._lock:
            self._entries[name] = entry

    def is_dirty(self, name: str, current_version: int) -> bool:
        with self._lock:
            entry = self._entries.get(name)
            if entry is None:
                return True
            return entry.dirty or entry.last_version != current_version

    def mark_dirty(self, name: str) -> None:
        with self._lock:
            entry = self._entries.get(name)
            if entry is None:
                # -1 never matches a real version
                self._entries[name] = SnapshotEntry(last_version=-1, dirty=True)
            else:
                entry.dirty = True

    def names(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._entries

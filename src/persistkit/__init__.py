"""Change-triggered persistence for named application records.

This package provides:
- Record descriptors naming each record's format and storage strategy
- A PersistenceManager that loads records at startup and, on every tick,
  writes only the records whose version changed
- JSON and RON codecs for container files holding several records
- Strategy backends: local files, platform directories, embedded read-only
  blobs and AES-GCM sealed files

Design goals:
- No redundant I/O: change detection compares integer versions
- Safety: merge-before-write keeps sibling and unknown records intact
- Robustness: atomic writes, per-record load failures, tamper detection
"""

__version__ = "0.3.0"

from .backends import Backend, EmbeddedBackend, FileBackend, LocalStorage, SecureFileBackend
from .config import BuildMode, PersistConfig
from .descriptors import (
    DescriptorTable,
    Format,
    RecordDescriptor,
    Strategy,
    load_descriptor_table,
)
from .embed import bake_blob, bake_embedded
from .errors import (
    BackendFailure,
    ConfigurationError,
    FormatError,
    IoError,
    LoadError,
    PersistError,
    SyncError,
    TamperError,
)
from .logging_config import configure_logging
from .manager import LoadReport, PersistenceManager, SyncReport
from .records import RecordAccessor, TrackedRecord
from .resolver import DirKind, PlatformDirsResolver, StrategyResolver
from .snapshot import SnapshotEntry, SnapshotStore

__all__ = [
    "__version__",
    "Backend",
    "EmbeddedBackend",
    "FileBackend",
    "LocalStorage",
    "SecureFileBackend",
    "BuildMode",
    "PersistConfig",
    "DescriptorTable",
    "Format",
    "RecordDescriptor",
    "Strategy",
    "load_descriptor_table",
    "bake_blob",
    "bake_embedded",
    "BackendFailure",
    "ConfigurationError",
    "FormatError",
    "IoError",
    "LoadError",
    "PersistError",
    "SyncError",
    "TamperError",
    "LoadReport",
    "PersistenceManager",
    "SyncReport",
    "RecordAccessor",
    "TrackedRecord",
    "DirKind",
    "PlatformDirsResolver",
    "StrategyResolver",
    "SnapshotEntry",
    "SnapshotStore",
    "configure_logging",
]

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from . import codec
from .backends import Backend
from .config import PersistConfig
from .descriptors import DescriptorTable, Format, RecordDescriptor
from .errors import (
    BackendFailure,
    ConfigurationError,
    FormatError,
    LoadError,
    PersistError,
    SyncError,
)
from .records import RecordAccessor
from .resolver import StrategyResolver
from .snapshot import SnapshotEntry, SnapshotStore

logger = logging.getLogger(__name__)

# (registration, plain value, version) captured at the start of a sync
_Pending = Tuple["Registration", Any, int]


@dataclass
class Registration:
    descriptor: RecordDescriptor
    accessor: RecordAccessor
    backend: Optional[Backend] = None
    load_attempted: bool = False

    @property
    def name(self) -> str:
        return self.descriptor.name


@dataclass
class LoadReport:
    """Outcome of a startup load.

    - loaded: records whose stored payload was applied to the live value
    - defaulted: records with nothing stored; they keep their default value
    - errors: records whose stored data could not be used; they keep their
      current value and their file is left as is
    """

    loaded: List[str] = field(default_factory=list)
    defaulted: List[str] = field(default_factory=list)
    errors: Dict[str, PersistError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class SyncReport:
    """Outcome of a sync pass: records written and per-backend failures."""

    written: List[str] = field(default_factory=list)
    failures: List[BackendFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        if self.failures:
            raise SyncError(self.failures)


class PersistenceManager:
    """Keeps registered records in sync with their storage backends.

    Usage::

        manager = PersistenceManager(PersistConfig(base_dir=root))
        manager.register(RecordDescriptor("Settings"), settings_record)
        manager.initialize()        # load what is on disk
        ...
        manager.tick()              # once per update; writes only changed records

    Records sharing a container file are merged into the file as read from
    disk, so entries for records this process does not know about survive.
    """

    def __init__(
        self,
        config: Optional[PersistConfig] = None,
        *,
        resolver: Optional[StrategyResolver] = None,
        auto_save: bool = True,
    ) -> None:
        self.config = config or PersistConfig()
        self.resolver = resolver or StrategyResolver(self.config)
        self.table = DescriptorTable()
        self.snapshots = SnapshotStore()
        self.auto_save = auto_save
        self._records: Dict[str, Registration] = {}
        self._auto_save_overrides: Dict[str, bool] = {}
        self._initialized = False

    # Registration

    def register(self, descriptor: RecordDescriptor, accessor: RecordAccessor) -> "PersistenceManager":
        """Register a record. Records added after :meth:`initialize` are loaded immediately."""
        self.table.add(descriptor)
        reg = Registration(descriptor=descriptor, accessor=accessor)
        self._records[descriptor.name] = reg
        logger.info("Registered persist record: %s (%s)", descriptor.name, descriptor.strategy.value)
        if self._initialized:
            report = self._load([reg])
            for name, err in report.errors.items():
                logger.warning("Late-registered record %s failed to load: %s", name, err)
        return self

    def initialize(
        self,
        descriptors: Union[DescriptorTable, Iterable[RecordDescriptor], None] = None,
        accessors: Optional[Mapping[str, RecordAccessor]] = None,
    ) -> LoadReport:
        """Register ``descriptors`` (if given) and load every record from its backend."""
        if descriptors is not None:
            accessors = accessors or {}
            for descriptor in descriptors:
                if descriptor.name not in accessors:
                    raise ConfigurationError(f"No accessor supplied for record {descriptor.name!r}")
                self.register(descriptor, accessors[descriptor.name])
        pending = [reg for reg in self._records.values() if not reg.load_attempted]
        report = self._load(pending)
        self._initialized = True
        logger.info(
            "Persistence initialized: %d loaded, %d defaulted, %d failed",
            len(report.loaded), len(report.defaulted), len(report.errors),
        )
        return report

    def set_record_auto_save(self, name: str, enabled: bool) -> None:
        self.table.get(name)
        self._auto_save_overrides[name] = enabled

    def is_auto_save_enabled(self, name: str) -> bool:
        descriptor = self.table.get(name)
        return self.auto_save and self._auto_save_overrides.get(name, descriptor.auto_save)

    # Sync

    def tick(self) -> SyncReport:
        """Write every auto-save record whose version changed since its last sync.

        Dirty records sharing a backend are written together in one
        merge-and-write. A failing backend is reported and does not stop the
        others.
        """
        self._require_initialized()
        report = SyncReport()
        if not self.auto_save:
            return report
        pending: List[_Pending] = []
        for name, reg in self._records.items():
            if not self.is_auto_save_enabled(name):
                continue
            value, version = reg.accessor.read_current()
            if not self.snapshots.is_dirty(name, version):
                continue
            self.snapshots.mark_dirty(name)
            pending.append((reg, value, version))
        self._sync(pending, report)
        return report

    def save_now(self, name: str) -> None:
        """Synchronously write one record whether or not it changed.

        Raises:
            PersistError if resolving, encoding or writing fails.
        """
        self._require_initialized()
        reg = self._registration(name)
        value, version = reg.accessor.read_current()
        backend = self._backend(reg)
        self._write_group(backend, [(reg, value, version)])
        logger.info("Saved %s", name)

    def save_all(self) -> SyncReport:
        """Write every registered record, including manual-save ones."""
        self._require_initialized()
        report = SyncReport()
        pending = []
        for reg in self._records.values():
            value, version = reg.accessor.read_current()
            pending.append((reg, value, version))
        self._sync(pending, report)
        return report

    def get_backend_state(self, name: str) -> Optional[str]:
        """Last serialized payload written or loaded for ``name`` (None if none)."""
        self._registration(name)
        entry = self.snapshots.get(name)
        return entry.serialized if entry else None

    def is_dirty(self, name: str) -> bool:
        reg = self._registration(name)
        _, version = reg.accessor.read_current()
        return self.snapshots.is_dirty(name, version)

    def backend_for(self, name: str) -> Backend:
        return self._backend(self._registration(name))

    # Internals

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise ConfigurationError("initialize() must be called before syncing records")

    def _registration(self, name: str) -> Registration:
        try:
            return self._records[name]
        except KeyError:
            raise ConfigurationError(f"Unknown record: {name!r}") from None

    def _backend(self, reg: Registration) -> Backend:
        if reg.backend is None:
            reg.backend = self.resolver.resolve(reg.descriptor)
            self._check_sharing(reg)
        return reg.backend

    def _check_sharing(self, reg: Registration) -> None:
        """Reject records that cannot share the backend they resolved to."""
        assert reg.backend is not None
        for other in self._records.values():
            if other is reg or other.backend is None or other.backend.key != reg.backend.key:
                continue
            if reg.descriptor.strategy.dedicated or other.descriptor.strategy.dedicated:
                reg.backend = None
                raise ConfigurationError(
                    f"Records {other.name!r} and {reg.name!r} resolve to the same file but "
                    "embed/secure records need a dedicated file"
                )
            if other.descriptor.format is not reg.descriptor.format:
                reg.backend = None
                raise ConfigurationError(
                    f"Records {other.name!r} and {reg.name!r} share a file with different formats"
                )

    def _load(self, registrations: List[Registration]) -> LoadReport:
        report = LoadReport()
        groups: Dict[str, List[Registration]] = {}
        for reg in registrations:
            try:
                backend = self._backend(reg)
            except ConfigurationError as exc:
                logger.error("Cannot resolve backend for %s: %s", reg.name, exc)
                report.errors[reg.name] = exc
                self._record_baseline(reg)
                continue
            groups.setdefault(backend.key, []).append(reg)

        if not groups:
            return report

        # Reads are independent per backend; values are applied on this thread
        workers = min(self.config.load_workers, len(groups))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="persist-load") as pool:
            futures = {key: pool.submit(regs[0].backend.read) for key, regs in groups.items()}
            for key, regs in groups.items():
                try:
                    raw = futures[key].result()
                except PersistError as exc:
                    self._fail_group(regs, exc, report)
                    continue
                self._apply_group(regs, raw, report)
        return report

    def _apply_group(self, regs: List[Registration], raw: Optional[bytes], report: LoadReport) -> None:
        backend = regs[0].backend
        fmt = regs[0].descriptor.format
        if raw is None:
            for reg in regs:
                logger.debug("Nothing stored for %s; keeping default", reg.name)
                self._mark_default(reg, report)
            return
        try:
            container = codec.load_container(fmt, raw)
        except FormatError as exc:
            logger.error("Malformed persist data in %r: %s", backend, exc)
            for reg in regs:
                err = LoadError(reg.name, str(exc))
                err.__cause__ = exc
                report.errors[reg.name] = err
                self._record_baseline(reg)
            return

        for reg in regs:
            if reg.name not in container:
                self._mark_default(reg, report)
                continue
            payload = container[reg.name]
            try:
                serialized = codec.encode(fmt, payload)
                reg.accessor.write_value(payload)
            except (PersistError, TypeError, ValueError, KeyError) as exc:
                logger.error("Failed to apply persisted data for %s: %s", reg.name, exc)
                err = LoadError(reg.name, str(exc))
                err.__cause__ = exc
                report.errors[reg.name] = err
                self._record_baseline(reg)
                continue
            _, version = reg.accessor.read_current()
            self.snapshots.put(reg.name, SnapshotEntry(last_version=version, serialized=serialized))
            reg.load_attempted = True
            report.loaded.append(reg.name)
            logger.info("Loaded persisted data for %s", reg.name)

    def _fail_group(self, regs: List[Registration], exc: PersistError, report: LoadReport) -> None:
        logger.error("Failed to read persist data for %s: %s", [r.name for r in regs], exc)
        for reg in regs:
            report.errors[reg.name] = exc
            self._record_baseline(reg)

    def _mark_default(self, reg: Registration, report: LoadReport) -> None:
        # No snapshot entry: the record stays dirty so the first sync writes its default
        reg.load_attempted = True
        report.defaulted.append(reg.name)

    def _record_baseline(self, reg: Registration) -> None:
        # Stored data is unusable: keep the file as is until the value changes
        _, version = reg.accessor.read_current()
        self.snapshots.put(reg.name, SnapshotEntry(last_version=version, serialized=None))
        reg.load_attempted = True

    def _sync(self, pending: List[_Pending], report: SyncReport) -> None:
        groups: Dict[str, List[_Pending]] = {}
        backends: Dict[str, Backend] = {}
        for item in pending:
            reg = item[0]
            try:
                backend = self._backend(reg)
            except ConfigurationError as exc:
                logger.error("Cannot resolve backend for %s: %s", reg.name, exc)
                report.failures.append(BackendFailure(f"unresolved:{reg.name}", [reg.name], exc))
                continue
            groups.setdefault(backend.key, []).append(item)
            backends[backend.key] = backend

        for key, items in groups.items():
            names = [item[0].name for item in items]
            try:
                self._write_group(backends[key], items)
            except PersistError as exc:
                logger.error("Failed to sync %s to %s: %s", names, key, exc)
                report.failures.append(BackendFailure(key, names, exc))
                continue
            report.written.extend(names)
            logger.debug("Synced %s to %s", names, key)

    def _write_group(self, backend: Backend, items: List[_Pending]) -> None:
        """Merge ``items`` into the backend's container and write it once."""
        fmt = items[0][0].descriptor.format
        dedicated = any(reg.descriptor.strategy.dedicated for reg, _, _ in items)
        with backend.lock():
            container = {} if dedicated else self._read_for_merge(backend, fmt)
            staged: Dict[str, Tuple[int, str]] = {}
            for reg, value, version in items:
                staged[reg.name] = (version, codec.encode(fmt, value))
                container[reg.name] = value
            backend.write(codec.dump_container(fmt, container))
            for name, (version, serialized) in staged.items():
                self.snapshots.put(name, SnapshotEntry(last_version=version, serialized=serialized))

    def _read_for_merge(self, backend: Backend, fmt: Format) -> Dict[str, Any]:
        raw = backend.read()
        if raw is None:
            return {}
        try:
            return codec.load_container(fmt, raw)
        except FormatError as exc:
            # Keep what this process knows; unknown entries in the damaged file are lost
            logger.warning("Existing container %r is unreadable (%s); rebuilding from snapshots",
                           backend, exc)
            container: Dict[str, Any] = {}
            for reg in self._records.values():
                if reg.backend is None or reg.backend.key != backend.key:
                    continue
                entry = self.snapshots.get(reg.name)
                if entry is not None and entry.serialized is not None:
                    container[reg.name] = codec.decode(fmt, entry.serialized)
            return container

"""Host-side record accessors.

The manager never owns live values; it talks to them through a
:class:`RecordAccessor`. :class:`TrackedRecord` is a ready-made accessor for
hosts without their own change tracking: every mutation through it bumps the
version the manager compares against.
"""
from __future__ import annotations

import copy
import dataclasses
import threading
from contextlib import contextmanager
from typing import Any, Dict, Generic, Iterator, Protocol, Tuple, TypeVar

T = TypeVar("T")


class RecordAccessor(Protocol):
    def read_current(self) -> Tuple[Any, int]:
        """Return the current value as plain data and its change version."""
        ...

    def write_value(self, value: Any) -> None:
        """Apply a loaded payload to the live value."""
        ...


def to_plain(value: Any) -> Any:
    """Convert a record value into plain data the codecs understand."""
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    return value


def apply_payload(current: Any, payload: Any) -> Any:
    """Build a new value of ``current``'s type from a loaded payload.

    Types with a ``from_dict`` constructor use it. Dataclasses take the known
    fields from the payload and keep their current value for the rest; nested
    dataclass fields are rebuilt recursively. Anything else is replaced.
    """
    from_dict = getattr(type(current), "from_dict", None)
    if callable(from_dict) and isinstance(payload, dict):
        return from_dict(payload)
    if dataclasses.is_dataclass(current) and not isinstance(current, type):
        if not isinstance(payload, dict):
            raise TypeError(
                f"Expected a mapping for {type(current).__name__}, got {type(payload).__name__}"
            )
        updates: Dict[str, Any] = {}
        for f in dataclasses.fields(current):
            if f.name not in payload or not f.init:
                continue
            existing = getattr(current, f.name)
            if dataclasses.is_dataclass(existing) and isinstance(payload[f.name], dict):
                updates[f.name] = apply_payload(existing, payload[f.name])
            else:
                updates[f.name] = payload[f.name]
        return dataclasses.replace(current, **updates)
    return copy.deepcopy(payload)


class TrackedRecord(Generic[T]):
    """A live value plus a monotonically increasing change version.

    >>> rec = TrackedRecord(Settings(volume=0.5))
    >>> with rec.mutate() as s:
    ...     s.volume = 0.9
    """

    def __init__(self, value: T) -> None:
        self._value = value
        self._version = 0
        self._lock = threading.RLock()

    @property
    def value(self) -> T:
        return self._value

    @property
    def version(self) -> int:
        return self._version

    def set(self, value: T) -> None:
        with self._lock:
            self._value = value
            self._version += 1

    def mark_changed(self) -> None:
        """Bump the version after an in-place change made outside :meth:`mutate`."""
        with self._lock:
            self._version += 1

    @contextmanager
    def mutate(self) -> Iterator[T]:
        with self._lock:
            try:
                yield self._value
            finally:
                self._version += 1

    # RecordAccessor

    def read_current(self) -> Tuple[Any, int]:
        with self._lock:
            return to_plain(self._value), self._version

    def write_value(self, value: Any) -> None:
        with self._lock:
            self._value = apply_payload(self._value, value)
            self._version += 1

    def __repr__(self) -> str:
        return f"TrackedRecord({self._value!r}, version={self._version})"

from __future__ import annotations

from typing import List, Optional, Sequence


class PersistError(Exception):
    """Base exception for persistence errors."""


class LoadError(PersistError):
    """Raised when a record's stored data exists but cannot be loaded."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(f"Failed to load '{name}': {message}")
        self.name = name


class FormatError(PersistError):
    """Raised when encoding or decoding a payload fails.

    ``line`` and ``column`` are 1-based; ``offset`` is the 0-based character
    offset into the decoded text. They are None when the codec cannot locate
    the problem (e.g. encoding an unsupported value).
    """

    def __init__(
        self,
        message: str,
        *,
        line: Optional[int] = None,
        column: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> None:
        self.message = message
        self.line = line
        self.column = column
        self.offset = offset
        if line is not None and column is not None:
            message = f"{message} (line {line}, column {column})"
        super().__init__(message)


class ConfigurationError(PersistError):
    """Raised when a strategy needs configuration that was not supplied."""


class TamperError(PersistError):
    """Raised when sealed data fails authentication (corrupted or forged)."""


class IoError(PersistError):
    """Raised when a backend read or write fails at the OS level."""


class BackendFailure:
    """A write failure for one backend and the records that were pending on it."""

    def __init__(self, backend: str, names: Sequence[str], error: BaseException) -> None:
        self.backend = backend
        self.names = list(names)
        self.error = error

    def __repr__(self) -> str:
        return f"BackendFailure(backend={self.backend!r}, names={self.names!r}, error={self.error!r})"


class SyncError(PersistError):
    """Aggregate of per-backend write failures from a single sync pass."""

    def __init__(self, failures: List[BackendFailure]) -> None:
        summary = "; ".join(f"{f.backend}: {f.error}" for f in failures)
        super().__init__(f"{len(failures)} backend(s) failed to sync: {summary}")
        self.failures = failures

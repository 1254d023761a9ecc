"""Record descriptors and the descriptor table.

A descriptor states how one record type is persisted: its stable name, the
text format, the storage strategy and an optional path. Tables are built once
at startup, either by calling :meth:`DescriptorTable.add` per record or by
loading a YAML file such as::

    records:
      - name: Settings
        format: json
        strategy: dynamic
        path: settings.json
      - name: SaveGame
        strategy: secure
        auto_save: false
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Optional, Union

import yaml
from jsonschema import Draft202012Validator

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class Format(str, Enum):
    JSON = "json"
    RON = "ron"

    @property
    def extension(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Union[str, "Format"]) -> "Format":
        if isinstance(value, Format):
            return value
        return cls(value.strip().lower())

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "Format":
        """Infer the format from a file extension; anything but .ron is JSON."""
        suffixes = [s.lower() for s in Path(path).suffixes]
        if ".ron" in suffixes:
            return cls.RON
        return cls.JSON


class Strategy(str, Enum):
    DEV = "dev"
    DYNAMIC = "dynamic"
    EMBED = "embed"
    SECURE = "secure"

    @classmethod
    def parse(cls, value: Union[str, "Strategy"]) -> "Strategy":
        if isinstance(value, Strategy):
            return value
        return cls(value.strip().lower())

    @property
    def dedicated(self) -> bool:
        """Whether records with this strategy own a file rather than share a container."""
        return self in (Strategy.EMBED, Strategy.SECURE)


@dataclass(frozen=True)
class RecordDescriptor:
    name: str
    format: Format = Format.JSON
    strategy: Strategy = Strategy.DEV
    path: Optional[str] = None
    auto_save: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ConfigurationError("RecordDescriptor.name must be a non-empty string")
        # Accept plain strings for the enums; frozen requires object.__setattr__
        object.__setattr__(self, "format", Format.parse(self.format))
        object.__setattr__(self, "strategy", Strategy.parse(self.strategy))

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "RecordDescriptor":
        path = data.get("path")
        fmt = data.get("format")
        if fmt is None:
            fmt = Format.from_path(path) if path else Format.JSON
        return RecordDescriptor(
            name=data["name"],
            format=Format.parse(fmt),
            strategy=Strategy.parse(data.get("strategy", Strategy.DEV)),
            path=path,
            auto_save=bool(data.get("auto_save", True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "format": self.format.value,
            "strategy": self.strategy.value,
            "auto_save": self.auto_save,
        }
        if self.path is not None:
            data["path"] = self.path
        return data


class DescriptorTable:
    """Name-keyed, insertion-ordered collection of record descriptors."""

    def __init__(self, descriptors: Iterable[RecordDescriptor] = ()) -> None:
        self._by_name: Dict[str, RecordDescriptor] = {}
        for descriptor in descriptors:
            self.add(descriptor)

    def add(self, descriptor: RecordDescriptor) -> None:
        if descriptor.name in self._by_name:
            raise ConfigurationError(f"Duplicate record name: {descriptor.name!r}")
        self._by_name[descriptor.name] = descriptor

    def get(self, name: str) -> RecordDescriptor:
        try:
            return self._by_name[name]
        except KeyError:
            raise ConfigurationError(f"Unknown record: {name!r}") from None

    def names(self) -> list[str]:
        return list(self._by_name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[RecordDescriptor]:
        return iter(self._by_name.values())

    def __len__(self) -> int:
        return len(self._by_name)


@lru_cache(maxsize=1)
def _load_table_schema() -> Dict[str, Any]:
    entry = resources.files("persistkit.schemas").joinpath("descriptors.schema.json")
    with entry.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def validate_table_dict(data: Any) -> None:
    """Validate raw descriptor table data against the bundled JSON schema.

    Raises:
        ConfigurationError listing every schema violation.
    """
    validator = Draft202012Validator(_load_table_schema())
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    if errors:
        for err in errors:
            logger.error("Descriptor table error at %s: %s", list(err.path), err.message)
        details = "; ".join(
            f"{'/'.join(str(p) for p in e.path) or '<root>'}: {e.message}" for e in errors
        )
        raise ConfigurationError(f"Invalid descriptor table: {details}")


def table_from_dict(data: Any) -> DescriptorTable:
    validate_table_dict(data)
    return DescriptorTable(RecordDescriptor.from_dict(item) for item in data["records"])


def load_descriptor_table(path: Union[str, Path]) -> DescriptorTable:
    """Load a descriptor table from a YAML (or JSON) file."""
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    table = table_from_dict(raw)
    logger.info("Loaded %d record descriptor(s) from %s", len(table), path)
    return table

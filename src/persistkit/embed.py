"""Build-time helpers for the embed strategy.

During development an embed record lives in a local file that can be tuned
freely. Before packaging, :func:`bake_embedded` copies that record into the
package's resource directory; production builds then read it through
``importlib.resources`` and never write it.
"""
from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Any, Union

from . import codec
from .config import BuildMode, PersistConfig
from .descriptors import RecordDescriptor, Strategy
from .errors import ConfigurationError, LoadError
from .fs import atomic_write_bytes
from .records import to_plain
from .resolver import StrategyResolver, default_filename

logger = logging.getLogger(__name__)


def resource_name(descriptor: RecordDescriptor) -> str:
    return Path(descriptor.path or default_filename(descriptor)).name


def bake_blob(descriptor: RecordDescriptor, value: Any) -> bytes:
    """Encode ``value`` as the embedded blob for ``descriptor``."""
    return codec.dump_container(descriptor.format, {descriptor.name: to_plain(value)})


def bake_embedded(
    descriptor: RecordDescriptor,
    config: PersistConfig,
    destination: Union[str, Path],
) -> Path:
    """Copy an embed record's development file into ``destination``.

    Returns the path of the written resource.

    Raises:
        ConfigurationError if the descriptor is not an embed record.
        LoadError if the development file is missing or does not hold the record.
    """
    if descriptor.strategy is not Strategy.EMBED:
        raise ConfigurationError(f"Record {descriptor.name!r} does not use the embed strategy")
    dev_config = dataclasses.replace(config, build_mode=BuildMode.DEV)
    backend = StrategyResolver(dev_config).resolve(descriptor)
    raw = backend.read()
    if raw is None:
        raise LoadError(descriptor.name, f"nothing to embed at {backend!r}")
    container = codec.load_container(descriptor.format, raw)
    if descriptor.name not in container:
        raise LoadError(descriptor.name, f"{backend!r} has no entry for the record")

    target = Path(destination) / resource_name(descriptor)
    atomic_write_bytes(
        target, codec.dump_container(descriptor.format, {descriptor.name: container[descriptor.name]})
    )
    logger.info("Baked embedded record %s into %s", descriptor.name, target)
    return target

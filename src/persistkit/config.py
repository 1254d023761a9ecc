from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)


class BuildMode(str, Enum):
    DEV = "dev"
    PRODUCTION = "production"

    @classmethod
    def parse(cls, value: str) -> "BuildMode":
        normalized = value.strip().lower()
        if normalized in {"prod", "production", "release"}:
            return cls.PRODUCTION
        if normalized in {"dev", "development", "debug", ""}:
            return cls.DEV
        raise ValueError(f"Unknown build mode: {value!r}")


@dataclass
class PersistConfig:
    """Runtime configuration consumed by the strategy resolver.

    - build_mode: development builds keep everything in local files under
      ``base_dir``; production builds use platform directories, embedded
      blobs and encryption depending on the record's strategy
    - vendor/app: identity used to resolve platform directories
    - secret: passphrase for the secure strategy (never written to disk)
    - embed_package: package whose resources hold baked embed blobs
    - embedded_blobs: in-memory blobs keyed by record name; take precedence
      over package resources
    - load_workers: thread pool size for startup loads
    """

    build_mode: BuildMode = BuildMode.DEV
    vendor: Optional[str] = None
    app: Optional[str] = None
    base_dir: Path = field(default_factory=Path.cwd)
    secret: Optional[Union[str, bytes]] = field(default=None, repr=False)
    embed_package: Optional[str] = None
    embedded_blobs: Dict[str, bytes] = field(default_factory=dict, repr=False)
    load_workers: int = 4

    def __post_init__(self) -> None:
        self.base_dir = Path(self.base_dir)
        if isinstance(self.build_mode, str) and not isinstance(self.build_mode, BuildMode):
            self.build_mode = BuildMode.parse(self.build_mode)
        if self.load_workers < 1:
            raise ValueError("load_workers must be at least 1")

    @property
    def is_production(self) -> bool:
        return self.build_mode is BuildMode.PRODUCTION

    @property
    def has_app_info(self) -> bool:
        return bool(self.vendor) and bool(self.app)

    def with_app_info(self, vendor: str, app: str) -> "PersistConfig":
        return dataclasses.replace(self, vendor=vendor, app=app)

    def with_secret(self, secret: Union[str, bytes]) -> "PersistConfig":
        return dataclasses.replace(self, secret=secret)

    @staticmethod
    def from_env(environ: Optional[Dict[str, str]] = None) -> "PersistConfig":
        """Build a config from PERSISTKIT_* environment variables."""
        env = os.environ if environ is None else environ
        mode = BuildMode.parse(env.get("PERSISTKIT_MODE", "dev"))
        base_dir = env.get("PERSISTKIT_BASE_DIR")
        cfg = PersistConfig(
            build_mode=mode,
            vendor=env.get("PERSISTKIT_VENDOR") or None,
            app=env.get("PERSISTKIT_APP") or None,
            base_dir=Path(base_dir) if base_dir else Path.cwd(),
            secret=env.get("PERSISTKIT_SECRET") or None,
            embed_package=env.get("PERSISTKIT_EMBED_PACKAGE") or None,
        )
        logger.debug("Loaded persist config from environment: %s", cfg)
        return cfg

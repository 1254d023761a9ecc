import logging
import os
from typing import Optional, Union

LOG_LEVEL_ENV = "PERSISTKIT_LOG_LEVEL"
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"


def _resolve_level(value: Optional[str], default: int) -> int:
    if not value:
        return default
    value = value.strip()
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else default


def configure_logging(
    default_level: int = logging.INFO,
    package_level: Optional[Union[int, str]] = None,
) -> None:
    """Configure the root logger for hosts that have no logging setup of their own.

    PERSISTKIT_LOG_LEVEL (a level name or number) overrides ``default_level``.
    ``package_level`` tunes only the ``persistkit`` loggers, e.g. DEBUG to
    trace every resolved backend and write.
    """
    level = _resolve_level(os.getenv(LOG_LEVEL_ENV), default_level)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    if package_level is not None:
        logging.getLogger("persistkit").setLevel(package_level)

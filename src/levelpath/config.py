"""Environment-backed settings, read once at import after loading ``.env``."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Final

from dotenv import load_dotenv

from .exceptions import ConfigError

DEFAULT_DB_PATH = Path(".levelpath") / "progress.db"
DEFAULT_LOG_LEVEL = "WARNING"


def env_path(name: str, default: Path) -> Path:
    """Return a path variable, or ``default`` when unset or blank."""
    value = os.getenv(name)
    if not value or not value.strip():
        return default
    return Path(value.strip()).expanduser()


def env_log_level(name: str, default: str) -> int:
    """Return a logging level from a name such as ``INFO``."""
    value = (os.getenv(name) or default).strip().upper()
    level = logging.getLevelName(value)
    if not isinstance(level, int):
        raise ConfigError(name, "DEBUG, INFO, WARNING, ERROR or CRITICAL")
    return level


load_dotenv()

DB_PATH: Final[Path] = env_path("LEVELPATH_DB_PATH", DEFAULT_DB_PATH)
LOG_LEVEL: Final[int] = env_log_level("LEVELPATH_LOG_LEVEL", DEFAULT_LOG_LEVEL)

"""Configuration locations for shim."""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

APP_NAME = "shim"
SHIM_DIR_NAME = "shims"
SHIM_FILE_SUFFIXES = (".yaml", ".yml")

# Overrides the whole config dir (useful for tests and portable setups)
CONFIG_DIR_ENV = "SHIM_CONFIG_DIR"
# Log level name for the CLI, e.g. SHIM_LOG=debug
LOG_LEVEL_ENV = "SHIM_LOG"


def config_dir() -> Path:
    """``$SHIM_CONFIG_DIR``, else ``$XDG_CONFIG_HOME/shim``, else ``~/.config/shim``."""
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg).expanduser() if xdg else Path.home() / ".config"
    return base / APP_NAME


def shim_dir() -> Path:
    return config_dir() / SHIM_DIR_NAME


def discover_shim_files(directory: Path | None = None) -> list[Path]:
    """Shim files in ``directory`` (default: the config shim dir), sorted by name."""
    directory = directory or shim_dir()
    try:
        entries = list(directory.iterdir())
    except OSError as e:
        logger.warning("Shim dir inaccessible or does not exist (%s): %s", directory, e)
        return []

    files = sorted(p for p in entries if p.is_file() and p.suffix in SHIM_FILE_SUFFIXES)
    for path in files:
        logger.debug("Found shim file %s", path)
    return files

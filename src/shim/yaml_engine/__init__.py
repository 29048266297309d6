"""YAML Shim Pipeline — parse, validate, and compose shim files into a registry."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from shim.yaml_engine.composer import (
    ComposedShims,
    CompositionOverride,
    CompositionReport,
    compose_shim_files,
)
from shim.yaml_engine.loader import load_shim_file, load_shim_string

logger = logging.getLogger(__name__)


def load_registry(paths: Iterable[str | Path]) -> ComposedShims:
    """Load every shim file in order and compose them into one registry.

    Files that cannot be opened are logged and skipped. Files that open but
    are invalid raise ShimConfigError.
    """
    loaded: list[tuple[dict, str]] = []
    for source in paths:
        path = Path(source)
        try:
            data = load_shim_file(path)
        except OSError as e:
            logger.error("Unable to open %s: %s", path, e)
            continue
        logger.info("Reading shims from %s", path)
        loaded.append((data, str(path)))
    return compose_shim_files(*loaded)


__all__ = [
    "ComposedShims",
    "CompositionOverride",
    "CompositionReport",
    "compose_shim_files",
    "load_registry",
    "load_shim_file",
    "load_shim_string",
]

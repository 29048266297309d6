"""Shim File Loader — parse and validate YAML shim files against JSON Schema."""

from __future__ import annotations

import importlib.resources as _resources
import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml

MAX_SHIM_FILE_SIZE = 1_048_576  # 1 MB

# Lazy-loaded schema singleton
_schema_cache: dict | None = None


def _get_schema() -> dict:
    """Load and cache the JSON Schema for validation."""
    global _schema_cache  # noqa: PLW0603
    if _schema_cache is None:
        schema_text = _resources.files("shim.yaml_engine").joinpath("shim-v1.schema.json").read_text(encoding="utf-8")
        _schema_cache = json.loads(schema_text)
    return _schema_cache


def _validate_schema(data: dict) -> None:
    """Validate a parsed shim file against the shim JSON Schema."""
    from shim import ShimConfigError

    schema = _get_schema()
    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path)
        where = f" at '{location}'" if location else ""
        raise ShimConfigError(f"Schema validation failed{where}: {e.message}") from e


def _validate_unique_programs(data: dict) -> None:
    """Ensure each program appears at most once within a file."""
    from shim import ShimConfigError

    programs: set[str] = set()
    for entry in data.get("shims", []):
        program = entry.get("program")
        if program in programs:
            raise ShimConfigError(f"Duplicate shim for program '{program}'")
        programs.add(program)


def _validate_env(data: dict) -> None:
    """Parse every env assignment so malformed ones fail at load time."""
    from shim.model import parse_env

    for entry in data.get("shims", []):
        parse_env(entry.get("env") or ())
        for key in ("pre", "override", "post"):
            for hook in entry.get(key) or ():
                parse_env(hook.get("env") or ())


def _parse(raw_bytes: bytes) -> dict[str, Any]:
    from shim import ShimConfigError

    try:
        data = yaml.safe_load(raw_bytes)
    except yaml.YAMLError as e:
        raise ShimConfigError(f"YAML parse error: {e}") from e

    if data is None:
        data = {"shims": []}
    elif isinstance(data, list):
        # A bare list of shims is accepted as shorthand
        data = {"shims": data}

    if not isinstance(data, dict):
        raise ShimConfigError("YAML document must be a mapping with a 'shims' list")

    _validate_schema(data)
    _validate_unique_programs(data)
    _validate_env(data)

    return data


def load_shim_file(source: str | Path) -> dict[str, Any]:
    """Load and validate a YAML shim file.

    Args:
        source: Path to a YAML file.

    Returns:
        The parsed document, normalized to ``{"shims": [...]}``.

    Raises:
        ShimConfigError: If the YAML is invalid, fails schema validation,
            repeats a program, or has a malformed env assignment.
        OSError: If the file cannot be read.
    """
    from shim import ShimConfigError

    path = Path(source)

    file_size = path.stat().st_size
    if file_size > MAX_SHIM_FILE_SIZE:
        raise ShimConfigError(f"Shim file too large ({file_size} bytes, max {MAX_SHIM_FILE_SIZE})")

    return _parse(path.read_bytes())


def load_shim_string(content: str | bytes) -> dict[str, Any]:
    """Load and validate a YAML shim document from a string or bytes.

    Like :func:`load_shim_file` but accepts YAML content directly.
    """
    from shim import ShimConfigError

    if isinstance(content, str):
        raw_bytes = content.encode("utf-8")
    else:
        raw_bytes = content

    if len(raw_bytes) > MAX_SHIM_FILE_SIZE:
        raise ShimConfigError(f"Shim content too large ({len(raw_bytes)} bytes, max {MAX_SHIM_FILE_SIZE})")

    return _parse(raw_bytes)

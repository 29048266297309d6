"""Shim Composer — merge several parsed shim files into one registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from shim.model import Shim, ShimRegistry


@dataclass(frozen=True)
class CompositionOverride:
    """Records a shim that was replaced during composition."""

    program: str
    overridden_by: str  # source label of the winning file
    original_source: str  # source label of the replaced file


@dataclass(frozen=True)
class CompositionReport:
    """Report of what happened during composition."""

    overridden_shims: list[CompositionOverride] = field(default_factory=list)


@dataclass(frozen=True)
class ComposedShims:
    """Result of composing multiple shim files."""

    registry: ShimRegistry
    report: CompositionReport


def compose_shim_files(*files: tuple[dict[str, Any], str]) -> ComposedShims:
    """Merge parsed shim files left to right.

    Each file is a tuple of (parsed_dict, source_label). A later file that
    defines the same program replaces the earlier shim entirely; hook lists
    are never merged.

    Args:
        *files: Tuples of (shim_file_data, source_label).

    Returns:
        ComposedShims with the registry and a composition report.
    """
    overrides: list[CompositionOverride] = []
    merged: dict[str, Shim] = {}

    for data, label in files:
        for entry in data.get("shims", []):
            shim = Shim.from_dict(entry, source=label)
            previous = merged.get(shim.program)
            if previous is not None:
                overrides.append(
                    CompositionOverride(
                        program=shim.program,
                        overridden_by=label,
                        original_source=previous.source or "",
                    )
                )
            merged[shim.program] = shim

    return ComposedShims(
        registry=ShimRegistry(merged),
        report=CompositionReport(overridden_shims=overrides),
    )

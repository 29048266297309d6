"""Shell function generator — wrap each shimmed program in a function calling ``shim exec``."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from shim.model import Shim, ShimRegistry

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def shell_function(shim: Shim, timestamp: str, shim_executable: str | Path) -> str:
    """Render one POSIX shell function that routes ``program`` through ``shim exec``."""
    source = shim.source or "<unknown>"
    return (
        f"function {shim.program}(){{\n"
        f"    # Shim for {shim.program}\n"
        f"    # Created automatically by {shim_executable}\n"
        f"    #    from config file {source}\n"
        f"    #    at {timestamp}\n"
        f'    shim exec -- {shim.program} "$@"\n'
        f"}}"
    )


def generate_shell_functions(
    registry: ShimRegistry,
    shim_executable: str | Path,
    now: datetime | None = None,
) -> str:
    timestamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
    return "\n".join(shell_function(registry[program], timestamp, shim_executable) for program in registry.programs())

"""Hook executor — placeholder substitution and line-by-line execution."""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable, Mapping, Sequence

from shim.runner import ExecutionOutcome, OutputSink, run_command

logger = logging.getLogger(__name__)

Runner = Callable[..., Awaitable[ExecutionOutcome]]

# "$@" and its braced form "${@}". Positional and slice forms are not supported.
_ARGS_PLACEHOLDER = re.compile(r"\$\{@\}|\$@")


def substitute_args(body: str, args: Sequence[str]) -> str:
    """Replace every ``$@`` / ``${@}`` in ``body`` with ``args`` joined by spaces.

    No quoting is applied: an argument containing whitespace is split again
    when the resulting line is tokenized.
    """
    joined = " ".join(args)
    return _ARGS_PLACEHOLDER.sub(lambda _m: joined, body)


def split_command_lines(body: str) -> list[list[str]]:
    """Split a hook body into command token lists, skipping blanks and ``#`` comments."""
    commands: list[list[str]] = []
    for line in body.split("\n"):
        line = line.strip()
        if not line:
            continue
        if line.startswith("#"):
            logger.debug("Skipping comment %s", line)
            continue
        commands.append(line.split())
    return commands


async def execute_hook(
    body: str,
    args: Sequence[str],
    env: Mapping[str, str] | None = None,
    runner: Runner = run_command,
    sink: OutputSink | None = None,
) -> list[ExecutionOutcome]:
    """Run each command line of a hook body in order, stopping at the first failure.

    Returns:
        The outcomes of every line that ran (all successful).

    Raises:
        HookFailure: When a line exits non-zero; remaining lines never run.
            Its ``outcomes`` holds every line that ran, the failing one last.
    """
    from shim import HookFailure

    outcomes: list[ExecutionOutcome] = []
    for parts in split_command_lines(substitute_args(body, args)):
        outcome = await runner(parts[0], parts[1:], env=env, sink=sink)
        outcomes.append(outcome)
        if not outcome.success:
            raise HookFailure(outcome, body, outcomes)
    return outcomes

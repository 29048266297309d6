"""shim — Run hooks before, after, or instead of existing programs."""

from __future__ import annotations

from collections.abc import Sequence
from importlib.metadata import version as _pkg_version

try:
    __version__ = _pkg_version("shim")
except Exception:  # pragma: no cover — editable installs, test envs
    __version__ = "0.0.0-dev"

from shim.dispatcher import DispatchPhase, DispatchReport, Dispatcher, Invocation, select_hooks
from shim.hooks import execute_hook, split_command_lines, substitute_args
from shim.model import Shim, ShimRegistry, SubcommandHook, parse_env
from shim.runner import CollectingSink, ExecutionOutcome, OutputSink, TerminalSink, run_command

__all__ = [
    "__version__",
    "Shim",
    "SubcommandHook",
    "ShimRegistry",
    "parse_env",
    "ExecutionOutcome",
    "OutputSink",
    "TerminalSink",
    "CollectingSink",
    "run_command",
    "substitute_args",
    "split_command_lines",
    "execute_hook",
    "Dispatcher",
    "DispatchPhase",
    "DispatchReport",
    "Invocation",
    "select_hooks",
    "ShimError",
    "ShimConfigError",
    "ProgramNotFound",
    "NoShimRegistered",
    "SpawnFailed",
    "StreamReadFailed",
    "ProcessFailed",
    "HookFailure",
    "ExitNonZero",
]


class ShimError(Exception):
    """Base class for every error raised by shim."""

    pass


class ShimConfigError(ShimError):
    """Raised for configuration/load-time errors (invalid YAML, schema failures, etc.)."""

    pass


class ProgramNotFound(ShimError):  # noqa: N818
    """Raised when a program cannot be resolved on the system search path."""

    def __init__(self, program: str):
        self.program = program
        super().__init__(f"Unable to find '{program}' on the system path")


class NoShimRegistered(ShimError):  # noqa: N818
    """Raised when the invoked program has no shim in the registry."""

    def __init__(self, program: str):
        self.program = program
        super().__init__(f"No registered shim for '{program}'")


class SpawnFailed(ShimError):  # noqa: N818
    """Raised when the OS refuses to start a child process."""

    def __init__(self, command: tuple[str, ...], cause: BaseException):
        self.command = command
        self.cause = cause
        super().__init__(f"Failed to spawn '{' '.join(command)}': {cause}")


class StreamReadFailed(ShimError):  # noqa: N818
    """Raised when reading a child's stdout/stderr fails."""

    def __init__(self, command: tuple[str, ...], cause: BaseException):
        self.command = command
        self.cause = cause
        super().__init__(f"Failed reading output of '{' '.join(command)}': {cause}")


class ProcessFailed(ShimError):  # noqa: N818
    """A process finished with a non-success outcome."""

    def __init__(self, outcome: ExecutionOutcome, message: str):
        self.outcome = outcome
        # Set by the dispatcher: everything that ran before the failure
        self.report: DispatchReport | None = None
        super().__init__(message)

    @property
    def returncode(self) -> int:
        return self.outcome.returncode


class HookFailure(ProcessFailed):
    """Raised when a line of a hook body exits non-zero."""

    def __init__(self, outcome: ExecutionOutcome, body: str, outcomes: Sequence[ExecutionOutcome] = ()):
        self.body = body
        # Every line of the hook that ran, the failing one last
        self.outcomes = tuple(outcomes) or (outcome,)
        super().__init__(outcome, f"Hook command '{outcome.display()}' failed ({outcome.describe()})")


class ExitNonZero(ProcessFailed):
    """Raised when the original program exits non-zero."""

    def __init__(self, outcome: ExecutionOutcome):
        super().__init__(outcome, f"'{outcome.display()}' failed ({outcome.describe()})")

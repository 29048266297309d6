"""Dispatcher — single source of hook-dispatch logic."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from shim.hooks import Runner, execute_hook
from shim.model import Shim, ShimRegistry, SubcommandHook
from shim.runner import ExecutionOutcome, OutputSink, run_command

logger = logging.getLogger(__name__)


class DispatchPhase(StrEnum):
    IDLE = "idle"
    PRE_HOOKS = "pre_hooks"
    OVERRIDE = "override"
    ORIGINAL_PROGRAM = "original_program"
    POST_HOOKS = "post_hooks"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class Invocation:
    """The command line the user typed."""

    program: str
    args: tuple[str, ...] = ()

    @property
    def first_arg(self) -> str:
        """Subcommand token, or "" when there are no arguments."""
        return self.args[0] if self.args else ""


@dataclass
class DispatchReport:
    """Record of a completed dispatch."""

    invocation: Invocation
    resolved: str
    phases: list[DispatchPhase] = field(default_factory=list)
    outcomes: list[ExecutionOutcome] = field(default_factory=list)


def select_hooks(hooks: Sequence[SubcommandHook], first_arg: str) -> list[SubcommandHook]:
    """Hooks that apply to ``first_arg``, in list order."""
    return [hook for hook in hooks if hook.matches(first_arg)]


class Dispatcher:
    """Drives pre-hooks, the override or original program, and post-hooks.

    The registry is borrowed read-only. Each process runs to completion
    before the next starts, and the first failure ends the dispatch.
    """

    def __init__(
        self,
        registry: ShimRegistry,
        runner: Runner = run_command,
        sink: OutputSink | None = None,
    ):
        self._registry = registry
        self._runner = runner
        self._sink = sink
        self.phase = DispatchPhase.IDLE

    async def dispatch(self, program: str, args: Sequence[str] = ()) -> DispatchReport:
        """Run ``program`` with ``args`` through its shim.

        Raises:
            ProgramNotFound: If ``program`` does not resolve on PATH.
            NoShimRegistered: If no shim exists for the program's base name.
            HookFailure: If a hook line exits non-zero.
            ExitNonZero: If the original program exits non-zero.

        Both failures carry the partial report on ``report``, including the
        outcome that failed.
        """
        from shim import ProcessFailed, ProgramNotFound

        invocation = Invocation(program=program, args=tuple(args))
        logger.debug("command: %s, args: %s", program, list(invocation.args))

        self.phase = DispatchPhase.IDLE
        try:
            resolved = shutil.which(program)
            if resolved is None:
                raise ProgramNotFound(program)
            shim = self._lookup(Path(resolved).name, resolved)
            report = DispatchReport(invocation=invocation, resolved=resolved)
            await self._run(shim, invocation, report)
        except ProcessFailed as e:
            self.phase = DispatchPhase.FAILED
            e.report = report
            raise
        except Exception:
            self.phase = DispatchPhase.FAILED
            raise

        self.phase = DispatchPhase.DONE
        return report

    def _lookup(self, command_name: str, resolved: str) -> Shim:
        from shim import NoShimRegistered

        shim = self._registry.get(command_name)
        if shim is None:
            logger.error("No registered shim for '%s'", resolved)
            raise NoShimRegistered(command_name)
        return shim

    async def _run(self, shim: Shim, invocation: Invocation, report: DispatchReport) -> None:
        from shim import ExitNonZero

        first_arg = invocation.first_arg
        shim_env = shim.env_vars()

        self.phase = DispatchPhase.PRE_HOOKS
        await self._run_hooks(select_hooks(shim.pre_hooks(), first_arg), invocation, shim_env, report)

        overrides = select_hooks(shim.override_hooks(), first_arg)
        if overrides:
            self.phase = DispatchPhase.OVERRIDE
            await self._run_hooks(overrides, invocation, shim_env, report)
        else:
            self.phase = DispatchPhase.ORIGINAL_PROGRAM
            outcome = await self._runner(
                report.resolved,
                list(invocation.args),
                env=shim_env or None,
                sink=self._sink,
            )
            report.outcomes.append(outcome)
            if not outcome.success:
                raise ExitNonZero(outcome)
            report.phases.append(self.phase)

        self.phase = DispatchPhase.POST_HOOKS
        await self._run_hooks(select_hooks(shim.post_hooks(), first_arg), invocation, shim_env, report)

    async def _run_hooks(
        self,
        hooks: list[SubcommandHook],
        invocation: Invocation,
        shim_env: dict[str, str],
        report: DispatchReport,
    ) -> None:
        from shim import HookFailure

        for hook in hooks:
            env = {**shim_env, **hook.env_vars()}
            try:
                outcomes = await execute_hook(
                    hook.run,
                    invocation.args,
                    env=env or None,
                    runner=self._runner,
                    sink=self._sink,
                )
            except HookFailure as e:
                report.outcomes.extend(e.outcomes)
                raise
            report.outcomes.extend(outcomes)
        report.phases.append(self.phase)

"""Shared test fixtures."""

from __future__ import annotations

import pytest

from shim import Shim, ShimRegistry, SubcommandHook
from shim.runner import ExecutionOutcome


class FakeRunner:
    """Runner that records commands instead of spawning them (for tests).

    ``exit_codes`` maps a command's first token to the exit code it returns;
    anything not listed succeeds.
    """

    def __init__(self, exit_codes: dict[str, int] | None = None):
        self.exit_codes = exit_codes or {}
        self.calls: list[tuple[str, ...]] = []
        self.envs: list[dict | None] = []

    async def __call__(self, executable, args=(), env=None, sink=None):
        command = (executable, *args)
        self.calls.append(command)
        self.envs.append(dict(env) if env else None)
        return ExecutionOutcome(command=command, returncode=self.exit_codes.get(executable, 0))

    def lines(self) -> list[str]:
        return [" ".join(c) for c in self.calls]


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def fake_which(monkeypatch):
    """Resolve every program to /usr/bin/<name> without touching PATH."""
    monkeypatch.setattr("shim.dispatcher.shutil.which", lambda program: f"/usr/bin/{program}")


@pytest.fixture
def git_shim():
    return Shim(
        program="git",
        pre=(SubcommandHook(run="echo pre"),),
        override=(),
        post=(SubcommandHook(run="echo pushed", on_subcommand="push"),),
    )


@pytest.fixture
def git_registry(git_shim):
    return ShimRegistry.from_shims([git_shim])

"""Tests for the Dispatcher — pre, override/original, post flows."""

from __future__ import annotations

import pytest

from shim import (
    CollectingSink,
    Dispatcher,
    DispatchPhase,
    ExitNonZero,
    HookFailure,
    Invocation,
    NoShimRegistered,
    ProgramNotFound,
    Shim,
    ShimRegistry,
    SubcommandHook,
    select_hooks,
)
from tests.conftest import FakeRunner


def make_registry(**shim_kwargs) -> ShimRegistry:
    shim_kwargs.setdefault("program", "git")
    return ShimRegistry.from_shims([Shim(**shim_kwargs)])


def hook(run: str, on: str | None = None, env: tuple[str, ...] = ()) -> SubcommandHook:
    return SubcommandHook(run=run, on_subcommand=on, env=env)


class TestInvocation:
    def test_first_arg(self):
        assert Invocation("git", ("push", "origin")).first_arg == "push"

    def test_first_arg_empty_without_args(self):
        assert Invocation("git").first_arg == ""


class TestSelectHooks:
    def test_keeps_list_order(self):
        hooks = [hook("echo a", "build"), hook("echo b"), hook("echo c", "build")]
        assert [h.run for h in select_hooks(hooks, "build")] == ["echo a", "echo c"]

    def test_default_only_without_subcommand(self):
        hooks = [hook("echo a", "build"), hook("echo b")]
        assert [h.run for h in select_hooks(hooks, "")] == ["echo b"]


@pytest.mark.usefixtures("fake_which")
class TestDispatch:
    async def test_empty_shim_runs_only_original_program(self, fake_runner):
        dispatcher = Dispatcher(make_registry(), runner=fake_runner)
        report = await dispatcher.dispatch("git", ["status", "-s"])
        assert fake_runner.lines() == ["/usr/bin/git status -s"]
        assert report.phases == [DispatchPhase.PRE_HOOKS, DispatchPhase.ORIGINAL_PROGRAM, DispatchPhase.POST_HOOKS]
        assert dispatcher.phase == DispatchPhase.DONE

    async def test_push_runs_original_then_scoped_post(self, git_registry, fake_runner):
        await Dispatcher(git_registry, runner=fake_runner).dispatch("git", ["push", "origin", "main"])
        # the unscoped pre-hook only fires when there is no subcommand
        assert fake_runner.lines() == ["/usr/bin/git push origin main", "echo pushed"]

    async def test_status_skips_push_post_hook(self, git_registry, fake_runner):
        await Dispatcher(git_registry, runner=fake_runner).dispatch("git", ["status"])
        assert fake_runner.lines() == ["/usr/bin/git status"]

    async def test_no_args_runs_default_pre_hook(self, git_registry, fake_runner):
        await Dispatcher(git_registry, runner=fake_runner).dispatch("git", [])
        assert fake_runner.lines() == ["echo pre", "/usr/bin/git"]

    async def test_scoped_pre_override_post_order(self, fake_runner):
        registry = make_registry(
            pre=(hook("echo pre1", "build"), hook("echo skipped", "test"), hook("echo pre2", "build")),
            override=(hook("make $@", "build"),),
            post=(hook("echo post", "build"),),
        )
        report = await Dispatcher(registry, runner=fake_runner).dispatch("git", ["build", "-j4"])
        assert fake_runner.lines() == ["echo pre1", "echo pre2", "make build -j4", "echo post"]
        assert DispatchPhase.OVERRIDE in report.phases
        assert len(report.outcomes) == 4

    async def test_override_replaces_original_program(self, fake_runner):
        registry = make_registry(override=(hook("# nothing to do", "push"),))
        await Dispatcher(registry, runner=fake_runner).dispatch("git", ["push"])
        assert fake_runner.calls == []

    async def test_non_matching_override_falls_back_to_original(self, fake_runner):
        registry = make_registry(override=(hook("echo override", "push"),))
        await Dispatcher(registry, runner=fake_runner).dispatch("git", ["pull"])
        assert fake_runner.lines() == ["/usr/bin/git pull"]

    async def test_pre_hook_failure_aborts_everything(self):
        runner = FakeRunner(exit_codes={"false": 1})
        registry = make_registry(
            pre=(hook("false\necho never", "push"), hook("echo also-never", "push")),
            override=(hook("echo override", "push"),),
            post=(hook("echo post", "push"),),
        )
        dispatcher = Dispatcher(registry, runner=runner)
        with pytest.raises(HookFailure):
            await dispatcher.dispatch("git", ["push"])
        assert runner.lines() == ["false"]
        assert dispatcher.phase == DispatchPhase.FAILED

    async def test_original_failure_skips_post_hooks(self):
        runner = FakeRunner(exit_codes={"/usr/bin/git": 128})
        registry = make_registry(post=(hook("echo post", "push"),))
        with pytest.raises(ExitNonZero) as exc_info:
            await Dispatcher(registry, runner=runner).dispatch("git", ["push"])
        assert exc_info.value.returncode == 128
        assert runner.lines() == ["/usr/bin/git push"]

    async def test_override_failure_skips_post_hooks(self):
        runner = FakeRunner(exit_codes={"false": 1})
        registry = make_registry(override=(hook("false", "push"),), post=(hook("echo post", "push"),))
        with pytest.raises(HookFailure):
            await Dispatcher(registry, runner=runner).dispatch("git", ["push"])
        assert runner.lines() == ["false"]

    async def test_post_hook_failure_reported(self):
        runner = FakeRunner(exit_codes={"false": 2})
        registry = make_registry(post=(hook("false", "push"), hook("echo after", "push")))
        with pytest.raises(HookFailure) as exc_info:
            await Dispatcher(registry, runner=runner).dispatch("git", ["push"])
        assert exc_info.value.returncode == 2
        assert runner.lines() == ["/usr/bin/git push", "false"]

    async def test_hook_failure_carries_partial_report(self):
        runner = FakeRunner(exit_codes={"false": 4})
        registry = make_registry(
            pre=(hook("echo a", "push"),),
            post=(hook("echo b\nfalse\necho never", "push"),),
        )
        with pytest.raises(HookFailure) as exc_info:
            await Dispatcher(registry, runner=runner).dispatch("git", ["push"])
        report = exc_info.value.report
        assert report is not None
        assert [o.display() for o in report.outcomes] == ["echo a", "/usr/bin/git push", "echo b", "false"]
        assert report.phases == [DispatchPhase.PRE_HOOKS, DispatchPhase.ORIGINAL_PROGRAM]

    async def test_program_failure_carries_partial_report(self):
        runner = FakeRunner(exit_codes={"/usr/bin/git": 1})
        registry = make_registry(pre=(hook("echo a", "push"),))
        with pytest.raises(ExitNonZero) as exc_info:
            await Dispatcher(registry, runner=runner).dispatch("git", ["push"])
        assert [o.returncode for o in exc_info.value.report.outcomes] == [0, 1]

    async def test_hook_receives_substituted_args(self, fake_runner):
        registry = make_registry(pre=(hook("echo running git $@", "commit"),))
        await Dispatcher(registry, runner=fake_runner).dispatch("git", ["commit", "-m", "msg"])
        assert fake_runner.calls[0] == ("echo", "running", "git", "commit", "-m", "msg")

    async def test_env_layering(self, fake_runner):
        registry = make_registry(
            env=("A=shim", "B=shim"),
            pre=(hook("echo pre", "push", env=("B=hook",)),),
        )
        await Dispatcher(registry, runner=fake_runner).dispatch("git", ["push"])
        assert fake_runner.envs == [{"A": "shim", "B": "hook"}, {"A": "shim", "B": "shim"}]

    async def test_no_env_passes_none(self, fake_runner):
        await Dispatcher(make_registry(), runner=fake_runner).dispatch("git", [])
        assert fake_runner.envs == [None]

    async def test_no_shim_registered(self, fake_runner):
        dispatcher = Dispatcher(make_registry(program="hg"), runner=fake_runner)
        with pytest.raises(NoShimRegistered) as exc_info:
            await dispatcher.dispatch("git", ["status"])
        assert exc_info.value.program == "git"
        assert fake_runner.calls == []
        assert dispatcher.phase == DispatchPhase.FAILED

    async def test_lookup_uses_base_name_of_resolved_path(self, fake_runner, monkeypatch):
        monkeypatch.setattr("shim.dispatcher.shutil.which", lambda program: "/opt/tools/git")
        report = await Dispatcher(make_registry(), runner=fake_runner).dispatch("./git", ["log"])
        assert report.resolved == "/opt/tools/git"
        assert fake_runner.lines() == ["/opt/tools/git log"]


class TestDispatchResolution:
    async def test_program_not_found(self, fake_runner):
        dispatcher = Dispatcher(make_registry(program="nope-xyz"), runner=fake_runner)
        with pytest.raises(ProgramNotFound):
            await dispatcher.dispatch("nope-xyz", [])
        assert fake_runner.calls == []

    async def test_real_processes_end_to_end(self):
        registry = ShimRegistry.from_shims(
            [
                Shim(
                    program="sh",
                    env=("SHIM_E2E=from-shim",),
                    pre=(hook("echo pre $@", "-c"),),
                    post=(hook("echo post", "-c"),),
                )
            ]
        )
        sink = CollectingSink()
        report = await Dispatcher(registry, sink=sink).dispatch("sh", ["-c", 'echo "main $SHIM_E2E"'])
        assert sink.text() == ['pre -c echo "main $SHIM_E2E"', "main from-shim", "post"]
        assert all(o.success for o in report.outcomes)

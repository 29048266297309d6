"""shim CLI — list, generate, exec, and check program shims."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from shim import ProcessFailed, ShimConfigError, ShimError
from shim.config import LOG_LEVEL_ENV, config_dir, discover_shim_files, shim_dir
from shim.dispatcher import Dispatcher
from shim.generate import generate_shell_functions
from shim.model import SubcommandHook
from shim.yaml_engine import ComposedShims, load_registry, load_shim_file

_console = Console(highlight=False)
_err_console = Console(stderr=True, highlight=False)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _configure_logging(verbose: int) -> None:
    """Log to stderr; ``-v`` raises verbosity, ``SHIM_LOG`` names a level outright."""
    level_name = os.environ.get(LOG_LEVEL_ENV)
    level = logging.getLevelName(level_name.upper()) if level_name else None
    if not isinstance(level, int):
        level = {0: logging.WARNING, 1: logging.INFO}.get(verbose, logging.DEBUG)
    logging.basicConfig(stream=sys.stderr, level=level, format="%(levelname)s %(name)s: %(message)s")


def _shim_files(ctx: click.Context) -> list[Path]:
    """Files given with ``--file`` first, then the config dir, so later sources win."""
    files = [Path(f) for f in ctx.obj["files"]]
    return files + discover_shim_files()


def _load(ctx: click.Context) -> ComposedShims:
    try:
        return load_registry(_shim_files(ctx))
    except ShimConfigError as e:
        _err_console.print(f"[red]Failed to load shims: {escape(str(e))}[/red]")
        sys.exit(1)


def _format_hook(hook: SubcommandHook) -> str:
    scope = hook.on_subcommand if hook.on_subcommand is not None else "(no subcommand)"
    body = "; ".join(line.strip() for line in hook.run.strip().splitlines() if line.strip())
    env = f" env={list(hook.env)}" if hook.env else ""
    return f"[{scope}] {body}{env}"


def _print_composition_report(composed: ComposedShims) -> None:
    """Print which shims were replaced by later files."""
    overridden = composed.report.overridden_shims
    if not overridden:
        return

    _console.print("\n[bold]Composition report:[/bold]")
    for o in overridden:
        _console.print(
            f"  ⇄ {escape(o.program)} — overridden by "
            f"{escape(o.overridden_by)} (was in {escape(o.original_source)})"
        )


def _exit_code(error: ProcessFailed) -> int:
    """Shell convention: the child's code, or 128 + signal when it was killed."""
    if error.outcome.signal is not None:
        return 128 + error.outcome.signal
    return error.returncode or 1


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group(invoke_without_command=True)
@click.option(
    "-f",
    "--file",
    "files",
    multiple=True,
    type=click.Path(dir_okay=False),
    help="Shim file to read (repeatable; read before the config dir).",
)
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (-v info, -vv debug).")
@click.pass_context
def cli(ctx: click.Context, files: tuple[str, ...], verbose: int) -> None:
    """shim — Run hooks before, after, or instead of existing programs."""
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["files"] = files
    if ctx.invoked_subcommand is None:
        ctx.invoke(list_cmd)


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command()
def version() -> None:
    """Show the installed shim version."""
    from shim import __version__

    click.echo(f"shim {__version__}")


# ---------------------------------------------------------------------------
# list
# ---------------------------------------------------------------------------


@cli.command("list")
@click.option("--json", "json_output", is_flag=True, default=False, help="Output shims as JSON.")
@click.pass_context
def list_cmd(ctx: click.Context, json_output: bool = False) -> None:
    """Show all registered shims and their hooks."""
    composed = _load(ctx)
    registry = composed.registry

    if json_output:
        output = []
        for program in registry.programs():
            shim = registry[program]
            entry = shim.to_dict()
            entry["source"] = shim.source
            output.append(entry)
        click.echo(json.dumps(output, indent=2))
        return

    if not registry:
        _console.print(f"[dim]No shims registered (looked in {escape(str(shim_dir()))}).[/dim]")
        return

    sections = (("Pre-hooks", "pre"), ("Overrides", "override"), ("Post-hooks", "post"))
    for program in registry.programs():
        shim = registry[program]
        _console.print(f"[bold]> {escape(program)}[/bold] [dim]({escape(shim.source or '?')})[/dim]")
        if shim.env:
            _console.print(f"  * Env: {escape(', '.join(shim.env))}")
        for title, key in sections:
            hooks = getattr(shim, key)
            if not hooks:
                continue
            _console.print(f"  * {title}:")
            for hook in hooks:
                _console.print(f"    - {escape(_format_hook(hook))}")

    _print_composition_report(composed)


# ---------------------------------------------------------------------------
# generate
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def generate(ctx: click.Context) -> None:
    """Generate shims as shell functions (eval the output in your shell rc)."""
    composed = _load(ctx)
    executable = shutil.which("shim") or sys.argv[0]
    output = generate_shell_functions(composed.registry, Path(executable).resolve())
    if output:
        click.echo(output)


# ---------------------------------------------------------------------------
# exec
# ---------------------------------------------------------------------------


@cli.command(
    "exec",
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False},
)
@click.argument("trailing_args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def exec_cmd(ctx: click.Context, trailing_args: tuple[str, ...]) -> None:
    """Run a program with its shims: shim exec -- <program> [args...]

    Exit code 0: the program and every hook succeeded.
    Exit code N: the failing hook or program exited with N.
    Exit code 1: program not found, no shim registered, or bad config.
    Exit code 2: nothing to exec.
    """
    if not trailing_args:
        _err_console.print("[red]Nothing to exec.[/red]")
        sys.exit(2)

    program, *args = trailing_args
    composed = _load(ctx)
    dispatcher = Dispatcher(composed.registry)

    try:
        asyncio.run(dispatcher.dispatch(program, args))
    except ProcessFailed as e:
        _err_console.print(f"[red]{escape(str(e))}[/red]")
        sys.exit(_exit_code(e))
    except ShimError as e:
        _err_console.print(f"[red]{escape(str(e))}[/red]")
        sys.exit(1)


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--init", is_flag=True, default=False, help="Create the shim config dir if missing.")
@click.pass_context
def check(ctx: click.Context, init: bool) -> None:
    """Check that the environment is set up.

    Verifies the config dir exists, every shim file loads, every shimmed
    program resolves on PATH, and shim itself is on PATH.
    """
    problems = 0
    directory = shim_dir()

    if init and not directory.is_dir():
        directory.mkdir(parents=True, exist_ok=True)
        _console.print(f"[green]  created {escape(str(directory))}[/green]")

    if directory.is_dir():
        _console.print(f"[green]  config dir[/green] — {escape(str(directory))}")
    else:
        _console.print(
            f"[yellow]  config dir[/yellow] — {escape(str(directory))} does not exist (run: shim check --init)"
        )

    programs: dict[str, str] = {}
    for path in _shim_files(ctx):
        try:
            data = load_shim_file(path)
        except (OSError, ShimConfigError) as e:
            _err_console.print(f"[red]  {escape(path.name)} — {escape(str(e))}[/red]")
            problems += 1
            continue
        entries = data.get("shims", [])
        _console.print(f"[green]  {escape(path.name)}[/green] — {len(entries)} shim(s)")
        for entry in entries:
            programs[entry["program"]] = path.name

    for program, source in sorted(programs.items()):
        resolved = shutil.which(program)
        if resolved:
            _console.print(f"[green]  {escape(program)}[/green] — {escape(resolved)}")
        else:
            _err_console.print(f"[red]  {escape(program)} — not found on PATH (from {escape(source)})[/red]")
            problems += 1

    if shutil.which("shim"):
        _console.print("[green]  shim[/green] — on PATH")
    else:
        _err_console.print("[red]  shim — not found on PATH; generated functions will not work[/red]")
        problems += 1

    _console.print(f"\n{problems} problem(s) found in {escape(str(config_dir()))}")
    sys.exit(1 if problems else 0)

"""Dispatch a shimmed program from Python, without any YAML or CLI."""

from __future__ import annotations

import asyncio

from shim import CollectingSink, Dispatcher, Shim, ShimRegistry, SubcommandHook


async def main() -> None:
    registry = ShimRegistry.from_shims(
        [
            Shim(
                program="ls",
                env=("LC_ALL=C",),
                pre=(SubcommandHook(run="echo listing $@", on_subcommand="-la"),),
                post=(SubcommandHook(run="echo done", on_subcommand="-la"),),
            )
        ]
    )
    sink = CollectingSink()
    report = await Dispatcher(registry, sink=sink).dispatch("ls", ["-la", "/"])
    for stream, line in sink.lines:
        print(f"[{stream}] {line}")
    print(f"phases: {[p.value for p in report.phases]}")


if __name__ == "__main__":
    asyncio.run(main())

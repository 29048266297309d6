"""Process runner — spawn one child and stream its output live."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shutil
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import IO, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# Lines buffered between the stream readers and the sink before readers block.
QUEUE_SIZE = 256

# Longest single line a reader will accept (asyncio StreamReader limit).
MAX_LINE_LENGTH = 1_048_576  # 1 MB

STDOUT = "stdout"
STDERR = "stderr"


@dataclass(frozen=True)
class ExecutionOutcome:
    """Result of running one process."""

    command: tuple[str, ...]
    returncode: int

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def signal(self) -> int | None:
        """Signal number that terminated the child, if any."""
        if self.returncode < 0:
            return -self.returncode
        return None

    def display(self) -> str:
        return " ".join(self.command)

    def describe(self) -> str:
        if self.signal is not None:
            return f"terminated by signal {self.signal}"
        return f"exit code {self.returncode}"


@runtime_checkable
class OutputSink(Protocol):
    """Protocol for consumers of child process output lines."""

    async def write_line(self, stream: str, line: str) -> None: ...


class TerminalSink:
    """Write every line, from either stream, to the controlling output."""

    def __init__(self, file: IO[str] | None = None):
        self._file = file

    async def write_line(self, stream: str, line: str) -> None:
        print(line, file=self._file or sys.stdout, flush=True)


@dataclass
class CollectingSink:
    """Keep output lines in memory (for tests and programmatic callers)."""

    lines: list[tuple[str, str]] = field(default_factory=list)

    async def write_line(self, stream: str, line: str) -> None:
        self.lines.append((stream, line))

    def text(self, stream: str | None = None) -> list[str]:
        return [line for s, line in self.lines if stream is None or s == stream]


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").rstrip("\r\n")


async def _drain(name: str, reader: asyncio.StreamReader, queue: asyncio.Queue) -> None:
    """Forward lines from one pipe to the shared queue.

    Items are ``(stream, line, error)``. The last item a reader puts has
    ``line=None``; its ``error`` is set when reading failed.
    """
    try:
        while True:
            raw = await reader.readline()
            if not raw:
                break
            await queue.put((name, _decode(raw), None))
    except (OSError, ValueError) as exc:
        # ValueError: a line longer than MAX_LINE_LENGTH
        await queue.put((name, None, exc))
        return
    await queue.put((name, None, None))


async def _reap(proc: asyncio.subprocess.Process, readers: list[asyncio.Task]) -> None:
    """Stop the readers and make sure the child has exited and been waited on."""
    for task in readers:
        task.cancel()
    await asyncio.gather(*readers, return_exceptions=True)
    if proc.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        await proc.wait()


async def run_command(
    executable: str,
    args: Sequence[str] = (),
    env: Mapping[str, str] | None = None,
    sink: OutputSink | None = None,
) -> ExecutionOutcome:
    """Run ``executable`` with ``args`` and stream its output to ``sink``.

    stdout and stderr are drained concurrently into one bounded queue, so a
    child writing heavily to both never blocks, and whole lines reach the
    sink in arrival order. Returns once the child has exited and every line
    has been delivered. If reading fails or the sink raises, the child is
    killed and reaped before the error propagates.

    Args:
        executable: Program name or path, resolved on PATH before spawning.
        args: Arguments passed verbatim.
        env: Variables overlaid on the inherited environment.
        sink: Destination for output lines (defaults to TerminalSink).

    Returns:
        ExecutionOutcome. A non-zero exit is a normal outcome, not an error.

    Raises:
        ProgramNotFound: If ``executable`` does not resolve on PATH.
        SpawnFailed: If the OS refuses to start the process.
        StreamReadFailed: If reading the child's output fails.
    """
    from shim import ProgramNotFound, SpawnFailed, StreamReadFailed

    resolved = shutil.which(executable)
    if resolved is None:
        raise ProgramNotFound(executable)

    command = (executable, *args)
    sink = sink or TerminalSink()
    child_env = {**os.environ, **env} if env else None

    logger.debug("Running command: %s", " ".join(command))
    try:
        proc = await asyncio.create_subprocess_exec(
            resolved,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=child_env,
            limit=MAX_LINE_LENGTH,
        )
    except OSError as exc:
        raise SpawnFailed(command, exc) from exc

    queue: asyncio.Queue = asyncio.Queue(maxsize=QUEUE_SIZE)
    readers = [
        asyncio.create_task(_drain(STDOUT, proc.stdout, queue)),
        asyncio.create_task(_drain(STDERR, proc.stderr, queue)),
    ]

    try:
        # Stream output to the sink as it arrives
        open_streams = len(readers)
        while open_streams:
            name, line, error = await queue.get()
            if error is not None:
                logger.debug("Reading %s of '%s' failed: %s", name, command[0], error)
                raise StreamReadFailed(command, error) from error
            if line is None:
                open_streams -= 1
                continue
            await sink.write_line(name, line)

        returncode = await proc.wait()
    finally:
        await _reap(proc, readers)

    logger.debug("Child process '%s' exited with status %s", command[0], returncode)
    return ExecutionOutcome(command=command, returncode=returncode)

"""Launching of child processes for the runners and ``exec``."""

import asyncio
import logging
import shlex
import sys
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import BinaryIO

log = logging.getLogger(__name__)

# buffer limit for child output; longer lines are relayed in pieces
STREAM_LIMIT = 16 * 1024 * 1024

type LineHandler = Callable[[bytes], Awaitable[None] | None]


@dataclass(frozen=True, kw_only=True)
class CompletedCommand:
    """Captured result of a finished command."""

    exit_code: int
    stdout: bytes
    stderr: bytes
    duration: float


def shell_argv(command: str) -> Sequence[str]:
    """Arguments that run ``command`` through the platform shell."""
    if sys.platform == "win32":
        return ["cmd", "/C", command]
    return ["sh", "-c", command]


def display(argv: Sequence[str]) -> str:
    return shlex.join(argv)


def exit_code(returncode: int | None) -> int:
    """Normalise a return code; death by signal N is reported as 128 + N."""
    if returncode is None:
        return 0
    if returncode < 0:
        return 128 - returncode
    return returncode


async def run_command(argv: Sequence[str]) -> CompletedCommand:
    """Run a command to completion, capturing its output.

    Raises:
        OSError: If the command cannot be started.

    """
    if not argv:
        raise ValueError("No command to execute")
    log.debug("Forking %s", display(argv))

    started = time.monotonic()
    process = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()
    duration = time.monotonic() - started

    log.debug("%s finished with exit code %s", display(argv), process.returncode)
    return CompletedCommand(
        exit_code=exit_code(process.returncode),
        stdout=stdout,
        stderr=stderr,
        duration=duration,
    )


async def _pump(stream: asyncio.StreamReader, handler: LineHandler) -> None:
    """Hand each line to ``handler``, splitting lines longer than the limit."""
    while True:
        try:
            line = await stream.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            line = e.partial
        except asyncio.LimitOverrunError as e:
            line = await stream.read(e.consumed)
        if not line:
            return
        if (pending := handler(line)) is not None:
            await pending


async def stream_command(
    argv: Sequence[str],
    on_stdout: LineHandler,
    on_stderr: LineHandler | None = None,
) -> int:
    """Run a command, handing each output line to a callback as it arrives.

    When ``on_stderr`` is None the child inherits this process's stderr.

    Raises:
        OSError: If the command cannot be started.

    """
    if not argv:
        raise ValueError("No command to execute")
    log.debug("Forking %s", display(argv))

    process = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE if on_stderr is not None else None,
        limit=STREAM_LIMIT,
    )
    assert process.stdout is not None
    pumps = [_pump(process.stdout, on_stdout)]
    if on_stderr is not None:
        assert process.stderr is not None
        pumps.append(_pump(process.stderr, on_stderr))

    try:
        await asyncio.gather(*pumps)
    except BaseException:
        if process.returncode is None:
            process.kill()
        await process.wait()
        raise
    returncode = await process.wait()
    log.debug("%s finished with exit code %s", display(argv), returncode)
    return exit_code(returncode)


def line_writer(out: BinaryIO) -> Callable[[bytes], None]:
    """Handler that copies each line to ``out`` and flushes it immediately."""

    def write(line: bytes) -> None:
        out.write(line)
        out.flush()

    return write

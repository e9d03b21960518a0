"""
Async helpers for running system commands.

All commands run through asyncio subprocesses so a slow journalctl or
systemctl call never blocks the web server's event loop.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Exit code reported when the binary itself cannot be started
COMMAND_NOT_FOUND = 127


class CommandError(Exception):
    """A command could not be started or exited with a non-zero code."""

    def __init__(self, args: tuple[str, ...], returncode: int, stderr: str = "") -> None:
        self.command = args
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or f"exit code {returncode}"
        super().__init__(f"{' '.join(args)}: {detail}")


@dataclass
class CommandResult:
    """Captured output of a finished command."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        """True if the command exited with code 0."""
        return self.returncode == 0


async def run_command(*args: str, timeout: float | None = 30.0) -> CommandResult:
    """
    Run a command and capture its output.

    Never raises for a failing command; a missing binary is reported
    with exit code 127.

    Args:
        *args: Program and arguments.
        timeout: Seconds to wait before killing the process.

    Returns:
        Exit code and decoded stdout/stderr.
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (FileNotFoundError, PermissionError) as e:
        logger.debug(f"Cannot start {args[0]}: {e}")
        return CommandResult(returncode=COMMAND_NOT_FOUND, stdout="", stderr=str(e))

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return CommandResult(
            returncode=process.returncode if process.returncode is not None else -1,
            stdout="",
            stderr=f"timed out after {timeout}s",
        )

    return CommandResult(
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


async def check_output(*args: str, timeout: float | None = 30.0) -> str:
    """
    Run a command and return its stdout.

    Raises:
        CommandError: If the command cannot be started or fails.
    """
    result = await run_command(*args, timeout=timeout)
    if not result.ok:
        raise CommandError(args, result.returncode, result.stderr)
    return result.stdout


async def stream_lines(*args: str) -> AsyncIterator[str]:
    """
    Start a long-running command and yield its stdout line by line.

    Lines are read only as fast as the consumer asks for them, so a slow
    consumer pauses the command instead of losing output. The process is
    terminated when the consumer stops iterating.

    Raises:
        CommandError: If the command cannot be started.
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except (FileNotFoundError, PermissionError) as e:
        raise CommandError(args, COMMAND_NOT_FOUND, str(e)) from e

    if process.stdout is None:
        process.kill()
        await process.wait()
        raise CommandError(args, process.returncode, "stdout is not a pipe")

    try:
        while True:
            raw = await process.stdout.readline()
            if not raw:
                break
            yield raw.decode("utf-8", errors="replace").rstrip("\n")
    finally:
        if process.returncode is None:
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=5)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()

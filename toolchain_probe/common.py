"""
Common utilities shared across toolchain_probe modules.

Every external process goes through :func:`run_process`, which never raises for
spawn failures or timeouts. Callers inspect the returned :class:`ProcessResult`.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import shutil
import sys
from dataclasses import dataclass
from typing import Awaitable, Callable, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 3.0

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;]*m|\033\[[0-9;]*m")


@dataclass(frozen=True)
class ProcessResult:
    """
    Outcome of one external process invocation.

    Attributes:
        args: Command line that was attempted
        returncode: Exit status, or None when the process never finished
        stdout: Captured standard output (ANSI sequences removed)
        stderr: Captured standard error (ANSI sequences removed)
        timed_out: Whether the process was killed after its timeout
        error: Spawn error description (e.g. command not found)
    """
    args: tuple[str, ...]
    returncode: int | None
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def output(self) -> str:
        """Combined stdout and stderr, stdout first."""
        if self.stderr and self.stdout:
            return f"{self.stdout}\n{self.stderr}"
        return self.stdout or self.stderr


Runner = Callable[..., Awaitable[ProcessResult]]
Which = Callable[[str], Optional[str]]


def strip_ansi(text: str) -> str:
    return ANSI_ESCAPE_RE.sub("", text)


def is_windows(platform: str | None = None) -> bool:
    return (platform or sys.platform).startswith("win")


async def run_process(
    args: Sequence[str],
    cwd: str | None = None,
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
) -> ProcessResult:
    """Run a command asynchronously with a timeout.

    The executable is looked up with ``shutil.which`` so that Windows
    ``.cmd``/``.exe`` shims on PATH resolve without a shell.

    Args:
        args: Command and arguments
        cwd: Working directory (must exist, otherwise the call fails softly)
        timeout: Timeout in seconds (default: DEFAULT_TIMEOUT_SECONDS)
        env: Extra environment variables layered over os.environ

    Returns:
        ProcessResult; spawn errors and timeouts are reported, never raised
    """
    argv = tuple(args)
    if not argv:
        raise ValueError("run_process requires a command")

    executable = shutil.which(argv[0]) or argv[0]
    if cwd is not None and not os.path.isdir(cwd):
        return ProcessResult(argv, None, error=f"working directory does not exist: {cwd}")

    full_env = {**os.environ, "TERM": "dumb", "NO_COLOR": "1"}
    if env:
        full_env.update(env)

    try:
        proc = await asyncio.create_subprocess_exec(
            executable,
            *argv[1:],
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=full_env,
        )
    except (FileNotFoundError, PermissionError, NotADirectoryError) as e:
        logger.debug(f"Command not runnable: {argv[0]} ({e})")
        return ProcessResult(argv, None, error=str(e))
    except OSError as e:
        logger.debug(f"Failed to spawn {argv[0]}: {e}")
        return ProcessResult(argv, None, error=str(e))

    try:
        stdout, stderr = await asyncio.wait_for(
            proc.communicate(),
            timeout=timeout or DEFAULT_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()
        logger.debug(f"Timed out after {timeout or DEFAULT_TIMEOUT_SECONDS}s: {' '.join(argv)}")
        return ProcessResult(argv, None, timed_out=True, error="timeout")

    return ProcessResult(
        argv,
        proc.returncode,
        stdout=strip_ansi(stdout.decode("utf-8", errors="replace")).strip(),
        stderr=strip_ansi(stderr.decode("utf-8", errors="replace")).strip(),
    )

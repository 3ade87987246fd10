"""Subprocess helper shared by the analyzers."""

import asyncio
import contextlib
from dataclasses import dataclass
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class ToolResult:
    """Exit status and decoded output of one tool run."""

    returncode: int
    stdout: str
    stderr: str


async def run_tool(
    args: list[str],
    cwd: str | Path | None = None,
    timeout: float = 60.0,
) -> ToolResult:
    """Run ``args`` and collect its output.

    The process is killed if ``timeout`` elapses or the awaiting task is
    cancelled.

    Raises:
        TimeoutError: the tool did not finish within ``timeout`` seconds
        OSError: the executable could not be started
    """
    proc = await asyncio.create_subprocess_exec(
        *args,
        cwd=str(cwd) if cwd else None,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except BaseException:
        if proc.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            # Reap the child so it does not linger as a zombie
            with contextlib.suppress(OSError):
                await proc.wait()
            logger.debug("Killed tool process", tool=args[0], pid=proc.pid)
        raise

    return ToolResult(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )


async def tool_available(args: list[str], timeout: float = 15.0) -> bool:
    """Whether ``args`` (typically ``tool --version``) exits cleanly."""
    try:
        result = await run_tool(args, timeout=timeout)
    except (OSError, TimeoutError) as e:
        logger.debug("Tool not available", tool=args[0], error=str(e))
        return False
    return result.returncode == 0

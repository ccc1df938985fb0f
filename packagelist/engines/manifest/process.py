"""Subprocess helper with a wall-clock watchdog."""

from __future__ import annotations

import asyncio
import os
import signal
from dataclasses import dataclass
from pathlib import Path

import structlog

log = structlog.get_logger("packagelist.engine")


@dataclass(frozen=True)
class ProcessResult:
    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool = False


async def run_process(cmd: list[str], cwd: Path, timeout: float) -> ProcessResult:
    """Run *cmd* in *cwd*, killing it (and its process group) after *timeout*.

    A missing executable is reported as exit code 127 rather than raised, so
    callers classify it like any other failed dump.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except FileNotFoundError:
        return ProcessResult(exit_code=127, stdout="", stderr=f"{cmd[0]}: command not found")

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        log.warning("process.timeout", cmd=cmd[0], cwd=str(cwd), timeout=timeout)
        _kill(proc)
        await proc.wait()
        return ProcessResult(
            exit_code=proc.returncode if proc.returncode is not None else -1,
            stdout="",
            stderr="",
            timed_out=True,
        )

    return ProcessResult(
        exit_code=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


def _kill(proc: asyncio.subprocess.Process) -> None:
    # The dump tool spawns compiler children; take the whole group down.
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError, AttributeError):
        try:
            proc.kill()
        except ProcessLookupError:
            pass

"""Helpers that run ffmpeg/ffprobe asynchronously."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import subprocess
import time
from typing import Callable, List, Optional, Union

from .logger import logger

LineCallback = Callable[[str], None]
PathLike = Union[str, "os.PathLike[str]"]


def _kill_grace() -> float:
    try:
        return float(os.getenv("FFMPEG_KILL_GRACE_SEC", "5"))
    except ValueError:
        return 5.0


def _log_command(cmd_str: str) -> None:
    if os.getenv("FFMPEG_LOG_CMD", "0") == "1":
        logger.info(f"Running command: {cmd_str}")
    else:
        logger.debug(f"Running command: {cmd_str}")


async def _terminate(process: asyncio.subprocess.Process, grace: float) -> None:
    with contextlib.suppress(ProcessLookupError):
        process.terminate()
    try:
        await asyncio.wait_for(process.wait(), timeout=max(0.1, grace))
    except asyncio.TimeoutError:
        logger.error(f"Process did not terminate in {grace:.1f}s; killing PID={process.pid}...")
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()


async def run_ffmpeg_async(
    args: List[str],
    *,
    timeout: Optional[float] = None,
    cwd: Optional[PathLike] = None,
    error_log_level: int | None = logging.ERROR,
) -> subprocess.CompletedProcess:
    """
    Run ffmpeg/ffprobe to completion and collect its output.

    :param error_log_level: level used to log a nonzero exit. ``None``
        disables the log lines; the CalledProcessError is raised either way.
    """
    exe = str(args[0]) if args else "ffmpeg"
    base = os.path.basename(exe)
    cmd_str = " ".join(map(str, args))
    _log_command(cmd_str)

    try:
        t0 = time.monotonic()
        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
    except FileNotFoundError:
        logger.error(
            f"{base} not found. Please ensure ffmpeg is installed and in your PATH."
        )
        raise
    logger.debug(f"Spawned PID={process.pid} for {base}")

    try:
        if timeout is not None and timeout > 0:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        else:
            stdout, stderr = await process.communicate()
    except asyncio.TimeoutError:
        logger.error(
            f"Command timed out after {timeout:.1f}s (PID={process.pid}). Sending terminate..."
        )
        await _terminate(process, _kill_grace())
        raise subprocess.TimeoutExpired(args, timeout)
    except asyncio.CancelledError:
        logger.warning(f"Task cancelled while running {base} (PID={process.pid}); terminating...")
        await _terminate(process, 3.0)
        raise

    stdout_str = stdout.decode(errors="ignore")
    stderr_str = stderr.decode(errors="ignore")
    rc = process.returncode if process.returncode is not None else 0
    logger.debug(f"Command finished rc={rc} in {time.monotonic() - t0:.2f}s (PID={process.pid})")

    if rc != 0:
        if error_log_level is not None:
            logger.log(error_log_level, f"FFmpeg command failed rc={rc}. Command: {cmd_str}")
            if stderr_str:
                logger.log(error_log_level, f"stderr:\n{stderr_str}")
        raise subprocess.CalledProcessError(rc, args, output=stdout_str, stderr=stderr_str)

    return subprocess.CompletedProcess(args, rc, stdout_str, stderr_str)


async def _pump_lines(stream: Optional[asyncio.StreamReader], callback: Optional[LineCallback]) -> None:
    if stream is None:
        return
    while True:
        raw = await stream.readline()
        if not raw:
            break
        line = raw.decode(errors="ignore").rstrip("\r\n")
        if callback is not None and line:
            callback(line)


async def stream_ffmpeg_async(
    args: List[str],
    *,
    on_stdout_line: Optional[LineCallback] = None,
    on_stderr_line: Optional[LineCallback] = None,
    timeout: Optional[float] = None,
    cwd: Optional[PathLike] = None,
    on_spawn: Optional[Callable[[asyncio.subprocess.Process], None]] = None,
) -> int:
    """
    Run ffmpeg and hand every output line to the callbacks as it arrives.

    Unlike :func:`run_ffmpeg_async` a nonzero exit is not raised; the return
    code is handed back so the caller can decide how to report it.
    """
    exe = str(args[0]) if args else "ffmpeg"
    base = os.path.basename(exe)
    _log_command(" ".join(map(str, args)))

    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
    except FileNotFoundError:
        logger.error(
            f"{base} not found. Please ensure ffmpeg is installed and in your PATH."
        )
        raise
    logger.debug(f"Spawned PID={process.pid} for {base}")
    if on_spawn is not None:
        on_spawn(process)

    t0 = time.monotonic()
    pumps = asyncio.gather(
        _pump_lines(process.stdout, on_stdout_line),
        _pump_lines(process.stderr, on_stderr_line),
    )
    try:
        if timeout is not None and timeout > 0:
            await asyncio.wait_for(pumps, timeout=timeout)
        else:
            await pumps
        rc = await process.wait()
    except asyncio.TimeoutError:
        logger.error(
            f"Command timed out after {timeout:.1f}s (PID={process.pid}). Sending terminate..."
        )
        await _terminate(process, _kill_grace())
        raise subprocess.TimeoutExpired(args, timeout)
    except asyncio.CancelledError:
        logger.warning(f"Task cancelled while running {base} (PID={process.pid}); terminating...")
        pumps.cancel()
        await _terminate(process, 3.0)
        raise

    logger.debug(f"Command finished rc={rc} in {time.monotonic() - t0:.2f}s (PID={process.pid})")
    return rc

"""Media introspection helpers built on ffprobe."""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import Optional

from .ffmpeg_runner import run_ffmpeg_async
from .logger import logger


def parse_duration(raw: str) -> Optional[float]:
    """Read ``format.duration`` from ``ffprobe -show_format -of json`` output."""
    info = json.loads(raw or "{}")
    duration = info.get("format", {}).get("duration")
    if duration in (None, "N/A"):
        return None
    return round(float(duration), 3)


async def get_media_duration(
    file_path: Path,
    ffprobe_path: str = "ffprobe",
    *,
    error_log_level: Optional[int] = logging.ERROR,
) -> Optional[float]:
    """Return the container duration in seconds, or None when it is unknown.

    ``error_log_level`` is used for a failing ffprobe; callers that treat a
    missing duration as recoverable pass a quieter level.
    """
    cmd = [
        ffprobe_path,
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "json",
        str(file_path),
    ]
    try:
        result = await run_ffmpeg_async(cmd, error_log_level=error_log_level)
        return parse_duration(result.stdout)
    except subprocess.CalledProcessError as e:
        if error_log_level is not None:
            logger.log(error_log_level, f"Error running ffprobe for {file_path}: {e.stderr}")
        raise
    except (json.JSONDecodeError, ValueError) as e:
        if error_log_level is not None:
            logger.log(error_log_level, f"Error parsing ffprobe output for {file_path}: {e}")
        raise

"""Health checks for the external ffmpeg toolchain."""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from typing import Optional, Tuple

from ..exceptions import AcquisitionError
from .ffmpeg_runner import run_ffmpeg_async
from .logger import KVLogger

_VERSION_PATTERN = re.compile(r"(\d+)(?:\.(\d+))?(?:\.(\d+))?")


@dataclass(frozen=True)
class VersionRequirement:
    """Normalized numeric version used for compatibility checks."""

    major: int
    minor: int
    patch: int = 0

    @classmethod
    def parse(cls, version_str: str) -> "VersionRequirement":
        """Extract the numeric part of an arbitrary version string."""

        match = _VERSION_PATTERN.search(version_str)
        if not match:
            raise ValueError(f"Unsupported version string: '{version_str}'")
        major = int(match.group(1))
        minor = int(match.group(2) or 0)
        patch = int(match.group(3) or 0)
        return cls(major=major, minor=minor, patch=patch)

    def satisfies(self, minimum: "VersionRequirement") -> bool:
        return (self.major, self.minor, self.patch) >= (
            minimum.major,
            minimum.minor,
            minimum.patch,
        )


def parse_tool_version(output: str, tool: str) -> Optional[str]:
    """Pick the version out of ``<tool> -version`` output (``ffmpeg version 6.1.1 ...``)."""
    first_line = (output or "").splitlines()[0] if output else ""
    marker = f"{tool} version"
    if marker in first_line:
        tail = first_line.split(marker, 1)[1].split()
        if tail:
            return tail[0]
    return None


async def get_tool_version(tool_path: str, tool: str) -> Optional[str]:
    """Return the version string of ffmpeg/ffprobe, or None when it cannot be run."""

    try:
        result = await run_ffmpeg_async([tool_path, "-version"], error_log_level=logging.DEBUG)
    except (FileNotFoundError, PermissionError, subprocess.CalledProcessError):
        return None
    return parse_tool_version(result.stdout, tool) or "unknown"


async def ensure_ffmpeg_dependencies(
    logger: KVLogger,
    *,
    min_ffmpeg_version: str = "4.0",
    ffmpeg_path: str = "ffmpeg",
    ffprobe_path: str = "ffprobe",
) -> Tuple[str, str]:
    """Verify ffmpeg/ffprobe can run and meet the minimum version."""

    minimum = VersionRequirement.parse(min_ffmpeg_version)
    versions = []
    for tool, path in (("ffmpeg", ffmpeg_path), ("ffprobe", ffprobe_path)):
        raw = await get_tool_version(path, tool)
        if raw is None:
            logger.kv_error(
                f"{tool} was not detected at '{path}'.",
                kv_pairs={"Event": "DependencyCheck", "Tool": tool, "Status": "NotDetected"},
            )
            raise AcquisitionError(f"{tool} is not available at '{path}'.")
        try:
            detected = VersionRequirement.parse(raw)
        except ValueError:
            # Git builds report a commit hash instead of a release number
            logger.kv_warning(
                f"Could not parse {tool} version '{raw}'; skipping version check.",
                kv_pairs={"Event": "DependencyCheck", "Tool": tool, "Version": raw},
            )
            versions.append(raw)
            continue
        if not detected.satisfies(minimum):
            raise AcquisitionError(
                f"{tool} {raw} is older than the required {min_ffmpeg_version}."
            )
        logger.kv_debug(
            f"{tool} {raw} detected.",
            kv_pairs={"Event": "DependencyCheck", "Tool": tool, "Version": raw, "Status": "OK"},
        )
        versions.append(raw)
    return versions[0], versions[1]

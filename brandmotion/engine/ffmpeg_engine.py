"""ProcessingEngine backed by the ffmpeg/ffprobe binaries."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from ..components.branding.filtergraph import StageCommand
from ..exceptions import AcquisitionError, ArtifactError, PipelineError, StageExecutionError
from ..utils.dependency_checks import ensure_ffmpeg_dependencies
from ..utils.media_duration import get_media_duration
from ..utils.ffmpeg_runner import stream_ffmpeg_async
from ..utils.logger import logger
from .base import LOG_EVENT, PROGRESS_EVENT, ProcessingEngine

# Emitted before any per-stage args
GLOBAL_ARGS = ("-hide_banner", "-nostdin", "-progress", "pipe:1", "-nostats")


class ProgressParser:
    """Turns ``-progress pipe:1`` key=value lines into ratios."""

    def __init__(self, duration: Optional[float]):
        self.duration = duration if duration and duration > 0 else None

    def feed(self, line: str) -> Optional[float]:
        key, sep, value = line.partition("=")
        if not sep:
            return None
        key = key.strip()
        value = value.strip()
        if key == "progress" and value == "end":
            return 1.0
        if key in ("out_time_us", "out_time_ms") and self.duration:
            # Both keys carry microseconds
            try:
                micros = int(value)
            except ValueError:
                return None
            return max(0.0, min(1.0, micros / 1_000_000 / self.duration))
        return None


class FFmpegEngine(ProcessingEngine):
    """Runs each stage as a separate ffmpeg process inside a private temp directory."""

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        min_ffmpeg_version: str = "4.0",
        stage_timeout: Optional[float] = None,
        work_dir_parent: Optional[str] = None,
    ):
        super().__init__()
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path
        self.min_ffmpeg_version = min_ffmpeg_version
        self.stage_timeout = stage_timeout
        self.work_dir_parent = work_dir_parent
        self.work_dir: Optional[Path] = None
        self._process: Optional[asyncio.subprocess.Process] = None

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "FFmpegEngine":
        engine_cfg = config.get("engine", {}) or {}
        return cls(
            ffmpeg_path=engine_cfg.get("ffmpeg_path") or "ffmpeg",
            ffprobe_path=engine_cfg.get("ffprobe_path") or "ffprobe",
            min_ffmpeg_version=engine_cfg.get("min_ffmpeg_version") or "4.0",
            stage_timeout=engine_cfg.get("stage_timeout_sec"),
            work_dir_parent=engine_cfg.get("work_dir_parent"),
        )

    @property
    def loaded(self) -> bool:
        return self.work_dir is not None

    async def load(self) -> None:
        ffmpeg_version, _ = await ensure_ffmpeg_dependencies(
            logger,
            min_ffmpeg_version=self.min_ffmpeg_version,
            ffmpeg_path=self.ffmpeg_path,
            ffprobe_path=self.ffprobe_path,
        )
        try:
            self.work_dir = Path(tempfile.mkdtemp(prefix="brandmotion_", dir=self.work_dir_parent))
        except OSError as exc:
            raise AcquisitionError(f"Cannot create engine working directory: {exc}") from exc
        self.emit(LOG_EVENT, f"ffmpeg {ffmpeg_version} ready")
        logger.kv_debug(
            f"Engine working directory: {self.work_dir}",
            kv_pairs={"Event": "EngineLoaded", "WorkDir": str(self.work_dir)},
        )

    def _path(self, name: str) -> Path:
        if self.work_dir is None:
            raise PipelineError("Engine is not loaded.")
        if not name or Path(name).name != name:
            raise ValueError(f"Artifact names must be plain file names: {name!r}")
        return self.work_dir / name

    async def write_artifact(self, name: str, data: bytes) -> None:
        path = self._path(name)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, path.write_bytes, bytes(data))

    async def read_artifact(self, name: str) -> bytes:
        path = self._path(name)
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, path.read_bytes)
        except FileNotFoundError:
            raise ArtifactError(f"Artifact '{name}' does not exist.", artifact=name)

    async def has_artifact(self, name: str) -> bool:
        path = self._path(name)
        return path.is_file() and path.stat().st_size > 0

    async def delete_artifact(self, name: str) -> None:
        with contextlib.suppress(FileNotFoundError):
            self._path(name).unlink()

    async def _duration_of(self, name: Optional[str]) -> Optional[float]:
        if not name:
            return None
        try:
            return await get_media_duration(
                self._path(name), self.ffprobe_path, error_log_level=logging.DEBUG
            )
        except (subprocess.CalledProcessError, ValueError, KeyError, OSError):
            logger.debug(f"Could not probe duration of {name}; progress will only report completion.")
            return None

    def _remember_process(self, process: asyncio.subprocess.Process) -> None:
        self._process = process

    async def execute(self, command: StageCommand) -> int:
        if self.work_dir is None:
            raise PipelineError("Engine is not loaded.")
        parser = ProgressParser(await self._duration_of(command.primary_input))

        def on_progress_line(line: str) -> None:
            ratio = parser.feed(line)
            if ratio is not None:
                self.emit(PROGRESS_EVENT, ratio)

        def on_log_line(line: str) -> None:
            self.emit(LOG_EVENT, line)

        args = [self.ffmpeg_path, *GLOBAL_ARGS, *command.args]
        try:
            return await stream_ffmpeg_async(
                args,
                on_stdout_line=on_progress_line,
                on_stderr_line=on_log_line,
                timeout=self.stage_timeout,
                cwd=self.work_dir,
                on_spawn=self._remember_process,
            )
        except subprocess.TimeoutExpired as exc:
            raise StageExecutionError(
                f"Stage {command.stage} timed out after {exc.timeout}s.", stage=command.stage
            ) from exc
        except FileNotFoundError as exc:
            raise AcquisitionError(f"ffmpeg disappeared: {exc}") from exc
        finally:
            self._process = None

    async def terminate(self) -> None:
        process = self._process
        if process is not None and process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            with contextlib.suppress(Exception):
                await process.wait()
        self._process = None
        if self.work_dir is not None:
            shutil.rmtree(self.work_dir, ignore_errors=True)
            logger.kv_debug(
                f"Removed engine working directory {self.work_dir}",
                kv_pairs={"Event": "EngineTerminated"},
            )
        self.work_dir = None

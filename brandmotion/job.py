"""Job orchestration: render, plan, then drive one engine instance through the stages."""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from .components.branding.filtergraph import StageCommand, plan_to_commands
from .components.branding.geometry import (
    LogoPlacement,
    is_known_position,
    is_known_size,
    name_card_placement,
    resolve_placement,
)
from .components.branding.name_card import (
    NameCardAsset,
    build_name_card_spec,
    rasterize_name_card,
)
from .components.branding.plan import ArtifactNames, CompositionPlan, build_plan
from .components.config import DEFAULT_CONFIG, merge_configs
from .engine.base import LOG_EVENT, PROGRESS_EVENT, ProcessingEngine
from .engine.ffmpeg_engine import FFmpegEngine
from .exceptions import (
    AcquisitionError,
    ArtifactError,
    PipelineError,
    RenderError,
    StageExecutionError,
)
from .media_handle import MediaHandle
from .utils.ffmpeg_params import EncodeParams
from .utils.logger import logger, time_log

ProgressCallback = Callable[[int], None]
LogCallback = Callable[[str], None]
StageCallback = Callable[[int, str], None]
EngineFactory = Callable[[], ProcessingEngine]

# Engine lines kept around to explain a failing stage
DIAGNOSTIC_TAIL = 20


class JobStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    EXECUTING = "executing"
    FINALIZING = "finalizing"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True)
class StyleConfig:
    logo_position: str = "top-right"
    logo_size: str = "medium"
    brand_color: Optional[str] = None


@dataclass(frozen=True)
class BrandingRequest:
    video: bytes
    logo: bytes
    customer_name: str = ""
    customer_role: str = ""
    brand_color: Optional[str] = None
    logo_position: str = "top-right"
    logo_size: str = "medium"

    @property
    def style(self) -> StyleConfig:
        return StyleConfig(self.logo_position, self.logo_size, self.brand_color)


@dataclass
class JobState:
    status: JobStatus = JobStatus.IDLE
    progress_ratio: float = 0.0
    log_lines: List[str] = field(default_factory=list)
    result_handle: Optional[MediaHandle] = None
    error: Optional[BaseException] = None


class ProgressForwarder:
    """Converts engine ratios to integer percents that never drop within a stage."""

    def __init__(self, callback: Callable[[int], None]):
        self._callback = callback
        self._last: Optional[int] = None

    def begin_stage(self) -> None:
        self._last = None

    def forward(self, ratio: float) -> Optional[int]:
        try:
            ratio = float(ratio)
        except (TypeError, ValueError):
            return None
        if ratio != ratio:  # NaN
            return None
        percent = int(round(max(0.0, min(1.0, ratio)) * 100))
        if self._last is not None and percent <= self._last:
            return None
        self._last = percent
        self._callback(percent)
        return percent


class BrandingJob:
    """One branding run, owning exactly one engine instance.

    Progress reported through ``on_progress`` is an integer percent for the
    stage currently executing. It never decreases within a stage and starts
    again from the new stage's first value at each stage boundary (three
    stages: scale logo, overlay logo, overlay name card). ``state.progress_ratio``
    carries the overall ratio across all stages.

    ``on_stage(index, name)`` fires when a stage is submitted, before any of
    its progress values, so callers can reset per-stage displays even for
    stages that only ever report completion.

    Log lines are append-only. Lines coming from the engine carry a
    ``[HH:MM:SS]`` prefix.

    Callbacks are notifications: their return value is ignored and an
    exception raised inside one is logged and dropped.
    """

    def __init__(
        self,
        request: BrandingRequest,
        *,
        config: Optional[Dict[str, Any]] = None,
        engine_factory: Optional[EngineFactory] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_log: Optional[LogCallback] = None,
        on_stage: Optional[StageCallback] = None,
    ):
        self.request = request
        self.config = merge_configs(DEFAULT_CONFIG, config or {})
        self.engine_factory: EngineFactory = engine_factory or (
            lambda: FFmpegEngine.from_config(self.config)
        )
        self.on_progress = on_progress
        self.on_log = on_log
        self.on_stage = on_stage
        self.state = JobState()
        self.stats: Dict[str, Any] = {"phases": {}}

        output_cfg = self.config.get("output", {})
        self.container = str(output_cfg.get("container", "mp4")).lower()
        self.mime_type = output_cfg.get("mime_type") or "video/mp4"
        self.names = ArtifactNames.for_container(self.container)
        self.encode = EncodeParams.from_config(self.config.get("encoding"))

        self._engine: Optional[ProcessingEngine] = None
        self._task: Optional[asyncio.Task] = None
        self._cancelled = False
        self._cleaned_up = False
        self._stage_index = 0
        self._stage_count = 0
        self._engine_tail: Deque[str] = deque(maxlen=DIAGNOSTIC_TAIL)
        self._forwarder = ProgressForwarder(self._emit_progress)

    # ---- notifications -------------------------------------------------

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _notify(self, callback: Optional[Callable[..., None]], *values: Any) -> None:
        if callback is None or self._cancelled:
            return
        try:
            callback(*values)
        except Exception:
            logger.warning("Job callback raised; ignoring.", exc_info=True)

    def _log(self, line: str) -> None:
        self.state.log_lines.append(line)
        self._notify(self.on_log, line)

    def _emit_progress(self, percent: int) -> None:
        self._notify(self.on_progress, percent)

    def _on_engine_log(self, message: Any) -> None:
        text = str(message)
        self._engine_tail.append(text)
        logger.debug(f"engine: {text}")
        self._log(f"[{time.strftime('%H:%M:%S')}] {text}")

    def _on_engine_progress(self, ratio: Any) -> None:
        if self._cancelled:
            return
        percent = self._forwarder.forward(ratio)
        if percent is None or not self._stage_count:
            return
        overall = (self._stage_index + percent / 100.0) / self._stage_count
        self.state.progress_ratio = max(self.state.progress_ratio, min(1.0, overall))

    def _set_status(self, status: JobStatus) -> None:
        self.state.status = status
        logger.kv_debug(
            f"Job status -> {status.value}",
            kv_pairs={"Event": "JobStatus", "Status": status.value},
        )

    async def _run_phase(self, phase_name: str, func, *args, **kwargs):
        start_time = time.time()
        logger.kv_info(
            f"--- Starting Phase: {phase_name} ---",
            kv_pairs={"Event": "PhaseStart", "Phase": phase_name},
        )
        result = await func(*args, **kwargs)
        duration = time.time() - start_time
        self.stats["phases"][phase_name] = {"duration": duration}
        logger.kv_info(
            f"--- Finished Phase: {phase_name}. Duration: {duration:.2f} seconds ---",
            kv_pairs={"Event": "PhaseFinish", "Phase": phase_name, "Duration": f"{duration:.2f}s"},
        )
        return result

    # ---- phases --------------------------------------------------------

    async def _prepare(self) -> Tuple[LogoPlacement, NameCardAsset, CompositionPlan, List[StageCommand]]:
        style = self.request.style
        if not is_known_position(style.logo_position):
            self._log(f"Unknown logo position '{style.logo_position}'; using top-right.")
        if not is_known_size(style.logo_size):
            self._log(f"Unknown logo size '{style.logo_size}'; using medium.")
        placement = resolve_placement(style.logo_position, style.logo_size)

        self._log("Creating name card...")
        card_cfg = self.config.get("name_card", {})
        try:
            spec = build_name_card_spec(
                self.request.customer_name,
                self.request.customer_role,
                style.brand_color,
                card_cfg,
            )
            loop = asyncio.get_running_loop()
            name_card = await loop.run_in_executor(None, rasterize_name_card, spec)
        except RenderError:
            raise
        except Exception as exc:
            raise RenderError(f"Failed to render name card: {exc}") from exc

        plan = build_plan(
            self.names.video,
            self.names.logo,
            self.names.name_card,
            placement,
            name_card_offset=name_card_placement(),
            reveal_after=float(card_cfg.get("reveal_after", 0.0) or 0.0),
            names=self.names,
        )
        commands = plan_to_commands(plan, self.encode, self.container)
        return placement, name_card, plan, commands

    async def _load_engine(self) -> ProcessingEngine:
        self._set_status(JobStatus.LOADING)
        self._log("Loading FFmpeg...")
        try:
            engine = self.engine_factory()
        except PipelineError:
            raise
        except Exception as exc:
            raise AcquisitionError(f"Could not create processing engine: {exc}") from exc
        self._engine = engine
        engine.on(LOG_EVENT, self._on_engine_log)
        engine.on(PROGRESS_EVENT, self._on_engine_progress)
        try:
            await engine.load()
        except PipelineError:
            raise
        except Exception as exc:
            raise AcquisitionError(f"Processing engine failed to load: {exc}") from exc
        self._log("FFmpeg loaded.")
        return engine

    async def _stage_inputs(self, engine: ProcessingEngine, name_card: NameCardAsset) -> None:
        self._set_status(JobStatus.READY)
        await engine.write_artifact(self.names.video, self.request.video)
        await engine.write_artifact(self.names.logo, self.request.logo)
        await engine.write_artifact(self.names.name_card, name_card.png_bytes)

    async def _execute(
        self, engine: ProcessingEngine, placement: LogoPlacement, commands: List[StageCommand]
    ) -> None:
        self._set_status(JobStatus.EXECUTING)
        self._stage_count = len(commands)
        for idx, command in enumerate(commands):
            self._stage_index = idx
            self._forwarder.begin_stage()
            self._engine_tail.clear()
            self._notify(self.on_stage, idx, command.stage)
            if idx == 0:
                self._log(f"Scaling logo to {placement.width_px}x{placement.height_px}")
            elif idx == 1:
                self._log("Applying logo overlay...")
            else:
                self._log("Applying name card overlay...")
            logger.kv_info(
                f"Submitting stage {command.stage}",
                kv_pairs={"Event": "StageStart", "Stage": command.stage, "Idx": f"{idx + 1}/{len(commands)}"},
            )

            try:
                rc = await engine.execute(command)
            except PipelineError:
                raise
            except Exception as exc:
                raise StageExecutionError(
                    f"Stage {command.stage} crashed: {exc}", stage=command.stage
                ) from exc
            if rc != 0:
                detail = self._engine_tail[-1] if self._engine_tail else "no diagnostic output"
                raise StageExecutionError(
                    f"Stage {command.stage} failed: {detail}", stage=command.stage, returncode=rc
                )
            if not await engine.has_artifact(command.output):
                raise ArtifactError(
                    f"Stage {command.stage} did not produce '{command.output}'.",
                    artifact=command.output,
                )
        self.state.progress_ratio = 1.0

    async def _finalize(self, engine: ProcessingEngine, plan: CompositionPlan) -> MediaHandle:
        self._set_status(JobStatus.FINALIZING)
        data = await engine.read_artifact(plan.final_output)
        if not data:
            raise ArtifactError(f"Final artifact '{plan.final_output}' is empty.", artifact=plan.final_output)
        return MediaHandle(data, mime_type=self.mime_type, suffix=f".{self.container}")

    async def _cleanup(self, engine: Optional[ProcessingEngine], plan: Optional[CompositionPlan]) -> None:
        if self._cleaned_up:
            return
        self._cleaned_up = True
        if engine is None:
            return
        engine.clear_handlers()
        if plan is not None:
            artifacts = list(plan.sources) + [stage.output for stage in plan.stages]
            for name in artifacts:
                try:
                    await engine.delete_artifact(name)
                except Exception:
                    logger.debug(f"Could not delete engine artifact {name}", exc_info=True)
        try:
            await engine.terminate()
        except Exception:
            logger.warning("Engine terminate failed during cleanup.", exc_info=True)

    # ---- public API ----------------------------------------------------

    @time_log(logger)
    async def run(self) -> MediaHandle:
        """Execute the job and return the playable result. Raises on any failure."""
        if self.state.status is not JobStatus.IDLE:
            raise PipelineError("A BrandingJob can only be run once.")
        self._task = asyncio.current_task()
        engine: Optional[ProcessingEngine] = None
        plan: Optional[CompositionPlan] = None
        try:
            if self._cancelled:
                raise asyncio.CancelledError()
            placement, name_card, plan, commands = await self._run_phase("Prepare", self._prepare)
            engine = await self._run_phase("Load", self._load_engine)
            await self._run_phase("StageInputs", self._stage_inputs, engine, name_card)
            await self._run_phase("Execute", self._execute, engine, placement, commands)
            handle = await self._run_phase("Finalize", self._finalize, engine, plan)
        except (Exception, asyncio.CancelledError) as exc:
            # the engine may have been created even if _load_engine raised
            engine = engine or self._engine
            await self._cleanup(engine, plan)
            self.state.error = exc
            self.state.status = JobStatus.FAILED
            reason = "Job cancelled." if isinstance(exc, asyncio.CancelledError) else str(exc)
            self._log(f"Error: {reason}")
            logger.kv_error(
                f"Branding job failed: {reason}",
                kv_pairs={"Event": "JobFailed", "Error": type(exc).__name__},
            )
            raise

        await self._cleanup(engine, plan)
        self.state.result_handle = handle
        self._log("Video branding complete!")
        self.state.status = JobStatus.COMPLETE
        return handle

    def cancel(self) -> None:
        """Best-effort abort: stop forwarding callbacks and cancel the running task.

        The engine is terminated by the cleanup path of :meth:`run`; partial
        engine-side files are removed with it.
        """
        if self._cancelled:
            return
        self._cancelled = True
        if self._engine is not None:
            self._engine.clear_handlers()
        if self._task is not None and not self._task.done():
            self._task.cancel()

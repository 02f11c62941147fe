"""Public entry points for branding a testimonial video."""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional

from .components.config import resolve_config
from .job import (
    BrandingJob,
    BrandingRequest,
    EngineFactory,
    LogCallback,
    ProgressCallback,
    StageCallback,
)
from .media_handle import MediaHandle
from .utils.logger import logger


@dataclass(frozen=True)
class JobEvent:
    """One item of the event stream.

    ``stage`` carries ``(index, name)`` and precedes that stage's progress;
    ``progress`` is an int percent, ``log`` a str and ``result`` the MediaHandle.
    """

    kind: str
    value: Any


_DONE = object()


async def brand_video(
    request: BrandingRequest,
    *,
    on_progress: Optional[ProgressCallback] = None,
    on_log: Optional[LogCallback] = None,
    on_stage: Optional[StageCallback] = None,
    config: Optional[Dict[str, Any]] = None,
    engine_factory: Optional[EngineFactory] = None,
) -> MediaHandle:
    """Brand ``request.video`` with the logo and a name card.

    Returns a MediaHandle the caller must release. Raises a PipelineError
    subclass when any stage fails; a partial result is never returned.
    """
    job = BrandingJob(
        request,
        config=resolve_config(overrides=config),
        engine_factory=engine_factory,
        on_progress=on_progress,
        on_log=on_log,
        on_stage=on_stage,
    )
    return await job.run()


async def stream_brand_video(
    request: BrandingRequest,
    *,
    config: Optional[Dict[str, Any]] = None,
    engine_factory: Optional[EngineFactory] = None,
) -> AsyncIterator[JobEvent]:
    """Run a job and yield its events in order, ending with a ``result`` event.

    Errors of the job are raised from the iterator after the events that
    preceded them. Closing the iterator early cancels the job.
    """
    queue: "asyncio.Queue[Any]" = asyncio.Queue()
    job = BrandingJob(
        request,
        config=resolve_config(overrides=config),
        engine_factory=engine_factory,
        on_progress=lambda percent: queue.put_nowait(JobEvent("progress", percent)),
        on_log=lambda line: queue.put_nowait(JobEvent("log", line)),
        on_stage=lambda idx, name: queue.put_nowait(JobEvent("stage", (idx, name))),
    )
    task = asyncio.ensure_future(job.run())
    task.add_done_callback(lambda _t: queue.put_nowait(_DONE))
    delivered = False
    try:
        while True:
            event = await queue.get()
            if event is _DONE:
                break
            yield event
        handle = task.result()
        delivered = True
        yield JobEvent("result", handle)
    finally:
        if not task.done():
            job.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        elif not delivered and not task.cancelled() and task.exception() is None:
            # Consumer went away before taking the result
            task.result().release()


class BrandingSession:
    """Runs jobs one after another and owns the latest result handle.

    Starting a new job releases the previous result, and ``close()``
    releases the last one, so repeated runs do not pile up temp files.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        engine_factory: Optional[EngineFactory] = None,
    ):
        self.config = resolve_config(overrides=config)
        self.engine_factory = engine_factory
        self.current: Optional[MediaHandle] = None
        self.job: Optional[BrandingJob] = None
        self._lock = asyncio.Lock()

    def _release_current(self) -> None:
        if self.current is not None:
            logger.debug(f"Releasing superseded result {self.current!r}")
            self.current.release()
            self.current = None

    async def brand_video(
        self,
        request: BrandingRequest,
        *,
        on_progress: Optional[ProgressCallback] = None,
        on_log: Optional[LogCallback] = None,
        on_stage: Optional[StageCallback] = None,
    ) -> MediaHandle:
        # Jobs in one session never overlap
        async with self._lock:
            self._release_current()
            self.job = BrandingJob(
                request,
                config=self.config,
                engine_factory=self.engine_factory,
                on_progress=on_progress,
                on_log=on_log,
                on_stage=on_stage,
            )
            handle = await self.job.run()
            self.current = handle
            return handle

    def cancel(self) -> None:
        if self.job is not None:
            self.job.cancel()

    def close(self) -> None:
        self.cancel()
        self._release_current()

    def __enter__(self) -> "BrandingSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

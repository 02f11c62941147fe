"""Brand testimonial videos with a logo and a customer name card."""

from .exceptions import (
    AcquisitionError,
    ArtifactError,
    PipelineError,
    PlanError,
    RenderError,
    StageExecutionError,
    ValidationError,
)
from .job import BrandingJob, BrandingRequest, JobState, JobStatus, StyleConfig
from .media_handle import MediaHandle
from .pipeline import BrandingSession, JobEvent, brand_video, stream_brand_video

__version__ = "0.1.0"

__all__ = [
    "AcquisitionError",
    "ArtifactError",
    "BrandingJob",
    "BrandingRequest",
    "BrandingSession",
    "JobEvent",
    "JobState",
    "JobStatus",
    "MediaHandle",
    "PipelineError",
    "PlanError",
    "RenderError",
    "StageExecutionError",
    "StyleConfig",
    "ValidationError",
    "brand_video",
    "stream_brand_video",
]

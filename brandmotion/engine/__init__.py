from .base import LOG_EVENT, PROGRESS_EVENT, ProcessingEngine
from .ffmpeg_engine import FFmpegEngine, ProgressParser

__all__ = ["FFmpegEngine", "LOG_EVENT", "PROGRESS_EVENT", "ProcessingEngine", "ProgressParser"]

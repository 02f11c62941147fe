"""Encoder parameter dataclasses for ffmpeg."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

MOV_FAMILY = {"mp4", "mov", "m4v"}


@dataclass(frozen=True)
class EncodeParams:
    """Video encoder settings used by overlay stages. Audio is never re-encoded."""

    codec: str = "libx264"
    preset: Optional[str] = "veryfast"
    crf: Optional[int] = 20
    pix_fmt: str = "yuv420p"
    movflags: Optional[str] = "+faststart"

    @classmethod
    def from_config(cls, cfg: Optional[Dict[str, Any]]) -> "EncodeParams":
        cfg = cfg or {}
        defaults = cls()
        return cls(
            codec=str(cfg.get("video_codec", defaults.codec)),
            preset=cfg.get("preset", defaults.preset),
            crf=cfg.get("crf", defaults.crf),
            pix_fmt=str(cfg.get("pix_fmt", defaults.pix_fmt)),
            movflags=cfg.get("movflags", defaults.movflags),
        )

    def to_ffmpeg_opts(self, container: str = "mp4") -> List[str]:
        """Convert the settings into ffmpeg output options for the given container."""
        opts: List[str] = ["-c:v", self.codec]
        if self.preset:
            opts.extend(["-preset", str(self.preset)])
        if self.crf is not None:
            opts.extend(["-crf", str(self.crf)])
        opts.extend(["-pix_fmt", self.pix_fmt])
        # Audio stream passes through untouched
        opts.extend(["-c:a", "copy"])
        if self.movflags and container.lower() in MOV_FAMILY:
            opts.extend(["-movflags", self.movflags])
        return opts

"""Built-in configuration. A YAML file passed with ``--config`` is merged on top."""

from typing import Any, Dict

DEFAULT_CONFIG: Dict[str, Any] = {
    "name_card": {
        # None means "search the system font candidates"
        "name_font_path": None,
        "role_font_path": None,
        "text_color": "#FFFFFF",
        "default_color": "#000000",
        # Seconds before the name card appears; 0 shows it from the first frame
        "reveal_after": 1.0,
    },
    "engine": {
        "ffmpeg_path": "ffmpeg",
        "ffprobe_path": "ffprobe",
        "min_ffmpeg_version": "4.0",
        "stage_timeout_sec": None,
        "work_dir_parent": None,
    },
    "encoding": {
        "video_codec": "libx264",
        "preset": "veryfast",
        "crf": 20,
        "pix_fmt": "yuv420p",
        "movflags": "+faststart",
    },
    "output": {
        "container": "mp4",
        "mime_type": "video/mp4",
    },
}

import re
from typing import Any, Dict

from ...exceptions import ValidationError

HEX_COLOR_RE = re.compile(r"^#([0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
RGB_COLOR_RE = re.compile(r"^rgba?\(.*\)$", re.IGNORECASE)
CONTAINER_CHOICES = {"mp4", "mov", "m4v", "mkv", "webm"}
# WebM only carries VP8/VP9/AV1 video
WEBM_VIDEO_CODECS = {"libvpx", "libvpx-vp9", "libaom-av1", "libsvtav1"}


def _is_valid_color_string(value: str) -> bool:
    if HEX_COLOR_RE.match(value):
        return True
    if RGB_COLOR_RE.match(value):
        return True
    if value.isalpha():
        return True
    return False


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = config.get(name, {})
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ValidationError(f"'{name}' section must be a mapping.")
    return section


def _validate_name_card(cfg: Dict[str, Any]) -> None:
    for key in ("name_font_path", "role_font_path"):
        value = cfg.get(key)
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"name_card.{key} must be a string path.")

    for key in ("text_color", "default_color"):
        value = cfg.get(key)
        if value is not None and (
            not isinstance(value, str) or not _is_valid_color_string(value)
        ):
            raise ValidationError(f"name_card.{key} must be a valid color string.")

    reveal_after = cfg.get("reveal_after", 0)
    if isinstance(reveal_after, bool) or not isinstance(reveal_after, (int, float)):
        raise ValidationError("name_card.reveal_after must be a number.")
    if reveal_after < 0:
        raise ValidationError("name_card.reveal_after must be >= 0.")


def _validate_engine(cfg: Dict[str, Any]) -> None:
    for key in ("ffmpeg_path", "ffprobe_path", "min_ffmpeg_version"):
        value = cfg.get(key)
        if value is not None and (not isinstance(value, str) or not value.strip()):
            raise ValidationError(f"engine.{key} must be a non-empty string.")

    timeout = cfg.get("stage_timeout_sec")
    if timeout is not None:
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ValidationError("engine.stage_timeout_sec must be a positive number.")

    work_dir_parent = cfg.get("work_dir_parent")
    if work_dir_parent is not None and not isinstance(work_dir_parent, str):
        raise ValidationError("engine.work_dir_parent must be a string path.")


def _validate_encoding(cfg: Dict[str, Any]) -> None:
    codec = cfg.get("video_codec")
    if codec is not None and (not isinstance(codec, str) or not codec.strip()):
        raise ValidationError("encoding.video_codec must be a non-empty string.")
    codec_name = str(codec or "").strip().lower()
    if codec_name == "copy":
        # Overlays need decoded frames; stream copy of video cannot work
        raise ValidationError("encoding.video_codec cannot be 'copy'.")

    crf = cfg.get("crf")
    if crf is not None:
        if isinstance(crf, bool) or not isinstance(crf, int) or not 0 <= crf <= 63:
            raise ValidationError("encoding.crf must be an integer between 0 and 63.")

    for key in ("preset", "pix_fmt", "movflags"):
        value = cfg.get(key)
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"encoding.{key} must be a string.")


def _validate_output(cfg: Dict[str, Any]) -> None:
    container = cfg.get("container", "mp4")
    if not isinstance(container, str) or container.lower() not in CONTAINER_CHOICES:
        raise ValidationError(
            f"output.container must be one of {sorted(CONTAINER_CHOICES)}."
        )
    mime_type = cfg.get("mime_type")
    if mime_type is not None and (not isinstance(mime_type, str) or "/" not in mime_type):
        raise ValidationError("output.mime_type must look like 'video/mp4'.")


def validate_config(config: Dict[str, Any]) -> None:
    """Validate a merged configuration dict, raising ValidationError on the first problem."""
    if not isinstance(config, dict):
        raise ValidationError("Configuration must be a mapping.")
    _validate_name_card(_section(config, "name_card"))
    _validate_engine(_section(config, "engine"))
    _validate_encoding(_section(config, "encoding"))
    _validate_output(_section(config, "output"))
    _validate_container_codec(_section(config, "encoding"), _section(config, "output"))


def _validate_container_codec(encoding: Dict[str, Any], output: Dict[str, Any]) -> None:
    container = str(output.get("container", "mp4")).lower()
    codec = str(encoding.get("video_codec") or "libx264").strip().lower()
    if container == "webm" and codec not in WEBM_VIDEO_CODECS:
        raise ValidationError(
            f"encoding.video_codec '{codec}' cannot be written to webm; "
            f"use one of {sorted(WEBM_VIDEO_CODECS)}."
        )

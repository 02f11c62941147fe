"""Translate composition stages into ffmpeg command lines.

This is the only place that knows ffmpeg filter syntax; placement math
lives in :mod:`geometry` and ordering in :mod:`plan`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from ...exceptions import PlanError
from ...utils.ffmpeg_params import EncodeParams
from .geometry import Anchor, AxisOffset, Offset
from .plan import CompositionPlan, Operation, OverlayParams, ScaleParams, Stage


@dataclass(frozen=True)
class StageCommand:
    """ffmpeg arguments for one stage, without the executable itself."""

    stage: str
    args: Tuple[str, ...]
    output: str
    # Video input whose duration drives progress; None for still images
    primary_input: Optional[str] = None


def axis_expr(axis: AxisOffset, frame_var: str, overlay_var: str) -> str:
    if axis.anchor is Anchor.START:
        return str(axis.margin)
    return f"{frame_var}-{overlay_var}-{axis.margin}"


def offset_expr(offset: Offset) -> str:
    """``x=...:y=...`` for the overlay filter, evaluated by ffmpeg per frame."""
    x = axis_expr(offset.x, "main_w", "overlay_w")
    y = axis_expr(offset.y, "main_h", "overlay_h")
    return f"x={x}:y={y}"


def _format_seconds(value: float) -> str:
    return f"{value:.3f}".rstrip("0").rstrip(".")


def overlay_filter(params: OverlayParams) -> str:
    parts = [offset_expr(params.offset)]
    if params.reveal_after > 0:
        parts.append(f"enable='gte(t,{_format_seconds(params.reveal_after)})'")
    return "[0:v][1:v]overlay=" + ":".join(parts) + "[vout]"


def scale_filter(params: ScaleParams) -> str:
    return f"scale={params.width}:{params.height}:force_original_aspect_ratio=decrease"


def stage_to_command(
    stage: Stage,
    encode: Optional[EncodeParams] = None,
    container: str = "mp4",
) -> StageCommand:
    encode = encode or EncodeParams()
    args: List[str] = ["-y"]
    for ref in stage.inputs:
        args.extend(["-i", ref])

    params = stage.parameters
    if stage.operation is Operation.SCALE and isinstance(params, ScaleParams):
        args.extend(["-vf", scale_filter(params), "-frames:v", "1", stage.output])
        return StageCommand(stage=stage.name, args=tuple(args), output=stage.output)

    if stage.operation is Operation.OVERLAY and isinstance(params, OverlayParams):
        if params.audio != "copy":
            raise PlanError(f"Stage {stage.name} asks for audio '{params.audio}'; only 'copy' is supported.")
        args.extend(["-filter_complex", overlay_filter(params)])
        args.extend(["-map", "[vout]", "-map", "0:a?"])
        args.extend(encode.to_ffmpeg_opts(container))
        args.append(stage.output)
        return StageCommand(
            stage=stage.name,
            args=tuple(args),
            output=stage.output,
            primary_input=stage.inputs[0],
        )

    raise PlanError(f"Stage {stage.name} has parameters that do not match '{stage.operation.value}'.")


def plan_to_commands(
    plan: CompositionPlan,
    encode: Optional[EncodeParams] = None,
    container: str = "mp4",
) -> List[StageCommand]:
    return [stage_to_command(stage, encode, container) for stage in plan.stages]

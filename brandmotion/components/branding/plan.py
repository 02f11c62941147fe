"""Pure-data composition plan: scale logo -> overlay logo -> overlay name card."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from ...exceptions import PlanError
from .geometry import LogoPlacement, Offset, name_card_placement


class Operation(str, Enum):
    SCALE = "scale"
    OVERLAY = "overlay"


@dataclass(frozen=True)
class ScaleParams:
    """Fit inside ``width`` x ``height`` keeping the aspect ratio."""

    width: int
    height: int


@dataclass(frozen=True)
class OverlayParams:
    offset: Offset
    # Audio of the base input is always stream-copied
    audio: str = "copy"
    reveal_after: float = 0.0


StageParams = Union[ScaleParams, OverlayParams]


@dataclass(frozen=True)
class Stage:
    name: str
    operation: Operation
    inputs: Tuple[str, ...]
    parameters: StageParams
    output: str


@dataclass(frozen=True)
class ArtifactNames:
    """File names used inside the engine's working storage."""

    video: str = "input.mp4"
    logo: str = "logo.png"
    name_card: str = "name_card.png"
    scaled_logo: str = "scaled_logo.png"
    video_with_logo: str = "video_with_logo.mp4"
    final: str = "final.mp4"

    @classmethod
    def for_container(cls, container: str = "mp4") -> "ArtifactNames":
        ext = container.lower().lstrip(".")
        return cls(
            video=f"input.{ext}",
            video_with_logo=f"video_with_logo.{ext}",
            final=f"final.{ext}",
        )


@dataclass(frozen=True)
class CompositionPlan:
    sources: Tuple[str, ...]
    stages: Tuple[Stage, ...]

    @property
    def final_output(self) -> str:
        return self.stages[-1].output

    def validate(self) -> None:
        """Every stage may only consume uploads or outputs of earlier stages."""
        available = set(self.sources)
        for idx, stage in enumerate(self.stages):
            for ref in stage.inputs:
                if ref not in available:
                    raise PlanError(
                        f"Stage {idx + 1} ({stage.name}) reads '{ref}' before it is produced."
                    )
            if stage.output in available:
                raise PlanError(
                    f"Stage {idx + 1} ({stage.name}) overwrites existing artifact '{stage.output}'."
                )
            available.add(stage.output)


def build_plan(
    video_ref: str,
    logo_ref: str,
    name_card_ref: str,
    placement: LogoPlacement,
    *,
    name_card_offset: Optional[Offset] = None,
    reveal_after: float = 0.0,
    names: Optional[ArtifactNames] = None,
) -> CompositionPlan:
    """Assemble the three branding stages. No engine is touched here."""
    names = names or ArtifactNames()
    stages = (
        Stage(
            name="scale_logo",
            operation=Operation.SCALE,
            inputs=(logo_ref,),
            parameters=ScaleParams(width=placement.width_px, height=placement.height_px),
            output=names.scaled_logo,
        ),
        Stage(
            name="overlay_logo",
            operation=Operation.OVERLAY,
            inputs=(video_ref, names.scaled_logo),
            parameters=OverlayParams(offset=placement.offset),
            output=names.video_with_logo,
        ),
        Stage(
            name="overlay_name_card",
            operation=Operation.OVERLAY,
            inputs=(names.video_with_logo, name_card_ref),
            parameters=OverlayParams(
                offset=name_card_offset or name_card_placement(),
                reveal_after=max(0.0, float(reveal_after)),
            ),
            output=names.final,
        ),
    )
    plan = CompositionPlan(sources=(video_ref, logo_ref, name_card_ref), stages=stages)
    plan.validate()
    return plan

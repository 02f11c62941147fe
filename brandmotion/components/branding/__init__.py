"""Style resolution, name-card rendering and composition planning."""

from .filtergraph import StageCommand, plan_to_commands, stage_to_command
from .geometry import (
    LogoPlacement,
    LogoPosition,
    LogoSize,
    Offset,
    dimensions_for,
    name_card_placement,
    resolve_placement,
)
from .name_card import (
    NameCardAsset,
    NameCardSpec,
    build_name_card_spec,
    compute_name_card_width,
    rasterize_name_card,
    render_name_card,
)
from .plan import ArtifactNames, CompositionPlan, Operation, Stage, build_plan

__all__ = [
    "ArtifactNames",
    "CompositionPlan",
    "LogoPlacement",
    "LogoPosition",
    "LogoSize",
    "NameCardAsset",
    "NameCardSpec",
    "Offset",
    "Operation",
    "Stage",
    "StageCommand",
    "build_name_card_spec",
    "build_plan",
    "compute_name_card_width",
    "dimensions_for",
    "name_card_placement",
    "plan_to_commands",
    "rasterize_name_card",
    "render_name_card",
    "resolve_placement",
    "stage_to_command",
]

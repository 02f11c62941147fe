"""Logo and name-card placement geometry.

Positions and sizes arrive as loose strings from the caller. Unknown values
fall back to a default (top-right, medium) instead of being rejected.
Offsets stay symbolic so they can be evaluated here in Python or handed to
ffmpeg as an expression that is resolved against the real frame size.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union

LOGO_MARGIN = 10
NAME_CARD_MARGIN = 20


class LogoPosition(str, Enum):
    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"


class LogoSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


DEFAULT_POSITION = LogoPosition.TOP_RIGHT
DEFAULT_SIZE = LogoSize.MEDIUM

_SIZE_PX = {
    LogoSize.SMALL: 80,
    LogoSize.MEDIUM: 160,
    LogoSize.LARGE: 240,
}


class Anchor(str, Enum):
    START = "start"  # measured from the left/top edge
    END = "end"  # measured from the right/bottom edge


@dataclass(frozen=True)
class AxisOffset:
    """Offset along one axis: ``margin`` from the start, or ``frame - overlay - margin``."""

    anchor: Anchor
    margin: int

    def evaluate(self, frame_size: int, overlay_size: int) -> int:
        if self.anchor is Anchor.START:
            return self.margin
        return frame_size - overlay_size - self.margin


@dataclass(frozen=True)
class Offset:
    """Symbolic overlay position, callable as ``(frame_w, frame_h, overlay_w, overlay_h) -> (x, y)``."""

    x: AxisOffset
    y: AxisOffset

    def __call__(
        self, frame_width: int, frame_height: int, overlay_width: int, overlay_height: int
    ) -> Tuple[int, int]:
        return (
            self.x.evaluate(frame_width, overlay_width),
            self.y.evaluate(frame_height, overlay_height),
        )


def _corner(x_anchor: Anchor, y_anchor: Anchor, margin: int) -> Offset:
    return Offset(AxisOffset(x_anchor, margin), AxisOffset(y_anchor, margin))


_POSITION_OFFSETS = {
    LogoPosition.TOP_LEFT: _corner(Anchor.START, Anchor.START, LOGO_MARGIN),
    LogoPosition.TOP_RIGHT: _corner(Anchor.END, Anchor.START, LOGO_MARGIN),
    LogoPosition.BOTTOM_LEFT: _corner(Anchor.START, Anchor.END, LOGO_MARGIN),
    LogoPosition.BOTTOM_RIGHT: _corner(Anchor.END, Anchor.END, LOGO_MARGIN),
}


@dataclass(frozen=True)
class LogoPlacement:
    position: LogoPosition
    size: LogoSize
    width_px: int
    height_px: int
    offset: Offset


def _coerce(value, enum_cls, default):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default


def normalize_position(position: Union[str, LogoPosition, None]) -> LogoPosition:
    return _coerce(position, LogoPosition, DEFAULT_POSITION)


def normalize_size(size: Union[str, LogoSize, None]) -> LogoSize:
    return _coerce(size, LogoSize, DEFAULT_SIZE)


def is_known_position(position) -> bool:
    return isinstance(position, LogoPosition) or str(position).strip().lower() in {
        p.value for p in LogoPosition
    }


def is_known_size(size) -> bool:
    return isinstance(size, LogoSize) or str(size).strip().lower() in {
        s.value for s in LogoSize
    }


def dimensions_for(size: Union[str, LogoSize, None]) -> int:
    """Edge length in pixels of the square box the logo is fitted into."""
    return _SIZE_PX[normalize_size(size)]


def resolve_placement(
    position: Union[str, LogoPosition, None], size: Union[str, LogoSize, None]
) -> LogoPlacement:
    resolved_position = normalize_position(position)
    resolved_size = normalize_size(size)
    px = _SIZE_PX[resolved_size]
    return LogoPlacement(
        position=resolved_position,
        size=resolved_size,
        width_px=px,
        height_px=px,
        offset=_POSITION_OFFSETS[resolved_position],
    )


def name_card_placement() -> Offset:
    """Bottom-left corner, regardless of where the logo goes."""
    return _corner(Anchor.START, Anchor.END, NAME_CARD_MARGIN)

import io
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from PIL import Image, ImageColor, ImageDraw, ImageFont

from ...exceptions import RenderError

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]
ColorLike = Union[str, RGB, None]

BASE_WIDTH = 200
NAME_CHAR_PX = 10
ROLE_CHAR_PX = 6
MAX_WIDTH = 480
CARD_HEIGHT = 120
PADDING = 24
BORDER_RADIUS = 12
NAME_FONT_SIZE = 28
ROLE_FONT_SIZE = 18
LINE_GAP = 6

DEFAULT_BACKGROUND: RGB = (0, 0, 0)
DEFAULT_TEXT_COLOR: RGB = (255, 255, 255)

_FONT_CACHE: Dict[Tuple[str, int], Any] = {}

BOLD_FONT_CANDIDATES = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "/usr/share/fonts/truetype/freefont/FreeSansBold.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf",
    "/Library/Fonts/Arial Bold.ttf",
    "/System/Library/Fonts/Supplemental/Arial Bold.ttf",
    "C:\\Windows\\Fonts\\arialbd.ttf",
]

REGULAR_FONT_CANDIDATES = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans.ttf",
    "/Library/Fonts/Arial.ttf",
    "/System/Library/Fonts/Supplemental/Arial.ttf",
    "C:\\Windows\\Fonts\\arial.ttf",
]


@dataclass(frozen=True)
class NameCardSpec:
    """Everything needed to draw one name card."""

    name: str
    role: str
    background_color: RGB
    width: int
    height: int = CARD_HEIGHT
    padding: int = PADDING
    border_radius: int = BORDER_RADIUS
    name_font_size: int = NAME_FONT_SIZE
    role_font_size: int = ROLE_FONT_SIZE
    line_gap: int = LINE_GAP
    text_color: RGB = DEFAULT_TEXT_COLOR
    name_font_path: Optional[str] = None
    role_font_path: Optional[str] = None

    @property
    def role_y(self) -> int:
        return self.padding + self.name_font_size + self.line_gap


@dataclass(frozen=True)
class NameCardAsset:
    png_bytes: bytes
    width: int
    height: int


def text_units(text: str) -> int:
    """Length in UTF-16 code units; characters outside the BMP count twice."""
    return len(text.encode("utf-16-le", "surrogatepass")) // 2


def compute_name_card_width(name: str, role: str) -> int:
    """Linear width model, capped at MAX_WIDTH."""
    return min(
        MAX_WIDTH, BASE_WIDTH + NAME_CHAR_PX * text_units(name) + ROLE_CHAR_PX * text_units(role)
    )


def resolve_color(value: ColorLike, default: RGB) -> RGB:
    """Turn a color string or tuple into RGB, using ``default`` for missing/invalid input."""
    if value is None:
        return default
    if isinstance(value, (list, tuple)):
        if len(value) >= 3:
            try:
                return tuple(int(max(0, min(255, c))) for c in value[:3])  # type: ignore[return-value]
            except (TypeError, ValueError):
                return default
        return default
    color_str = str(value).strip()
    if not color_str:
        return default
    try:
        rgb = ImageColor.getrgb(color_str)
    except ValueError:
        logger.warning("Invalid color %r; using %s", value, default)
        return default
    return int(rgb[0]), int(rgb[1]), int(rgb[2])


def build_name_card_spec(
    name: Optional[str],
    role: Optional[str],
    color: ColorLike,
    style: Optional[Dict[str, Any]] = None,
) -> NameCardSpec:
    """Build a NameCardSpec from caller input plus the ``name_card`` config section."""
    style = style or {}
    name = "" if name is None else str(name)
    role = "" if role is None else str(role)
    default_bg = resolve_color(style.get("default_color"), DEFAULT_BACKGROUND)
    return NameCardSpec(
        name=name,
        role=role,
        background_color=resolve_color(color, default_bg),
        width=compute_name_card_width(name, role),
        text_color=resolve_color(style.get("text_color"), DEFAULT_TEXT_COLOR),
        name_font_path=style.get("name_font_path"),
        role_font_path=style.get("role_font_path"),
    )


def load_font(font_path: Optional[str], font_size: int, bold: bool = False):
    """Load a TrueType/OpenType font with fallbacks.

    Tries the given path first, then common system fonts, then Pillow's
    built-in font.
    """
    key = (f"{font_path or ''}|{'bold' if bold else 'regular'}", int(font_size))
    if key in _FONT_CACHE:
        return _FONT_CACHE[key]

    candidates = [font_path] if font_path else []
    candidates.extend(BOLD_FONT_CANDIDATES if bold else REGULAR_FONT_CANDIDATES)
    for path in candidates:
        if not os.path.exists(path):
            continue
        try:
            font = ImageFont.truetype(path, font_size)
        except OSError:
            logger.debug("Could not load font %s", path)
            continue
        _FONT_CACHE[key] = font
        return font

    if font_path:
        logger.warning("Font %s not found; falling back to the built-in font", font_path)
    font = ImageFont.load_default(size=font_size)
    _FONT_CACHE[key] = font
    return font


def rasterize_name_card(spec: NameCardSpec) -> NameCardAsset:
    """Draw the card into an in-memory RGBA image and encode it as PNG."""
    try:
        img = Image.new("RGBA", (spec.width, spec.height), (0, 0, 0, 0))
        draw = ImageDraw.Draw(img)
        draw.rounded_rectangle(
            (0, 0, spec.width - 1, spec.height - 1),
            radius=spec.border_radius,
            fill=spec.background_color + (255,),
        )

        name_font = load_font(spec.name_font_path, spec.name_font_size, bold=True)
        role_font = load_font(spec.role_font_path, spec.role_font_size, bold=False)
        fill = spec.text_color + (255,)
        # Pillow's default anchor ("la") puts the ascender line at y, i.e. top-aligned text
        if spec.name:
            draw.text((spec.padding, spec.padding), spec.name, font=name_font, fill=fill)
        if spec.role:
            draw.text((spec.padding, spec.role_y), spec.role, font=role_font, fill=fill)

        buf = io.BytesIO()
        img.save(buf, format="PNG")
    except (UnicodeError, OSError, ValueError) as exc:
        raise RenderError(f"Failed to render name card for {spec.name!r}: {exc}") from exc
    return NameCardAsset(png_bytes=buf.getvalue(), width=spec.width, height=spec.height)


def render_name_card(
    name: Optional[str],
    role: Optional[str],
    color: ColorLike,
    style: Optional[Dict[str, Any]] = None,
) -> bytes:
    """Render a name card and return the PNG bytes."""
    return rasterize_name_card(build_name_card_spec(name, role, color, style)).png_bytes

"""
Compositor - draw an ordered shape list onto a base raster.

``render`` is the single drawing path shared by the live preview endpoint and
report generation, so both always agree on geometry. It is pure: the base
image is copied into a RenderContext, shapes are drawn back to front, and the
copy is returned.

Drawing rules:
  rectangle -> normalised box outline, optional fill blended at FILL_ALPHA
  circle    -> outline centred on (x, y), optional fill blended at FILL_ALPHA
  arrow     -> shaft plus two head segments at +/- spread from the shaft
  freehand  -> polyline through the points (nothing below two points)
  text      -> literal string, left-aligned on its baseline at (x, y)
"""
import functools
import io
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Sequence, Tuple

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from app import config
from app.annotation.shapes import (
    Arrow,
    Circle,
    Freehand,
    Rectangle,
    Shape,
    Text,
    parse_color,
)
from app.errors import DecodeError

logger = logging.getLogger(__name__)

ARROWHEAD_LENGTH = config.ARROWHEAD_LENGTH
ARROWHEAD_SPREAD = math.radians(config.ARROWHEAD_SPREAD_DEGREES)
FILL_ALPHA = config.FILL_ALPHA

Segment = Tuple[Tuple[float, float], Tuple[float, float]]

_FONT_CANDIDATES = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
    "/Library/Fonts/Arial.ttf",
    "C:/Windows/Fonts/arial.ttf",
]


@functools.lru_cache(maxsize=1)
def _find_font() -> Optional[str]:
    for candidate in _FONT_CANDIDATES:
        if Path(candidate).exists():
            return candidate
    return None


def font_path() -> Optional[str]:
    """The configured TEXT_FONT_PATH, else the first system candidate found"""
    return config.TEXT_FONT_PATH or _find_font()


@functools.lru_cache(maxsize=32)
def _load_font(path: Optional[str], size: int):
    # An unreadable configured font raises OSError
    if path:
        return ImageFont.truetype(path, size=size)
    return ImageFont.load_default(size=size)


# ---- geometry shared by every consumer ----

def normalized_box(shape: Rectangle) -> Tuple[float, float, float, float]:
    """(left, top, right, bottom) of a rectangle drawn in any drag direction"""
    x0, x1 = sorted((shape.x, shape.x + shape.width))
    y0, y1 = sorted((shape.y, shape.y + shape.height))
    return (x0, y0, x1, y1)


def circle_box(shape: Circle) -> Tuple[float, float, float, float]:
    r = shape.radius
    return (shape.x - r, shape.y - r, shape.x + r, shape.y + r)


def arrowhead_segments(
    start: Tuple[float, float],
    end: Tuple[float, float],
    length: float = ARROWHEAD_LENGTH,
    spread: float = ARROWHEAD_SPREAD,
) -> Tuple[Segment, Segment]:
    """
    The two head strokes of an arrow

    Both run from the tip back along the shaft, rotated by -spread and
    +spread, each ``length`` long.
    """
    ex, ey = end
    angle = math.atan2(ey - start[1], ex - start[0])
    heads = []
    for offset in (-spread, spread):
        heads.append((
            (ex, ey),
            (ex - length * math.cos(angle + offset), ey - length * math.sin(angle + offset)),
        ))
    return heads[0], heads[1]


# ---- raster codec ----

def decode_raster(data: bytes) -> Image.Image:
    """
    Decode image bytes into a fully loaded Pillow image

    Raises:
        DecodeError: If the bytes are not a readable image
    """
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise DecodeError(f"Cannot decode base image: {e}")
    return image


def encode_raster(image: Image.Image, format: str = "PNG", quality: int = config.JPEG_QUALITY) -> bytes:
    """Encode an image; JPEG output is flattened to RGB"""
    buffer = io.BytesIO()
    if format.upper() in ("JPEG", "JPG"):
        image.convert("RGB").save(buffer, format="JPEG", quality=quality)
    else:
        image.save(buffer, format=format)
    return buffer.getvalue()


# ---- rendering ----

@dataclass
class RenderContext:
    """
    Per-call drawing state

    Created fresh for every render so concurrent renders never share a
    canvas. The geometry constants default to the configured values.
    """
    image: Image.Image
    draw: ImageDraw.ImageDraw
    arrowhead_length: float = ARROWHEAD_LENGTH
    arrowhead_spread: float = ARROWHEAD_SPREAD
    fill_alpha: float = FILL_ALPHA

    @classmethod
    def for_image(cls, base: Image.Image, **constants) -> "RenderContext":
        working = base.convert("RGBA")
        return cls(image=working, draw=ImageDraw.Draw(working), **constants)

    def blend_fill(self, color: str, paint: Callable[[ImageDraw.ImageDraw, Tuple[int, int, int, int]], None]) -> None:
        """Paint a translucent fill on its own layer and composite it"""
        r, g, b, a = parse_color(color)
        alpha = round(a * self.fill_alpha)
        if alpha <= 0:
            return
        overlay = Image.new("RGBA", self.image.size, (0, 0, 0, 0))
        paint(ImageDraw.Draw(overlay), (r, g, b, alpha))
        self.image.alpha_composite(overlay)


def _line_width(stroke_width: float) -> int:
    return max(1, round(stroke_width))


def _outline_box(box, width: int):
    # Pillow strokes inside the box; grow it so the stroke straddles the path
    half = width / 2
    return (box[0] - half, box[1] - half, box[2] + half, box[3] + half)


def _draw_rectangle(ctx: RenderContext, shape: Rectangle) -> None:
    box = normalized_box(shape)
    if box[0] == box[2] and box[1] == box[3]:
        return
    width = _line_width(shape.stroke_width)
    ctx.draw.rectangle(_outline_box(box, width), outline=parse_color(shape.color), width=width)
    if shape.fill_color:
        ctx.blend_fill(shape.fill_color, lambda d, fill: d.rectangle(box, fill=fill))


def _draw_circle(ctx: RenderContext, shape: Circle) -> None:
    if shape.radius <= 0:
        return
    box = circle_box(shape)
    width = _line_width(shape.stroke_width)
    ctx.draw.ellipse(_outline_box(box, width), outline=parse_color(shape.color), width=width)
    if shape.fill_color:
        ctx.blend_fill(shape.fill_color, lambda d, fill: d.ellipse(box, fill=fill))


def _draw_arrow(ctx: RenderContext, shape: Arrow) -> None:
    start = (shape.start_x, shape.start_y)
    end = (shape.end_x, shape.end_y)
    color = parse_color(shape.color)
    width = _line_width(shape.stroke_width)
    ctx.draw.line([start, end], fill=color, width=width)
    for segment in arrowhead_segments(start, end, ctx.arrowhead_length, ctx.arrowhead_spread):
        ctx.draw.line(list(segment), fill=color, width=width)


def _draw_freehand(ctx: RenderContext, shape: Freehand) -> None:
    if len(shape.points) < 2:
        return
    ctx.draw.line(
        [(p.x, p.y) for p in shape.points],
        fill=parse_color(shape.color),
        width=_line_width(shape.stroke_width),
        joint="curve",
    )


def _draw_text(ctx: RenderContext, shape: Text) -> None:
    font = _load_font(font_path(), max(1, round(shape.font_size)))
    if isinstance(font, ImageFont.FreeTypeFont):
        ctx.draw.text((shape.x, shape.y), shape.text, fill=parse_color(shape.color), font=font, anchor="ls")
    else:
        # Bitmap fonts only support top-left anchoring
        ctx.draw.text((shape.x, shape.y - shape.font_size), shape.text, fill=parse_color(shape.color), font=font)


_DRAWERS: Dict[type, Callable[[RenderContext, Shape], None]] = {
    Rectangle: _draw_rectangle,
    Circle: _draw_circle,
    Arrow: _draw_arrow,
    Freehand: _draw_freehand,
    Text: _draw_text,
}


def render(
    base: Image.Image,
    shapes: Iterable[Shape],
    context: Optional[RenderContext] = None,
) -> Image.Image:
    """
    Draw shapes onto a copy of ``base`` in list order

    Args:
        base: Decoded base raster (left untouched)
        shapes: Shapes in paint order, earliest first
        context: Optional pre-built context (e.g. with custom constants);
            a fresh one is created from ``base`` otherwise

    Returns:
        New image; RGB bases come back as RGB, everything else as RGBA
    """
    ctx = context if context is not None else RenderContext.for_image(base)
    for shape in shapes:
        _DRAWERS[type(shape)](ctx, shape)
    if base.mode == "RGB":
        return ctx.image.convert("RGB")
    return ctx.image


def render_encoded(data: bytes, shapes: Sequence[Shape], format: str = "PNG") -> bytes:
    """
    Best-effort render of encoded bytes

    If the base cannot be decoded the original bytes are returned unchanged,
    so callers always get something displayable.
    """
    try:
        base = decode_raster(data)
    except DecodeError as e:
        logger.warning(f"Returning undecorated image: {e}")
        return data
    return encode_raster(render(base, shapes), format=format)

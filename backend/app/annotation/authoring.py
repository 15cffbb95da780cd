"""
Authoring state machine for the annotation canvas.

An AuthoringSession turns pointer gestures into shapes:

    IDLE --pointer_down--> DRAWING --pointer_move*--> DRAWING --pointer_up--> IDLE

Pointer positions arrive in device (display) coordinates and are mapped to
raster pixels through a Viewport, so shapes are stored in the same space the
compositor draws in. Every completed gesture is committed to a HistoryStack
as a fresh AnnotationSet snapshot. While a gesture is in progress the
session only publishes previews; history is untouched until pointer_up.
"""
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from app import config
from app.annotation.history import HistoryStack
from app.annotation.shapes import (
    AnnotationSet,
    Arrow,
    Circle,
    Freehand,
    Point,
    Rectangle,
    Shape,
    Text,
    parse_color,
)
from app.errors import AtBoundary, GestureInProgress, ValidationError

logger = logging.getLogger(__name__)

PreviewCallback = Callable[[Tuple[Shape, ...]], None]


class Tool(str, Enum):
    RECTANGLE = "rectangle"
    CIRCLE = "circle"
    ARROW = "arrow"
    FREEHAND = "freehand"
    TEXT = "text"


class GestureState(Enum):
    IDLE = "idle"
    DRAWING = "drawing"


@dataclass(frozen=True)
class Viewport:
    """
    Display geometry of the raster on screen

    Attributes:
        raster_width: Native width of the base image in pixels
        raster_height: Native height of the base image in pixels
        display_width: Width the image is displayed at
        display_height: Height the image is displayed at
        left: Device x of the displayed image's left edge
        top: Device y of the displayed image's top edge
    """
    raster_width: float
    raster_height: float
    display_width: float
    display_height: float
    left: float = 0.0
    top: float = 0.0

    def __post_init__(self):
        for name in ("raster_width", "raster_height", "display_width", "display_height"):
            value = getattr(self, name)
            if not (math.isfinite(value) and value > 0):
                raise ValidationError(name, "must be a positive number")

    @classmethod
    def unscaled(cls, width: float, height: float) -> "Viewport":
        """Viewport for an image displayed at its native size"""
        return cls(width, height, width, height)

    def to_image(self, x: float, y: float) -> Tuple[float, float]:
        """Map a device position to raster pixel coordinates"""
        scale_x = self.raster_width / self.display_width
        scale_y = self.raster_height / self.display_height
        return ((x - self.left) * scale_x, (y - self.top) * scale_y)


def is_degenerate(shape: Shape) -> bool:
    """True for shapes produced by a click without any drag"""
    if isinstance(shape, Rectangle):
        return shape.width == 0 and shape.height == 0
    if isinstance(shape, Circle):
        return shape.radius == 0
    if isinstance(shape, Arrow):
        return shape.start_x == shape.end_x and shape.start_y == shape.end_y
    if isinstance(shape, Freehand):
        first = shape.points[0]
        return all(p == first for p in shape.points)
    return False


class AuthoringSession:
    """
    One reviewer's drawing session over one base image

    Args:
        viewport: Device-to-raster mapping
        initial: Previously saved annotations to start from
        on_preview: Called with the shapes to draw whenever the preview changes
        keep_degenerate: Keep click-without-drag shapes instead of discarding
            them (defaults to ``config.KEEP_DEGENERATE_SHAPES``)
    """

    def __init__(
        self,
        viewport: Viewport,
        initial: Optional[AnnotationSet] = None,
        on_preview: Optional[PreviewCallback] = None,
        keep_degenerate: Optional[bool] = None,
    ):
        self.viewport = viewport
        self.history = HistoryStack(initial)
        self._on_preview = on_preview
        if keep_degenerate is None:
            keep_degenerate = config.KEEP_DEGENERATE_SHAPES
        self._keep_degenerate = keep_degenerate

        self._state = GestureState.IDLE
        self._tool = Tool.RECTANGLE
        self._color = "#ff0000"
        self._stroke_width = 2.0
        self._fill_color: Optional[str] = None
        self._font_size = 16.0
        self._text = ""

        self._start: Optional[Tuple[float, float]] = None
        self._points: List[Tuple[float, float]] = []
        self._in_progress: Optional[Shape] = None

    # ---- state ----

    @property
    def state(self) -> GestureState:
        return self._state

    @property
    def annotations(self) -> AnnotationSet:
        """The committed set at the history cursor"""
        return self.history.current

    @property
    def in_progress(self) -> Optional[Shape]:
        return self._in_progress

    @property
    def tool(self) -> Tool:
        return self._tool

    @property
    def color(self) -> str:
        return self._color

    @property
    def stroke_width(self) -> float:
        return self._stroke_width

    def preview_shapes(self) -> Tuple[Shape, ...]:
        shapes = self.annotations.annotations
        if self._in_progress is not None:
            shapes = shapes + (self._in_progress,)
        return shapes

    # ---- tool settings (IDLE only) ----

    def _require_idle(self, what: str) -> None:
        if self._state is not GestureState.IDLE:
            raise GestureInProgress(f"Cannot change {what} while a gesture is in progress")

    def set_tool(self, tool) -> None:
        self._require_idle("tool")
        try:
            self._tool = Tool(tool)
        except ValueError:
            raise ValidationError("tool", f"unknown tool {tool!r}")

    def set_color(self, color: str) -> None:
        self._require_idle("color")
        self._color = _valid_color("color", color)

    def set_fill_color(self, color: Optional[str]) -> None:
        self._require_idle("fill color")
        self._fill_color = None if color is None else _valid_color("fill_color", color)

    def set_stroke_width(self, width: float) -> None:
        self._require_idle("stroke width")
        self._stroke_width = _positive("stroke_width", width)

    def set_text(self, text: str, font_size: Optional[float] = None) -> None:
        self._require_idle("text")
        if font_size is not None:
            self._font_size = _positive("font_size", font_size)
        self._text = text

    # ---- pointer events ----

    def pointer_down(self, x: float, y: float) -> None:
        if self._state is GestureState.DRAWING:
            logger.debug("Ignoring pointer-down during an active gesture")
            return
        start = self.viewport.to_image(x, y)
        if not all(math.isfinite(v) for v in start):
            raise ValidationError("position", "pointer position is not a finite number")
        if self._tool is Tool.TEXT and not self._text:
            raise ValidationError("text", "set the text before placing it")

        self._start = start
        self._points = [start] if self._tool is Tool.FREEHAND else []
        self._in_progress = None
        self._state = GestureState.DRAWING

    def pointer_move(self, x: float, y: float) -> Optional[Shape]:
        """Update the in-progress shape; returns it, or None when idle"""
        if self._state is GestureState.IDLE:
            return None
        current = self.viewport.to_image(x, y)
        points = self._points + [current] if self._tool is Tool.FREEHAND else self._points

        shape = self._build(current, points)
        self._points = points
        self._in_progress = shape
        self._publish(self.preview_shapes())
        return shape

    def pointer_up(self, x: float, y: float) -> Optional[Shape]:
        """
        Finish the gesture

        Returns:
            The committed shape, or None when idle or when a degenerate
            shape was discarded
        """
        if self._state is GestureState.IDLE:
            return None
        current = self.viewport.to_image(x, y)
        points = self._points
        if self._tool is Tool.FREEHAND and points[-1] != current:
            points = points + [current]

        try:
            shape = self._build(current, points)
        finally:
            self._reset()

        if not self._keep_degenerate and is_degenerate(shape):
            logger.debug(f"Discarding zero-displacement {shape.type}")
            self._publish(self.preview_shapes())
            return None

        snapshot = self.annotations.with_shape(shape)
        self.history.commit(snapshot)
        self._publish(snapshot.annotations)
        return shape

    def cancel(self) -> None:
        """Abandon the in-progress gesture without touching history"""
        if self._state is GestureState.IDLE:
            return
        self._reset()
        self._publish(self.preview_shapes())

    # ---- history ----

    def undo(self) -> bool:
        self._require_idle("history")
        try:
            snapshot = self.history.undo()
        except AtBoundary:
            logger.debug("Undo at start of history")
            return False
        self._publish(snapshot.annotations)
        return True

    def redo(self) -> bool:
        self._require_idle("history")
        try:
            snapshot = self.history.redo()
        except AtBoundary:
            logger.debug("Redo at end of history")
            return False
        self._publish(snapshot.annotations)
        return True

    # ---- internals ----

    def _reset(self) -> None:
        self._state = GestureState.IDLE
        self._start = None
        self._points = []
        self._in_progress = None

    def _publish(self, shapes: Tuple[Shape, ...]) -> None:
        if self._on_preview is not None:
            self._on_preview(shapes)

    def _build(self, current: Tuple[float, float], points: List[Tuple[float, float]]) -> Shape:
        sx, sy = self._start
        cx, cy = current
        style = {"color": self._color, "stroke_width": self._stroke_width}

        if self._tool is Tool.RECTANGLE:
            return Rectangle(
                x=sx, y=sy, width=cx - sx, height=cy - sy,
                fill_color=self._fill_color, **style,
            )
        if self._tool is Tool.CIRCLE:
            return Circle(
                x=sx, y=sy, radius=math.hypot(cx - sx, cy - sy),
                fill_color=self._fill_color, **style,
            )
        if self._tool is Tool.ARROW:
            return Arrow(start_x=sx, start_y=sy, end_x=cx, end_y=cy, **style)
        if self._tool is Tool.FREEHAND:
            return Freehand(points=tuple(Point(x=px, y=py) for px, py in points), **style)
        return Text(x=sx, y=sy, text=self._text, color=self._color, font_size=self._font_size)


def _valid_color(field: str, value: str) -> str:
    try:
        parse_color(value)
    except (ValueError, AttributeError):
        raise ValidationError(field, f"unrecognised color {value!r}")
    return value


def _positive(field: str, value: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(field, "must be a number")
    if not (math.isfinite(number) and number > 0):
        raise ValidationError(field, "must be a positive number")
    return number

"""
Annotation core: shape model, undo/redo history, authoring state machine and
the compositor shared by live preview and report rendering.

Usage:
    from app.annotation import AuthoringSession, Viewport, render

    session = AuthoringSession(Viewport(1024, 768, 512, 384))
    session.pointer_down(10, 10)
    session.pointer_move(60, 40)
    session.pointer_up(60, 40)

    annotated = render(base_image, session.annotations.annotations)
"""
from .shapes import (
    AnnotationSet,
    Arrow,
    Circle,
    Freehand,
    Point,
    Rectangle,
    Shape,
    Text,
    make_shape,
    parse_color,
    parse_shape,
)
from .history import HistoryStack
from .authoring import AuthoringSession, GestureState, Tool, Viewport
from .compositor import (
    RenderContext,
    arrowhead_segments,
    decode_raster,
    encode_raster,
    normalized_box,
    render,
    render_encoded,
)

__all__ = [
    "AnnotationSet",
    "Arrow",
    "Circle",
    "Freehand",
    "Point",
    "Rectangle",
    "Shape",
    "Text",
    "make_shape",
    "parse_color",
    "parse_shape",
    "HistoryStack",
    "AuthoringSession",
    "GestureState",
    "Tool",
    "Viewport",
    "RenderContext",
    "arrowhead_segments",
    "decode_raster",
    "encode_raster",
    "normalized_box",
    "render",
    "render_encoded",
]

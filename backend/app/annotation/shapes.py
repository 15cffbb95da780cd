"""
Annotation Shape Models

Immutable pydantic models for the five annotation variants and the ordered
AnnotationSet that owns them. Coordinates are always in the base image's
native pixel space.

Shapes are inert data: drawing lives in ``app.annotation.compositor``.
Constructing a shape with a missing, NaN or otherwise invalid field raises
``app.errors.ValidationError`` naming the field.
"""
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, Literal, Mapping, Optional, Tuple, Union

from PIL import ImageColor
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from app.errors import ValidationError

TRANSPARENT = "transparent"


def parse_color(value: str) -> Tuple[int, int, int, int]:
    """
    Parse a CSS-style color string into an RGBA tuple

    Accepts anything Pillow's ImageColor understands (``#rgb``, ``#rrggbb``,
    ``#rrggbbaa``, ``rgb(...)``, named colors) plus ``transparent``.

    Raises:
        ValueError: If the string is not a recognised color
    """
    if value.strip().lower() == TRANSPARENT:
        return (0, 0, 0, 0)
    rgb = ImageColor.getrgb(value)
    if len(rgb) == 3:
        return (rgb[0], rgb[1], rgb[2], 255)
    return rgb


def _check_color(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    try:
        parse_color(value)
    except ValueError:
        raise ValueError(f"unrecognised color {value!r}")
    return value


class _Model(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        allow_inf_nan=False,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc) from exc


class Point(_Model):
    x: float
    y: float


class _Styled(_Model):
    @field_validator("color", "fill_color", check_fields=False)
    @classmethod
    def _valid_color(cls, value: Optional[str]) -> Optional[str]:
        return _check_color(value)


class Rectangle(_Styled):
    """Rectangle anchored at the drag start; width/height keep the drag sign"""
    type: Literal["rectangle"] = "rectangle"
    x: float
    y: float
    width: float
    height: float
    color: str
    stroke_width: float = Field(gt=0)
    fill_color: Optional[str] = None


class Circle(_Styled):
    type: Literal["circle"] = "circle"
    x: float
    y: float
    radius: float = Field(ge=0)
    color: str
    stroke_width: float = Field(gt=0)
    fill_color: Optional[str] = None


class Arrow(_Styled):
    type: Literal["arrow"] = "arrow"
    start_x: float
    start_y: float
    end_x: float
    end_y: float
    color: str
    stroke_width: float = Field(gt=0)


class Freehand(_Styled):
    type: Literal["freehand"] = "freehand"
    points: Tuple[Point, ...] = Field(min_length=1)
    color: str
    stroke_width: float = Field(gt=0)


class Text(_Styled):
    type: Literal["text"] = "text"
    x: float
    y: float
    text: str = Field(min_length=1)
    color: str
    font_size: float = Field(gt=0)


Shape = Annotated[
    Union[Rectangle, Circle, Arrow, Freehand, Text],
    Field(discriminator="type"),
]

SHAPE_TYPES: Dict[str, type] = {
    "rectangle": Rectangle,
    "circle": Circle,
    "arrow": Arrow,
    "freehand": Freehand,
    "text": Text,
}

_shape_adapter = TypeAdapter(Shape)


def _union_error(exc: PydanticValidationError) -> ValidationError:
    # Union errors are located under the tag name, e.g. ("circle", "radius")
    # or ("annotations", 2, "circle", "radius")
    first = exc.errors()[0]
    loc = []
    expect_tag = True
    for part in first.get("loc", ()):
        if expect_tag and part in SHAPE_TYPES:
            expect_tag = False
            continue
        loc.append(part)
        expect_tag = isinstance(part, int)
    return ValidationError.located(loc, first, default="type")


def make_shape(kind: str, **fields: Any) -> Shape:
    """
    Construct a shape variant by name

    Args:
        kind: One of ``SHAPE_TYPES``
        **fields: Variant fields (snake_case or camelCase)

    Raises:
        ValidationError: Unknown kind or invalid fields
    """
    try:
        shape_cls = SHAPE_TYPES[kind]
    except KeyError:
        raise ValidationError("type", f"unknown shape type {kind!r}")
    return shape_cls(**fields)


def parse_shape(data: Mapping[str, Any]) -> Shape:
    """Validate a wire-format mapping (with a ``type`` tag) into a shape"""
    try:
        return _shape_adapter.validate_python(data)
    except PydanticValidationError as exc:
        raise _union_error(exc) from exc


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnnotationSet(BaseModel):
    """
    Ordered shapes for one submission

    Order is paint order (earliest first). Sets are values: adding a shape
    returns a new set, so history snapshots never alias live state.
    """
    model_config = ConfigDict(frozen=True)

    annotations: Tuple[Shape, ...] = ()
    timestamp: datetime = Field(default_factory=_utcnow)

    def __len__(self) -> int:
        return len(self.annotations)

    def with_shape(self, shape: Shape) -> "AnnotationSet":
        """Return a new set with ``shape`` painted last"""
        return self.model_copy(update={"annotations": self.annotations + (shape,)})

    def stamped(self, when: Optional[datetime] = None) -> "AnnotationSet":
        """Return a copy carrying a fresh timestamp"""
        return self.model_copy(update={"timestamp": when or _utcnow()})

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_payload(cls, data: Optional[Mapping[str, Any]]) -> "AnnotationSet":
        """Load a stored payload; None or an empty mapping gives an empty set"""
        if not data:
            return cls()
        try:
            return cls.model_validate(data)
        except PydanticValidationError as exc:
            raise _union_error(exc) from exc

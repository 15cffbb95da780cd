from pydantic import BaseModel
from typing import Optional

from app.annotation.shapes import AnnotationSet


class AnnotationSave(BaseModel):
    # Whole set as drawn on the canvas; replaces any previous set
    annotation_data: AnnotationSet
    admin_notes: Optional[str] = None


from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from app import schemas
from app.annotation import AnnotationSet
from app.database import get_db
from app.services import annotations
from app.services.storage import ObjectStorage, get_storage
from app.services.submissions import get_submission

router = APIRouter(
    prefix="/annotations",
    tags=["Annotations"]
)


# GET: Load the annotation set for a submission
@router.get("/{submission_id}", response_model=AnnotationSet, response_model_by_alias=False)
def get_annotations(submission_id: int, db: Session = Depends(get_db)):
    # Empty set if no work saved yet
    return annotations.load_annotations(db, submission_id)


# POST: Save annotations (replaces any previous set)
@router.post("/{submission_id}", response_model=schemas.Submission)
def save_annotations(
    submission_id: int,
    payload: schemas.AnnotationSave,
    db: Session = Depends(get_db),
):
    return annotations.save_annotations(db, submission_id, payload.annotation_data, payload.admin_notes)


# POST: Render a set over the submission photo without saving it
@router.post("/{submission_id}/preview")
def preview_annotations(
    submission_id: int,
    payload: AnnotationSet,
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    submission = get_submission(db, submission_id)
    png = annotations.render_preview(storage, submission.original_image_path, payload)
    return Response(content=png, media_type="image/png")

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile
from sqlalchemy.orm import Session

from app import config, schemas
from app.database import get_db
from app.models.submission import SubmissionStatus
from app.services import reports, submissions
from app.services.storage import ObjectStorage, get_storage

router = APIRouter(
    prefix="/submissions",
    tags=["Submissions"]
)


@router.post("/upload", response_model=schemas.Submission)
async def upload_submission(
    image: UploadFile = File(...),
    patient_name: str = Form(...),
    patient_id_number: str = Form(...),
    email: str = Form(...),
    note: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    # 1. Only photos of an accepted type and size
    extension = config.ALLOWED_IMAGE_TYPES.get(image.content_type)
    if extension is None:
        raise HTTPException(status_code=400, detail="Only image files (jpeg, png, gif, webp) are allowed")

    content = await image.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded image is empty")
    if len(content) > config.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="Image exceeds the maximum upload size")

    # 2. Store the photo and create the record
    return submissions.create_submission(
        db,
        storage,
        image=content,
        extension=extension,
        content_type=image.content_type,
        patient_name=patient_name,
        patient_id_number=patient_id_number,
        email=email,
        note=note,
        filename=image.filename,
    )


@router.get("/", response_model=schemas.SubmissionPage)
def get_submissions(
    status: Optional[SubmissionStatus] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    # Newest first
    items, total = submissions.list_submissions(db, status=status, skip=skip, limit=limit)
    return {"submissions": items, "total": total, "skip": skip, "limit": limit}


# Declared before /{submission_id} so "stats" is not parsed as an id
@router.get("/stats", response_model=schemas.SubmissionStats)
def get_stats(db: Session = Depends(get_db)):
    return submissions.submission_stats(db)


@router.get("/{submission_id}", response_model=schemas.Submission)
def get_submission(submission_id: int, db: Session = Depends(get_db)):
    return submissions.get_submission(db, submission_id)


@router.delete("/{submission_id}")
def delete_submission(
    submission_id: int,
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    submissions.delete_submission(db, storage, submission_id)
    return {"status": "success", "message": "Submission deleted"}


@router.get("/{submission_id}/report")
def download_report(
    submission_id: int,
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    submission, pdf = reports.read_report(db, storage, submission_id)
    filename = submission.report_path.rsplit("/", 1)[-1]
    return Response(
        content=pdf,
        media_type=reports.REPORT_CONTENT_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

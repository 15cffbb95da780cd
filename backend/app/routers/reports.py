from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app import schemas
from app.database import get_db
from app.services import reports
from app.services.storage import ObjectStorage, get_storage

router = APIRouter(
    prefix="/reports",
    tags=["Reports"]
)


@router.post("/{submission_id}", response_model=schemas.Submission)
def generate_report(
    submission_id: int,
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    # 400 unless the submission has been annotated
    return reports.generate_report(db, storage, submission_id)

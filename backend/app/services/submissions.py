"""
Submission records: intake, lookup, listing and removal.
"""
import logging
import uuid
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app import models
from app.errors import AnnotationError, SubmissionNotFound
from app.models.submission import SubmissionStatus
from app.services.storage import ObjectStorage

logger = logging.getLogger(__name__)


def get_submission(db: Session, submission_id: int) -> models.Submission:
    submission = db.query(models.Submission).filter(models.Submission.id == submission_id).first()
    if not submission:
        raise SubmissionNotFound(submission_id)
    return submission


def create_submission(
    db: Session,
    storage: ObjectStorage,
    image: bytes,
    extension: str,
    content_type: str,
    patient_name: str,
    patient_id_number: str,
    email: str,
    note: Optional[str] = None,
    filename: Optional[str] = None,
) -> models.Submission:
    """
    Store the uploaded photo and create a submission in the ``uploaded`` state

    The stored object is removed again if the record cannot be written.
    """
    key = f"images/teeth-{uuid.uuid4().hex}.{extension}"
    locator = storage.put(image, key, content_type)

    submission = models.Submission(
        patient_name=patient_name,
        patient_id_number=patient_id_number,
        email=email,
        note=note,
        original_filename=filename,
        original_image_path=locator,
        original_image_url=storage.public_url(locator),
        status=SubmissionStatus.UPLOADED,
    )
    try:
        db.add(submission)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        discard_object(storage, locator)
        raise
    db.refresh(submission)

    logger.info(f"Created submission {submission.id} for patient {patient_id_number}")
    return submission


def list_submissions(
    db: Session,
    status: Optional[SubmissionStatus] = None,
    skip: int = 0,
    limit: int = 100,
) -> Tuple[List[models.Submission], int]:
    query = db.query(models.Submission)
    if status is not None:
        query = query.filter(models.Submission.status == status)
    total = query.count()
    # Newest first; id breaks ties between rows created in the same instant
    submissions = (
        query.order_by(models.Submission.created_at.desc(), models.Submission.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return submissions, total


def submission_stats(db: Session) -> Dict[str, int]:
    counts = {status.value: 0 for status in SubmissionStatus}
    rows = db.query(models.Submission.status, func.count(models.Submission.id)).group_by(models.Submission.status)
    for status, count in rows:
        counts[SubmissionStatus(status).value] = count
    counts["total"] = sum(counts.values())
    return counts


def delete_submission(db: Session, storage: ObjectStorage, submission_id: int) -> None:
    submission = get_submission(db, submission_id)

    # Storage failures are logged; the record is still removed
    for locator in (submission.original_image_path, submission.report_path):
        if locator:
            discard_object(storage, locator)

    db.delete(submission)
    db.commit()
    logger.info(f"Deleted submission {submission_id}")


def discard_object(storage: ObjectStorage, locator: str) -> None:
    """Best-effort delete of a stored object"""
    try:
        storage.delete(locator)
    except AnnotationError as e:
        logger.warning(f"Failed to delete {locator} from storage: {e}")

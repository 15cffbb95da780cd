"""
Saving, loading and previewing a submission's annotation set.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app import models
from app.annotation import AnnotationSet, render_encoded
from app.models.submission import SubmissionStatus
from app.services.images import fetch_bytes
from app.services.storage import ObjectStorage
from app.services.submissions import get_submission

logger = logging.getLogger(__name__)


def load_annotations(db: Session, submission_id: int) -> AnnotationSet:
    """The saved set, or an empty one if nothing was saved yet"""
    submission = get_submission(db, submission_id)
    if submission.annotation is None:
        return AnnotationSet()
    return AnnotationSet.from_payload(submission.annotation.data)


def save_annotations(
    db: Session,
    submission_id: int,
    annotation_set: AnnotationSet,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.Submission:
    """
    Replace the submission's annotation set and mark it reviewed

    The set is stored wholesale (no merging with a previous save). The
    submission moves to ``annotated``, including when re-annotating a
    reported submission so a fresh report can be generated.
    """
    submission = get_submission(db, submission_id)
    now = now or datetime.now(timezone.utc)
    payload = annotation_set.stamped(now).to_payload()

    try:
        if submission.annotation is None:
            submission.annotation = models.Annotation(data=payload)
        else:
            submission.annotation.data = payload
        submission.admin_notes = notes
        submission.status = SubmissionStatus.ANNOTATED
        submission.reviewed_at = now
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to save annotations for submission {submission_id}: {e}")
        raise
    db.refresh(submission)

    logger.info(f"Saved {len(annotation_set)} annotations for submission {submission_id}")
    return submission


def render_preview(storage: ObjectStorage, base_ref: str, annotation_set: AnnotationSet) -> bytes:
    """PNG of the set drawn over the base image; nothing is persisted"""
    data = fetch_bytes(base_ref, storage)
    return render_encoded(data, annotation_set.annotations, format="PNG")

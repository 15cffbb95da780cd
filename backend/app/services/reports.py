"""
Screening report generation.

Flow: fetch the source photo, composite the saved annotations over it,
lay out the PDF, store it, then advance the submission to ``reported``.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app import config, models
from app.annotation import AnnotationSet, decode_raster, encode_raster, render
from app.errors import DecodeError, ObjectNotFound, PreconditionFailed
from app.models.submission import SubmissionStatus
from app.report import ReportData, layout_report
from app.services.images import fetch_bytes
from app.services.storage import ObjectStorage
from app.services.submissions import discard_object, get_submission

logger = logging.getLogger(__name__)

REPORT_CONTENT_TYPE = "application/pdf"

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


def report_key(patient_id_number: str, when: datetime) -> str:
    patient = _UNSAFE_KEY_CHARS.sub("_", patient_id_number) or "unknown"
    return f"reports/oral-health-report-{patient}-{int(when.timestamp() * 1000)}.pdf"


def report_data(submission: models.Submission) -> ReportData:
    submitted = submission.created_at or datetime.now(timezone.utc)
    return ReportData(
        submission_id=str(submission.id),
        patient_name=submission.patient_name,
        email=submission.email,
        submitted_on=submitted.date(),
        notes=submission.admin_notes,
    )


def report_images(
    submission: models.Submission, storage: ObjectStorage
) -> Tuple[Optional[bytes], Optional[bytes]]:
    """
    JPEG bytes for the original and annotated slots

    A missing or undecodable photo yields ``(None, None)`` so the report is
    still produced. If drawing fails the plain photo fills both slots.
    Timeouts and upstream failures propagate.
    """
    try:
        data = fetch_bytes(submission.original_image_path, storage)
    except ObjectNotFound as e:
        logger.warning(f"Submission {submission.id}: source image missing, report will omit it ({e})")
        return None, None

    try:
        base = decode_raster(data)
    except DecodeError as e:
        logger.warning(f"Submission {submission.id}: source image unreadable, report will omit it ({e})")
        return None, None

    payload = submission.annotation.data if submission.annotation else None
    shapes = AnnotationSet.from_payload(payload).annotations
    original = encode_raster(base, format="JPEG", quality=config.JPEG_QUALITY)
    try:
        composited = render(base, shapes)
    except (OSError, ValueError) as e:
        logger.warning(f"Submission {submission.id}: annotations could not be drawn, using the plain photo ({e})")
        return original, original
    annotated = encode_raster(composited, format="JPEG", quality=config.JPEG_QUALITY)
    return original, annotated


def build_report(submission: models.Submission, storage: ObjectStorage, generated_at: datetime = None) -> bytes:
    original, annotated = report_images(submission, storage)
    return layout_report(report_data(submission), original, annotated, generated_at=generated_at)


def generate_report(
    db: Session,
    storage: ObjectStorage,
    submission_id: int,
    now: Optional[datetime] = None,
) -> models.Submission:
    """
    Build and store the PDF report for an annotated submission

    Raises:
        SubmissionNotFound: Unknown id
        PreconditionFailed: The submission is not ``annotated``, or it changed
            state while the report was being built
        UpstreamTimeout, UpstreamUnavailable: Fetching the photo or storing
            the PDF failed; the status is left unchanged
    """
    submission = get_submission(db, submission_id)
    if submission.status != SubmissionStatus.ANNOTATED:
        raise PreconditionFailed("Submission must be annotated before generating report")

    now = now or datetime.now(timezone.utc)
    previous_report = submission.report_path
    pdf = build_report(submission, storage, generated_at=now)
    locator = storage.put(pdf, report_key(submission.patient_id_number, now), REPORT_CONTENT_TYPE)

    # Only an annotated row may advance; a concurrent generation loses here
    updated = (
        db.query(models.Submission)
        .filter(
            models.Submission.id == submission_id,
            models.Submission.status == SubmissionStatus.ANNOTATED,
        )
        .update(
            {
                models.Submission.status: SubmissionStatus.REPORTED,
                models.Submission.report_path: locator,
                models.Submission.report_url: storage.public_url(locator),
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        db.rollback()
        discard_object(storage, locator)
        raise PreconditionFailed(f"Submission {submission_id} changed while its report was generated")

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        discard_object(storage, locator)
        raise
    db.refresh(submission)

    if previous_report and previous_report != locator:
        discard_object(storage, previous_report)

    logger.info(f"Generated report {locator} for submission {submission_id}")
    return submission


def read_report(db: Session, storage: ObjectStorage, submission_id: int) -> Tuple[models.Submission, bytes]:
    submission = get_submission(db, submission_id)
    if submission.status != SubmissionStatus.REPORTED or not submission.report_path:
        raise PreconditionFailed("Report not generated yet")
    return submission, fetch_bytes(submission.report_path, storage)

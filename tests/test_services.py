"""
Tests for the submission, annotation and report services
"""
from datetime import datetime, timezone

import pytest

from app.annotation import AnnotationSet, make_shape
from app.errors import (
    ObjectNotFound,
    PreconditionFailed,
    SubmissionNotFound,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from app.models.submission import SubmissionStatus
from app.services import annotations, reports, submissions
from app.services.storage import LocalStorage


def _create(db, storage, png_bytes, patient, **overrides):
    fields = dict(patient)
    fields.update(overrides)
    return submissions.create_submission(
        db, storage,
        image=png_bytes, extension="png", content_type="image/png",
        filename="teeth.png", **fields,
    )


@pytest.fixture
def submission(db_session, storage, png_bytes, patient):
    return _create(db_session, storage, png_bytes, patient)


@pytest.fixture
def annotated(db_session, submission, annotation_set):
    return annotations.save_annotations(db_session, submission.id, annotation_set, "Early caries on 26")


class _FailingReportStorage(LocalStorage):
    """Stores photos but refuses report uploads"""

    def put(self, data, key, content_type):
        if key.startswith("reports/"):
            raise UpstreamUnavailable("bucket unavailable")
        return super().put(data, key, content_type)


class _SlowStorage(LocalStorage):
    def read(self, locator):
        raise UpstreamTimeout(f"Timed out reading {locator}")


class TestSubmissions:

    def test_create(self, submission, storage, png_bytes):
        assert submission.status == SubmissionStatus.UPLOADED
        assert submission.original_image_path.startswith("images/teeth-")
        assert submission.original_image_path.endswith(".png")
        assert submission.original_image_url == f"/uploads/{submission.original_image_path}"
        assert storage.read(submission.original_image_path) == png_bytes

    def test_get_unknown(self, db_session):
        with pytest.raises(SubmissionNotFound):
            submissions.get_submission(db_session, 999)

    def test_list_newest_first(self, db_session, storage, png_bytes, patient):
        first = _create(db_session, storage, png_bytes, patient)
        second = _create(db_session, storage, png_bytes, patient, patient_name="John Roe")
        items, total = submissions.list_submissions(db_session)
        assert total == 2
        assert [s.id for s in items] == [second.id, first.id]

    def test_list_filter_and_paging(self, db_session, storage, png_bytes, patient, annotation_set):
        for _ in range(3):
            _create(db_session, storage, png_bytes, patient)
        marked = _create(db_session, storage, png_bytes, patient)
        annotations.save_annotations(db_session, marked.id, annotation_set)

        items, total = submissions.list_submissions(db_session, status=SubmissionStatus.UPLOADED, limit=2)
        assert total == 3
        assert len(items) == 2
        assert all(s.status == SubmissionStatus.UPLOADED for s in items)

    def test_stats(self, db_session, storage, png_bytes, patient, annotation_set):
        _create(db_session, storage, png_bytes, patient)
        marked = _create(db_session, storage, png_bytes, patient)
        annotations.save_annotations(db_session, marked.id, annotation_set)

        assert submissions.submission_stats(db_session) == {
            "uploaded": 1, "annotated": 1, "reported": 0, "total": 2,
        }

    def test_delete_removes_objects(self, db_session, storage, submission):
        locator = submission.original_image_path
        submissions.delete_submission(db_session, storage, submission.id)
        with pytest.raises(SubmissionNotFound):
            submissions.get_submission(db_session, submission.id)
        with pytest.raises(ObjectNotFound):
            storage.read(locator)

    def test_delete_survives_storage_failure(self, db_session, submission):
        class BrokenStorage(LocalStorage):
            def delete(self, locator):
                raise UpstreamUnavailable("bucket offline")

        submissions.delete_submission(db_session, BrokenStorage(), submission.id)
        with pytest.raises(SubmissionNotFound):
            submissions.get_submission(db_session, submission.id)


class TestAnnotations:

    def test_load_empty(self, db_session, submission):
        assert len(annotations.load_annotations(db_session, submission.id)) == 0

    def test_save_marks_annotated(self, annotated, annotation_set):
        assert annotated.status == SubmissionStatus.ANNOTATED
        assert annotated.admin_notes == "Early caries on 26"
        assert annotated.reviewed_at is not None
        assert annotated.annotation.data["annotations"][0]["type"] == "rectangle"

    def test_load_returns_saved_shapes(self, db_session, annotated, annotation_set):
        loaded = annotations.load_annotations(db_session, annotated.id)
        assert loaded.annotations == annotation_set.annotations

    def test_save_replaces_wholesale(self, db_session, annotated):
        text = make_shape("text", x=5, y=20, text="plaque", color="#000000", font_size=14)
        annotations.save_annotations(db_session, annotated.id, AnnotationSet(annotations=(text,)))
        loaded = annotations.load_annotations(db_session, annotated.id)
        assert [s.type for s in loaded.annotations] == ["text"]

    def test_save_unknown_submission(self, db_session, annotation_set):
        with pytest.raises(SubmissionNotFound):
            annotations.save_annotations(db_session, 404, annotation_set)

    def test_render_preview(self, storage, submission, annotation_set, png_bytes):
        png = annotations.render_preview(storage, submission.original_image_path, annotation_set)
        assert png.startswith(b"\x89PNG")
        assert png != png_bytes

    def test_render_preview_missing_base(self, storage, annotation_set):
        with pytest.raises(ObjectNotFound):
            annotations.render_preview(storage, "images/missing.png", annotation_set)


class TestReports:

    def test_requires_annotation(self, db_session, storage, submission):
        with pytest.raises(PreconditionFailed):
            reports.generate_report(db_session, storage, submission.id)
        db_session.refresh(submission)
        assert submission.status == SubmissionStatus.UPLOADED
        assert submission.report_path is None

    def test_generate(self, db_session, storage, annotated):
        when = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)
        result = reports.generate_report(db_session, storage, annotated.id, now=when)

        assert result.status == SubmissionStatus.REPORTED
        assert result.report_path == f"reports/oral-health-report-P123-{int(when.timestamp() * 1000)}.pdf"
        assert result.report_url == f"/uploads/{result.report_path}"
        assert storage.read(result.report_path).startswith(b"%PDF")

    def test_cannot_generate_twice(self, db_session, storage, annotated):
        reports.generate_report(db_session, storage, annotated.id)
        with pytest.raises(PreconditionFailed):
            reports.generate_report(db_session, storage, annotated.id)

    def test_missing_photo_still_reports(self, db_session, storage, annotated):
        storage.delete(annotated.original_image_path)
        result = reports.generate_report(db_session, storage, annotated.id)
        assert result.status == SubmissionStatus.REPORTED

    def test_undecodable_photo_still_reports(self, db_session, storage, annotated):
        storage.put(b"corrupt", annotated.original_image_path, "image/png")
        result = reports.generate_report(db_session, storage, annotated.id)
        assert result.status == SubmissionStatus.REPORTED

    def test_store_failure_keeps_status(self, db_session, annotated, tmp_path):
        failing = _FailingReportStorage(tmp_path / "objects")
        with pytest.raises(UpstreamUnavailable):
            reports.generate_report(db_session, failing, annotated.id)
        db_session.refresh(annotated)
        assert annotated.status == SubmissionStatus.ANNOTATED
        assert annotated.report_path is None

    def test_fetch_timeout_keeps_status(self, db_session, annotated, tmp_path):
        with pytest.raises(UpstreamTimeout):
            reports.generate_report(db_session, _SlowStorage(tmp_path / "objects"), annotated.id)
        db_session.refresh(annotated)
        assert annotated.status == SubmissionStatus.ANNOTATED

    def test_regenerate_after_reannotation(self, db_session, storage, annotated, annotation_set):
        first = reports.generate_report(
            db_session, storage, annotated.id, now=datetime(2024, 3, 10, tzinfo=timezone.utc)
        ).report_path
        annotations.save_annotations(db_session, annotated.id, annotation_set, "Follow-up")
        second = reports.generate_report(
            db_session, storage, annotated.id, now=datetime(2024, 4, 10, tzinfo=timezone.utc)
        ).report_path

        assert second != first
        assert storage.read(second).startswith(b"%PDF")
        with pytest.raises(ObjectNotFound):
            storage.read(first)

    def test_read_report(self, db_session, storage, annotated):
        with pytest.raises(PreconditionFailed):
            reports.read_report(db_session, storage, annotated.id)
        reports.generate_report(db_session, storage, annotated.id)
        _, pdf = reports.read_report(db_session, storage, annotated.id)
        assert pdf.startswith(b"%PDF")

    def test_report_key_sanitised(self):
        when = datetime(2024, 1, 1, tzinfo=timezone.utc)
        key = reports.report_key("AB/12 34", when)
        assert key == f"reports/oral-health-report-AB_12_34-{int(when.timestamp() * 1000)}.pdf"

    def test_drawing_failure_uses_plain_photo(self, db_session, storage, annotated, monkeypatch):
        slots = {}

        def failing_render(base, shapes):
            raise OSError("cannot open resource")

        def capture_layout(data, original, annotated_image, generated_at=None):
            slots["original"], slots["annotated"] = original, annotated_image
            return b"%PDF-1.4 stub"

        monkeypatch.setattr(reports, "render", failing_render)
        monkeypatch.setattr(reports, "layout_report", capture_layout)
        result = reports.generate_report(db_session, storage, annotated.id)

        assert result.status == SubmissionStatus.REPORTED
        assert slots["original"][:2] == b"\xff\xd8"
        assert slots["annotated"] == slots["original"]

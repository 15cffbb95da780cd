import enum

from sqlalchemy import Column, DateTime, Enum, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base


class SubmissionStatus(str, enum.Enum):
    UPLOADED = "uploaded"
    ANNOTATED = "annotated"
    REPORTED = "reported"


class Submission(Base):
    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, index=True)

    patient_name = Column(String, nullable=False)
    patient_id_number = Column(String, nullable=False)
    email = Column(String, nullable=False)
    note = Column(Text)  # Written by the patient at upload

    original_filename = Column(String)
    original_image_path = Column(String, nullable=False)  # Storage locator (e.g. "images/teeth-abc.jpg")
    original_image_url = Column(String)                   # The link to show it in the frontend

    admin_notes = Column(Text)
    report_path = Column(String)
    report_url = Column(String)

    status = Column(
        Enum(SubmissionStatus, name="submission_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=SubmissionStatus.UPLOADED,
        index=True,
    )
    reviewed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    annotation = relationship(
        "Annotation",
        back_populates="submission",
        uselist=False,
        cascade="all, delete-orphan",
    )

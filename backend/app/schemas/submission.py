from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional

from app.models.submission import SubmissionStatus


# Base class for shared properties
class SubmissionBase(BaseModel):
    patient_name: str
    patient_id_number: str
    email: str
    note: Optional[str] = None


# Properties to return to the client (The "Response" Model)
class Submission(SubmissionBase):
    id: int
    status: SubmissionStatus
    original_image_url: Optional[str] = None
    report_url: Optional[str] = None
    admin_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None

    # This config tells Pydantic to treat SQLAlchemy models as dictionaries
    class Config:
        from_attributes = True


class SubmissionPage(BaseModel):
    submissions: List[Submission]
    total: int
    skip: int
    limit: int


class SubmissionStats(BaseModel):
    uploaded: int
    annotated: int
    reported: int
    total: int

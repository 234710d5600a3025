from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

from pelangi.models.submission import SubmissionOrigin, SubmissionStatus


class SubmissionCreate(BaseModel):
    content: Optional[str] = None
    attachments: Optional[list[Any]] = None


class SubmissionRead(BaseModel):
    id: int
    assignment_id: int
    student_id: int
    status: SubmissionStatus
    origin: Optional[SubmissionOrigin] = None
    content: Optional[str] = None
    attachments: Optional[list[Any]] = None
    submitted_at: Optional[datetime] = None
    score: Optional[float] = None
    feedback: Optional[str] = None
    graded_at: Optional[datetime] = None
    graded_by: Optional[int] = None
    xp_awarded: int = 0

    class Config:
        from_attributes = True


class SubmissionGradeUpdate(BaseModel):
    score: float
    feedback: Optional[str] = None


class BulkGradeRequest(BaseModel):
    student_ids: list[int]
    grade: float
    feedback: Optional[str] = None

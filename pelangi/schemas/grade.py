import datetime as dt
from typing import Optional

from pydantic import BaseModel

from pelangi.models.grade import GradeType


class GradeCreate(BaseModel):
    student_id: int
    class_id: int
    subject_id: int
    grade_type: GradeType
    score: float
    max_score: float = 100
    description: Optional[str] = None
    date: dt.date


class GradeRead(BaseModel):
    id: int
    student_id: int
    subject_id: int
    class_id: int
    grade_type: GradeType
    score: float
    max_score: float
    description: Optional[str] = None
    date: dt.date
    created_by: int

    class Config:
        from_attributes = True

import datetime as dt
from typing import Optional

from pydantic import BaseModel

from pelangi.models.attendance import AttendanceStatus


class AttendanceEntry(BaseModel):
    student_id: int
    status: AttendanceStatus
    notes: Optional[str] = None


class AttendanceRecord(BaseModel):
    class_id: int
    subject_id: int
    date: dt.date
    entries: list[AttendanceEntry]


class AttendanceRead(BaseModel):
    id: int
    student_id: int
    class_id: int
    subject_id: Optional[int] = None
    date: dt.date
    status: AttendanceStatus
    notes: Optional[str] = None
    recorded_by: int

    class Config:
        from_attributes = True

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from pelangi.models.assignment import AssignmentStatus, AssignmentType


class AssignmentCreate(BaseModel):
    class_id: int
    title: str
    description: Optional[str] = None
    instructions: Optional[str] = None
    points: Optional[int] = None
    deadline: datetime
    type: AssignmentType = AssignmentType.TUGAS_HARIAN
    status: AssignmentStatus = AssignmentStatus.DRAFT


class AssignmentUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    instructions: Optional[str] = None
    points: Optional[int] = None
    deadline: Optional[datetime] = None
    type: Optional[AssignmentType] = None
    status: Optional[AssignmentStatus] = None


class AssignmentRead(BaseModel):
    id: int
    teacher_id: int
    class_id: int
    title: str
    description: Optional[str]
    instructions: Optional[str]
    points: int
    deadline: datetime
    type: AssignmentType
    status: AssignmentStatus
    created_at: datetime

    class Config:
        from_attributes = True


class AssignmentListRow(BaseModel):
    assignment: AssignmentRead
    class_name: Optional[str] = None
    display_status: str  # "draft" | "active" | "overdue" | "completed"
    # submission rows, not the live class size: students added later have no row
    total_students: int
    submitted: int
    late: int
    graded: int


class AssignmentStats(BaseModel):
    total: int
    draft: int
    active: int
    overdue: int
    completed: int
    this_week: int
    average_points: float

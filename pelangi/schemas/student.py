from datetime import datetime

from pydantic import BaseModel, Field

from pelangi.models.student import StudentStatus


class StudentCreate(BaseModel):
    student_id: str = Field(description="NISN")
    full_name: str
    class_id: int | None = None
    user_id: int | None = None


class StudentRead(BaseModel):
    id: int
    student_id: str
    full_name: str
    class_id: int | None = None
    user_id: int | None = None
    status: StudentStatus
    created_at: datetime

    class Config:
        from_attributes = True


class StudentAssign(BaseModel):
    student_ids: list[int]

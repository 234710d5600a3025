from datetime import datetime

from pydantic import BaseModel


class ClassCreate(BaseModel):
    name: str
    grade_level: int
    is_physical_class: bool = True


class ClassRead(BaseModel):
    id: int
    name: str
    grade_level: int
    is_physical_class: bool
    student_count: int
    created_at: datetime

    class Config:
        from_attributes = True


class SubjectCreate(BaseModel):
    name: str
    code: str


class SubjectRead(BaseModel):
    id: int
    name: str
    code: str

    class Config:
        from_attributes = True


class ClassSubjectCreate(BaseModel):
    subject_id: int


class ClassSubjectRead(BaseModel):
    id: int
    class_id: int
    subject_id: int
    is_active: bool
    enrolled_students: int = 0


class TeacherAssign(BaseModel):
    teacher_id: int


class ClassTeacherSubjectRead(BaseModel):
    id: int
    class_id: int
    teacher_id: int
    subject_id: int
    is_active: bool

    class Config:
        from_attributes = True

from pydantic import BaseModel, EmailStr

from pelangi.models.user import Role, UserStatus


class UserRead(BaseModel):
    id: int
    email: EmailStr
    full_name: str
    role: Role
    nip: str | None = None
    status: UserStatus

    class Config:
        from_attributes = True


class PermissionsRead(BaseModel):
    can_view_all_subjects: bool
    can_create_assignments: bool
    can_grade_assignments: bool
    can_manage_attendance: bool
    can_assign_subjects: bool
    can_transfer_students: bool
    allowed_subjects: list[int]
    allowed_classes: list[int]

    class Config:
        from_attributes = True


class AccessibleSubject(BaseModel):
    id: int
    name: str
    code: str


class AccessibleClass(BaseModel):
    id: int
    name: str
    grade_level: int
    student_count: int
    subjects: list[AccessibleSubject]

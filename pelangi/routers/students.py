from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from pelangi.core.current_user import get_current_user
from pelangi.core.deps import get_db
from pelangi.core.permissions import require_admin, require_student
from pelangi.models.student import Student
from pelangi.models.user import User
from pelangi.schemas.attendance import AttendanceRead
from pelangi.schemas.common import ApiResponse, ok
from pelangi.schemas.gamification import StudentBadgeRead, StudentXpRead
from pelangi.schemas.grade import GradeRead
from pelangi.schemas.student import StudentCreate, StudentRead
from pelangi.services import students as student_service
from pelangi.services.access import load_student_record
from pelangi.services.attendance import student_attendance
from pelangi.services.badges import student_badges
from pelangi.services.grades import student_grades
from pelangi.services.xp import get_student_xp

router = APIRouter()


@router.post("", response_model=ApiResponse[StudentRead], status_code=status.HTTP_201_CREATED)
def create_student(payload: StudentCreate, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    student = student_service.create_student(
        db,
        nisn=payload.student_id,
        full_name=payload.full_name,
        class_id=payload.class_id,
        user_id=payload.user_id,
    )
    return ok(student, "Student created")


@router.get("/me", response_model=ApiResponse[StudentRead])
def my_record(student: Student = Depends(require_student)):
    return ok(student)


@router.get("/{student_id}/grades", response_model=ApiResponse[list[GradeRead]])
def grades_for_student(
    student_id: int,
    subject_id: int | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ok(student_grades(db, user, student_id, subject_id))


@router.get("/{student_id}/attendance", response_model=ApiResponse[list[AttendanceRead]])
def attendance_for_student(
    student_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ok(student_attendance(db, user, student_id))


@router.get("/{student_id}/xp", response_model=ApiResponse[StudentXpRead])
def xp_for_student(
    student_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    load_student_record(db, user, student_id)
    return ok(get_student_xp(db, student_id))


@router.get("/{student_id}/badges", response_model=ApiResponse[list[StudentBadgeRead]])
def badges_for_student(
    student_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    load_student_record(db, user, student_id)
    return ok(student_badges(db, student_id))

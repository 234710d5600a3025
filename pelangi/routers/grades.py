from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from pelangi.core.deps import get_db
from pelangi.core.permissions import require_staff
from pelangi.models.grade import GradeType
from pelangi.models.user import User
from pelangi.schemas.attendance import AttendanceRead, AttendanceRecord
from pelangi.schemas.common import ApiResponse, ok
from pelangi.schemas.grade import GradeCreate, GradeRead
from pelangi.services.attendance import record_attendance
from pelangi.services.grades import create_grade, list_grades

router = APIRouter()


@router.post("/grades", response_model=ApiResponse[GradeRead], status_code=status.HTTP_201_CREATED)
def add_grade(payload: GradeCreate, db: Session = Depends(get_db), teacher: User = Depends(require_staff)):
    row = create_grade(
        db,
        actor=teacher,
        student_id=payload.student_id,
        class_id=payload.class_id,
        subject_id=payload.subject_id,
        grade_type=payload.grade_type,
        score=payload.score,
        max_score=payload.max_score,
        description=payload.description,
        date=payload.date,
    )
    return ok(row, "Grade saved")


@router.get("/grades", response_model=ApiResponse[list[GradeRead]])
def grades_for_class_subject(
    class_id: int,
    subject_id: int,
    grade_type: GradeType | None = None,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_staff),
):
    return ok(list_grades(db, teacher, class_id, subject_id, grade_type))


@router.post("/attendance", response_model=ApiResponse[list[AttendanceRead]])
def save_attendance(
    payload: AttendanceRecord,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_staff),
):
    rows = record_attendance(
        db,
        actor=teacher,
        class_id=payload.class_id,
        subject_id=payload.subject_id,
        date=payload.date,
        entries=[e.model_dump() for e in payload.entries],
    )
    return ok(rows, f"Attendance saved for {len(rows)} students")

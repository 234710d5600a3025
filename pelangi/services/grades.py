import logging
import datetime as dt

from sqlalchemy import select
from sqlalchemy.orm import Session

from pelangi.core.errors import ConflictError, ValidationError
from pelangi.models.grade import Grade, GradeType
from pelangi.models.student import Student
from pelangi.models.user import User
from pelangi.services.access import load_student_record, require_subject_access
from pelangi.services.activity import log_activity
from pelangi.services.xp import grant_xp, xp_for_score

logger = logging.getLogger(__name__)


def create_grade(
    db: Session,
    *,
    actor: User,
    student_id: int,
    class_id: int,
    subject_id: int,
    grade_type: GradeType,
    score: float,
    max_score: float = 100,
    description: str | None = None,
    date: dt.date,
) -> Grade:
    require_subject_access(db, actor, class_id, subject_id)

    student = db.get(Student, student_id)
    if student is None or student.class_id != class_id:
        raise ValidationError("Student is not in this class", field="student_id")

    if max_score is None or max_score <= 0:
        raise ValidationError("max_score must be positive", field="max_score")
    if score is None or score < 0 or score > max_score:
        raise ValidationError(f"score must be between 0 and {max_score:g}", field="score")

    grade_type = GradeType(grade_type)
    dup = db.scalar(
        select(Grade.id).where(
            Grade.student_id == student_id,
            Grade.subject_id == subject_id,
            Grade.grade_type == grade_type,
            Grade.date == date,
        )
    )
    if dup is not None:
        raise ConflictError("A grade of this type already exists for this student on this date")

    row = Grade(
        student_id=student_id,
        subject_id=subject_id,
        class_id=class_id,
        grade_type=grade_type,
        score=score,
        max_score=max_score,
        description=description,
        date=date,
        created_by=actor.id,
    )
    db.add(row)

    earned = xp_for_score(score, max_score)
    try:
        if earned:
            grant_xp(db, student_id, earned, reason=f"{grade_type.value} grade")
        log_activity(
            db,
            user_id=actor.id,
            type="GRADE_CREATED",
            description=f"Graded {student.full_name}: {grade_type.value} {score:g}/{max_score:g}",
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(row)
    return row


def list_grades(
    db: Session,
    user: User,
    class_id: int,
    subject_id: int,
    grade_type: GradeType | None = None,
) -> list[Grade]:
    require_subject_access(db, user, class_id, subject_id)

    stmt = (
        select(Grade)
        .where(Grade.class_id == class_id, Grade.subject_id == subject_id)
        .order_by(Grade.date.desc(), Grade.id.desc())
    )
    if grade_type is not None:
        stmt = stmt.where(Grade.grade_type == grade_type)
    return list(db.scalars(stmt).all())


def student_grades(db: Session, user: User, student_id: int, subject_id: int | None = None) -> list[Grade]:
    load_student_record(db, user, student_id, subject_id)

    stmt = select(Grade).where(Grade.student_id == student_id).order_by(Grade.date.desc())
    if subject_id is not None:
        stmt = stmt.where(Grade.subject_id == subject_id)
    return list(db.scalars(stmt).all())

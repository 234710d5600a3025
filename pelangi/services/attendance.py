import datetime as dt
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from pelangi.core.errors import ValidationError
from pelangi.models.attendance import Attendance, AttendanceStatus
from pelangi.models.student import Student
from pelangi.models.user import User
from pelangi.services.access import load_student_record, require_subject_access

logger = logging.getLogger(__name__)


def record_attendance(
    db: Session,
    *,
    actor: User,
    class_id: int,
    subject_id: int,
    date: dt.date,
    entries: list[dict],
) -> list[Attendance]:
    """Upsert one row per (student, class, subject, date), all in one transaction."""
    require_subject_access(db, actor, class_id, subject_id)
    if not entries:
        raise ValidationError("At least one attendance entry is required", field="entries")

    in_class = set(db.scalars(select(Student.id).where(Student.class_id == class_id)).all())

    rows = []
    for entry in entries:
        student_id = entry["student_id"]
        if student_id not in in_class:
            raise ValidationError(f"Student {student_id} is not in this class", field="student_id")

        row = db.scalar(
            select(Attendance).where(
                Attendance.student_id == student_id,
                Attendance.class_id == class_id,
                Attendance.subject_id == subject_id,
                Attendance.date == date,
            )
        )
        if row is None:
            row = Attendance(
                student_id=student_id, class_id=class_id, subject_id=subject_id, date=date
            )
            db.add(row)
        row.status = AttendanceStatus(entry["status"])
        row.notes = entry.get("notes")
        row.recorded_by = actor.id
        rows.append(row)

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    for row in rows:
        db.refresh(row)
    logger.info(
        "attendance for class %s subject %s on %s: %s entries", class_id, subject_id, date, len(rows)
    )
    return rows


def student_attendance(db: Session, user: User, student_id: int) -> list[Attendance]:
    load_student_record(db, user, student_id)

    return list(
        db.scalars(
            select(Attendance)
            .where(Attendance.student_id == student_id)
            .order_by(Attendance.date.desc())
        ).all()
    )

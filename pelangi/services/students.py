import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from pelangi.core.errors import ConflictError, NotFoundError, ValidationError
from pelangi.models.classroom import SchoolClass
from pelangi.models.student import Student
from pelangi.models.user import Role, User
from pelangi.services.bulk import BulkResult, run_each
from pelangi.services.xp import ensure_student_xp

logger = logging.getLogger(__name__)


def get_student(db: Session, student_id: int) -> Student:
    student = db.get(Student, student_id)
    if student is None:
        raise NotFoundError("Student not found")
    return student


def student_for_user(db: Session, user: User) -> Student:
    student = db.scalar(select(Student).where(Student.user_id == user.id))
    if student is None:
        raise NotFoundError("No student record is linked to this account")
    return student


def create_student(
    db: Session,
    *,
    nisn: str,
    full_name: str,
    class_id: int | None = None,
    user_id: int | None = None,
) -> Student:
    nisn = nisn.strip()
    if not nisn:
        raise ValidationError("NISN is required", field="nisn")
    if db.scalar(select(Student.id).where(Student.student_id == nisn)) is not None:
        raise ConflictError(f"Student with NISN {nisn} already exists")

    if class_id is not None and db.get(SchoolClass, class_id) is None:
        raise NotFoundError("Class not found")

    if user_id is not None:
        user = db.get(User, user_id)
        if user is None or user.role != Role.SISWA:
            raise ValidationError("user_id must reference a SISWA account", field="user_id")
        if db.scalar(select(Student.id).where(Student.user_id == user_id)) is not None:
            raise ConflictError("That account is already linked to a student")

    student = Student(
        student_id=nisn, full_name=full_name.strip(), class_id=class_id, user_id=user_id
    )
    db.add(student)
    db.flush()
    ensure_student_xp(db, student.id)

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(student)
    logger.info("student %s (%s) created", student.id, nisn)
    return student


def assign_students_to_class(db: Session, class_id: int, student_ids: list[int]) -> BulkResult:
    if db.get(SchoolClass, class_id) is None:
        raise NotFoundError("Class not found")

    def move(student_id: int) -> None:
        student = db.get(Student, student_id)
        if student is None:
            raise NotFoundError(f"Student {student_id} not found")
        student.class_id = class_id

    return run_each(db, student_ids, move, label=f"assign students to class {class_id}")

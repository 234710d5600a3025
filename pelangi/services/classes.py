import logging

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from pelangi.core.errors import ConflictError, NotFoundError, ValidationError
from pelangi.models.classroom import (
    ClassSubject,
    ClassTeacherSubject,
    SchoolClass,
    StudentSubjectEnrollment,
    Subject,
)
from pelangi.models.student import Student, StudentStatus
from pelangi.models.user import Role, User, UserStatus
from pelangi.services.access import require_subject_access

logger = logging.getLogger(__name__)


def _get_class(db: Session, class_id: int) -> SchoolClass:
    c = db.get(SchoolClass, class_id)
    if c is None:
        raise NotFoundError("Class not found")
    return c


def _get_subject(db: Session, subject_id: int) -> Subject:
    s = db.get(Subject, subject_id)
    if s is None:
        raise NotFoundError("Subject not found")
    return s


def list_classes(db: Session) -> list[SchoolClass]:
    return list(
        db.scalars(select(SchoolClass).order_by(SchoolClass.grade_level, SchoolClass.name)).all()
    )


def create_class(db: Session, *, name: str, grade_level: int, is_physical_class: bool = True) -> SchoolClass:
    name = name.strip()
    if not name:
        raise ValidationError("Class name is required", field="name")
    if not 1 <= grade_level <= 12:
        raise ValidationError("grade_level must be between 1 and 12", field="grade_level")

    if is_physical_class:
        clash = db.scalar(
            select(SchoolClass.id).where(
                SchoolClass.name == name, SchoolClass.is_physical_class.is_(True)
            )
        )
        if clash is not None:
            raise ConflictError(f"Class {name} already exists")

    c = SchoolClass(name=name, grade_level=grade_level, is_physical_class=is_physical_class)
    db.add(c)
    db.commit()
    db.refresh(c)
    logger.info("class %s (%s) created", c.id, c.name)
    return c


def list_subjects(db: Session) -> list[Subject]:
    return list(db.scalars(select(Subject).order_by(Subject.name)).all())


def create_subject(db: Session, *, name: str, code: str) -> Subject:
    code = code.strip().upper()
    if db.scalar(select(Subject.id).where(Subject.code == code)) is not None:
        raise ConflictError(f"Subject code {code} already exists")

    s = Subject(name=name.strip(), code=code)
    db.add(s)
    db.commit()
    db.refresh(s)
    return s


def add_subject_to_class(db: Session, class_id: int, subject_id: int) -> tuple[ClassSubject, int]:
    """
    Attach a subject to a class and enroll every active student currently in
    the class. One transaction: either the pair and all its enrollments exist,
    or nothing does. Students who join the class later are not enrolled here.
    """
    _get_class(db, class_id)
    _get_subject(db, subject_id)

    existing = db.scalar(
        select(ClassSubject).where(
            ClassSubject.class_id == class_id, ClassSubject.subject_id == subject_id
        )
    )
    if existing is not None:
        raise ConflictError("Subject is already assigned to this class")

    student_ids = db.scalars(
        select(Student.id).where(
            Student.class_id == class_id, Student.status == StudentStatus.ACTIVE
        )
    ).all()
    already = set(
        db.scalars(
            select(StudentSubjectEnrollment.student_id).where(
                StudentSubjectEnrollment.class_id == class_id,
                StudentSubjectEnrollment.subject_id == subject_id,
            )
        ).all()
    )

    cs = ClassSubject(class_id=class_id, subject_id=subject_id, is_active=True)
    db.add(cs)
    enrolled = 0
    for sid in student_ids:
        if sid in already:
            continue
        db.add(
            StudentSubjectEnrollment(
                student_id=sid, class_id=class_id, subject_id=subject_id, is_active=True
            )
        )
        enrolled += 1

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(cs)
    logger.info(
        "subject %s added to class %s, %s students enrolled", subject_id, class_id, enrolled
    )
    return cs, enrolled


def remove_subject_from_class(db: Session, class_id: int, subject_id: int) -> None:
    cs = db.scalar(
        select(ClassSubject).where(
            ClassSubject.class_id == class_id, ClassSubject.subject_id == subject_id
        )
    )
    if cs is None:
        raise NotFoundError("Subject not found in this class")

    db.execute(
        delete(StudentSubjectEnrollment).where(
            StudentSubjectEnrollment.class_id == class_id,
            StudentSubjectEnrollment.subject_id == subject_id,
        )
    )
    db.execute(
        delete(ClassTeacherSubject).where(
            ClassTeacherSubject.class_id == class_id,
            ClassTeacherSubject.subject_id == subject_id,
        )
    )
    db.delete(cs)

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("subject %s removed from class %s", subject_id, class_id)


def assign_teacher(db: Session, class_id: int, subject_id: int, teacher_id: int) -> ClassTeacherSubject:
    cs = db.scalar(
        select(ClassSubject).where(
            ClassSubject.class_id == class_id, ClassSubject.subject_id == subject_id
        )
    )
    if cs is None:
        raise NotFoundError("Class-subject relationship not found")

    teacher = db.get(User, teacher_id)
    if (
        teacher is None
        or teacher.status != UserStatus.ACTIVE
        or teacher.role not in (Role.GURU, Role.ADMIN)
    ):
        raise NotFoundError("Teacher not found or not authorized")

    row = db.scalar(
        select(ClassTeacherSubject).where(
            ClassTeacherSubject.class_id == class_id,
            ClassTeacherSubject.teacher_id == teacher_id,
            ClassTeacherSubject.subject_id == subject_id,
        )
    )
    if row is not None:
        if row.is_active:
            raise ConflictError("Teacher is already assigned to this class-subject")
        row.is_active = True
    else:
        row = ClassTeacherSubject(
            class_id=class_id, teacher_id=teacher_id, subject_id=subject_id, is_active=True
        )
        db.add(row)

    db.commit()
    db.refresh(row)
    logger.info("teacher %s assigned to class %s subject %s", teacher_id, class_id, subject_id)
    return row


def unassign_teacher(db: Session, class_id: int, subject_id: int, teacher_id: int) -> None:
    row = db.scalar(
        select(ClassTeacherSubject).where(
            ClassTeacherSubject.class_id == class_id,
            ClassTeacherSubject.teacher_id == teacher_id,
            ClassTeacherSubject.subject_id == subject_id,
            ClassTeacherSubject.is_active.is_(True),
        )
    )
    if row is None:
        raise NotFoundError("Teacher assignment not found")
    row.is_active = False
    db.commit()


def class_subject_students(db: Session, user: User, class_id: int, subject_id: int) -> list[Student]:
    require_subject_access(db, user, class_id, subject_id)
    return list(
        db.scalars(
            select(Student)
            .join(StudentSubjectEnrollment, StudentSubjectEnrollment.student_id == Student.id)
            .where(
                StudentSubjectEnrollment.class_id == class_id,
                StudentSubjectEnrollment.subject_id == subject_id,
                StudentSubjectEnrollment.is_active.is_(True),
            )
            .order_by(Student.full_name)
        ).all()
    )

"""
Access-scoping policy.

Two independent policies live here and are deliberately not unified:

* class/subject scope, whose ground truth is ``ClassTeacherSubject``; ADMIN
  bypasses it entirely;
* assignment ownership, which is a plain ``Assignment.teacher_id`` match and
  whose ADMIN behaviour is chosen by ``AssignmentOwnership``.

Everything here is read-only. Failures raise ``ForbiddenError`` and are never
reported as "not found", so a teacher cannot probe for classes they do not
teach.
"""

import enum
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from pelangi.core.config import settings
from pelangi.core.errors import ForbiddenError, NotFoundError
from pelangi.models.assignment import Assignment
from pelangi.models.classroom import ClassSubject, ClassTeacherSubject, SchoolClass
from pelangi.models.student import Student
from pelangi.models.user import Role, User


class AssignmentOwnership(str, enum.Enum):
    OWNER_ONLY = "owner_only"
    OWNER_OR_ADMIN = "owner_or_admin"


@dataclass
class UserPermissions:
    can_view_all_subjects: bool
    can_create_assignments: bool
    can_grade_assignments: bool
    can_manage_attendance: bool
    can_assign_subjects: bool
    can_transfer_students: bool
    # empty means "all"
    allowed_subjects: list[int] = field(default_factory=list)
    allowed_classes: list[int] = field(default_factory=list)


def is_admin(user: User) -> bool:
    return user.role == Role.ADMIN


def is_staff(user: User) -> bool:
    return user.role in (Role.ADMIN, Role.GURU)


def default_assignment_ownership() -> AssignmentOwnership:
    return AssignmentOwnership(settings.ASSIGNMENT_OWNERSHIP)


def can_access_class(db: Session, user: User, class_id: int) -> bool:
    if is_admin(user):
        return True
    if user.role != Role.GURU:
        return False

    row = db.scalar(
        select(ClassTeacherSubject.id).where(
            ClassTeacherSubject.class_id == class_id,
            ClassTeacherSubject.teacher_id == user.id,
            ClassTeacherSubject.is_active.is_(True),
        ).limit(1)
    )
    return row is not None


def can_access_subject(db: Session, user: User, class_id: int, subject_id: int) -> bool:
    if is_admin(user):
        return True
    if user.role != Role.GURU:
        return False

    row = db.scalar(
        select(ClassTeacherSubject.id).where(
            ClassTeacherSubject.class_id == class_id,
            ClassTeacherSubject.teacher_id == user.id,
            ClassTeacherSubject.subject_id == subject_id,
            ClassTeacherSubject.is_active.is_(True),
        )
    )
    return row is not None


def require_class_access(db: Session, user: User, class_id: int) -> None:
    if not can_access_class(db, user, class_id):
        raise ForbiddenError("You do not have access to this class")


def require_subject_access(db: Session, user: User, class_id: int, subject_id: int) -> None:
    if not can_access_subject(db, user, class_id, subject_id):
        raise ForbiddenError("You do not have access to this subject in this class")


def is_student_self(user: User, student: Student) -> bool:
    return user.role == Role.SISWA and student.user_id is not None and student.user_id == user.id


def require_student_record_access(
    db: Session,
    user: User,
    student: Student,
    subject_id: int | None = None,
) -> None:
    """Own records for the student; class(-subject) scope for teachers."""
    if is_student_self(user, student) or is_admin(user):
        return

    if user.role == Role.GURU and student.class_id is not None:
        if subject_id is None:
            allowed = can_access_class(db, user, student.class_id)
        else:
            allowed = can_access_subject(db, user, student.class_id, subject_id)
        if allowed:
            return

    raise ForbiddenError("You do not have access to this student's records")


def load_student_record(
    db: Session,
    user: User,
    student_id: int,
    subject_id: int | None = None,
) -> Student:
    """
    Fetch a student for ``user`` under the record-access rule. Only ADMIN is
    told that an id does not exist; everyone else gets the same denial as for
    a student outside their scope.
    """
    student = db.get(Student, student_id)
    if student is None:
        if is_admin(user):
            raise NotFoundError("Student not found")
        raise ForbiddenError("You do not have access to this student's records")
    require_student_record_access(db, user, student, subject_id)
    return student


def require_assignment_owner(
    user: User,
    assignment: Assignment,
    policy: AssignmentOwnership | None = None,
) -> None:
    policy = policy or default_assignment_ownership()
    if assignment.teacher_id == user.id:
        return
    if policy is AssignmentOwnership.OWNER_OR_ADMIN and is_admin(user):
        return
    raise ForbiddenError("You can only manage assignments you created")


def get_user_permissions(db: Session, user: User) -> UserPermissions:
    if is_admin(user):
        return UserPermissions(
            can_view_all_subjects=True,
            can_create_assignments=True,
            can_grade_assignments=True,
            can_manage_attendance=True,
            can_assign_subjects=True,
            can_transfer_students=True,
        )

    if user.role != Role.GURU:
        return UserPermissions(
            can_view_all_subjects=False,
            can_create_assignments=False,
            can_grade_assignments=False,
            can_manage_attendance=False,
            can_assign_subjects=False,
            can_transfer_students=False,
        )

    rows = db.execute(
        select(ClassTeacherSubject.class_id, ClassTeacherSubject.subject_id).where(
            ClassTeacherSubject.teacher_id == user.id,
            ClassTeacherSubject.is_active.is_(True),
        )
    ).all()

    return UserPermissions(
        can_view_all_subjects=False,
        can_create_assignments=True,
        can_grade_assignments=True,
        can_manage_attendance=True,
        can_assign_subjects=False,
        can_transfer_students=False,
        allowed_subjects=sorted({r.subject_id for r in rows}),
        allowed_classes=sorted({r.class_id for r in rows}),
    )


def accessible_content(db: Session, user: User) -> list[dict]:
    """Classes the user may see, each with the subjects they may access in it."""
    if is_admin(user):
        classes = db.scalars(
            select(SchoolClass)
            .where(SchoolClass.is_physical_class.is_(True))
            .order_by(SchoolClass.grade_level, SchoolClass.name)
        ).all()
        result = []
        for c in classes:
            pairs = db.scalars(
                select(ClassSubject).where(
                    ClassSubject.class_id == c.id, ClassSubject.is_active.is_(True)
                )
            ).all()
            result.append(
                {
                    "id": c.id,
                    "name": c.name,
                    "grade_level": c.grade_level,
                    "student_count": c.student_count,
                    "subjects": [
                        {"id": p.subject.id, "name": p.subject.name, "code": p.subject.code}
                        for p in pairs
                    ],
                }
            )
        return result

    if user.role != Role.GURU:
        return []

    rows = db.scalars(
        select(ClassTeacherSubject)
        .where(
            ClassTeacherSubject.teacher_id == user.id,
            ClassTeacherSubject.is_active.is_(True),
        )
        .order_by(ClassTeacherSubject.class_id, ClassTeacherSubject.subject_id)
    ).all()

    by_class: dict[int, dict] = {}
    for row in rows:
        entry = by_class.get(row.class_id)
        if entry is None:
            c = row.school_class
            entry = {
                "id": c.id,
                "name": c.name,
                "grade_level": c.grade_level,
                "student_count": c.student_count,
                "subjects": [],
            }
            by_class[row.class_id] = entry
        entry["subjects"].append(
            {"id": row.subject.id, "name": row.subject.name, "code": row.subject.code}
        )

    return list(by_class.values())

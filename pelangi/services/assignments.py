import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from pelangi.core.clock import as_utc, utcnow
from pelangi.core.config import settings
from pelangi.core.errors import NotFoundError, ValidationError
from pelangi.models.assignment import Assignment, AssignmentStatus, AssignmentType
from pelangi.models.classroom import SchoolClass
from pelangi.models.student import Student, StudentStatus
from pelangi.models.submission import AssignmentSubmission, SubmissionStatus
from pelangi.models.user import User
from pelangi.services.access import (
    AssignmentOwnership,
    default_assignment_ownership,
    is_admin,
    require_assignment_owner,
    require_class_access,
)
from pelangi.services.activity import log_activity

logger = logging.getLogger(__name__)


def ensure_assignment_exists(db: Session, assignment_id: int) -> Assignment:
    a = db.query(Assignment).filter(Assignment.id == assignment_id).first()
    if not a:
        raise NotFoundError("Assignment not found")
    return a


def _check_points(points) -> int:
    if isinstance(points, bool) or not isinstance(points, int) or points < 1:
        raise ValidationError("points must be a positive integer", field="points")
    return points


def _owned_query(db: Session, user: User, policy: AssignmentOwnership | None):
    policy = policy or default_assignment_ownership()
    q = db.query(Assignment)
    if policy is AssignmentOwnership.OWNER_OR_ADMIN and is_admin(user):
        return q
    return q.filter(Assignment.teacher_id == user.id)


def display_status(assignment: Assignment, counts: dict, now: datetime) -> str:
    if assignment.status == AssignmentStatus.DRAFT:
        return "draft"
    if assignment.status == AssignmentStatus.CLOSED:
        return "completed"
    if counts["total_students"] and counts["graded"] == counts["total_students"]:
        return "completed"
    if now > as_utc(assignment.deadline):
        return "overdue"
    return "active"


def submission_counts(assignment: Assignment) -> dict:
    subs = assignment.submissions
    return {
        "total_students": len(subs),
        "submitted": sum(1 for s in subs if s.status != SubmissionStatus.NOT_SUBMITTED),
        "late": sum(1 for s in subs if s.status == SubmissionStatus.LATE_SUBMITTED),
        "graded": sum(1 for s in subs if s.status == SubmissionStatus.GRADED),
    }


def create_assignment(
    db: Session,
    *,
    teacher: User,
    class_id: int,
    title: str,
    deadline: datetime,
    points: int | None = None,
    type: AssignmentType = AssignmentType.TUGAS_HARIAN,
    description: str | None = None,
    instructions: str | None = None,
    status: AssignmentStatus = AssignmentStatus.DRAFT,
) -> Assignment:
    """
    Create an assignment and pre-provision one NOT_SUBMITTED row per active
    student currently in the class.

    Class access is checked here and nowhere else in the assignment flow;
    after creation the assignment belongs to ``teacher`` by id.
    """
    # scope first: an unknown class looks the same as someone else's class
    require_class_access(db, teacher, class_id)
    if not db.get(SchoolClass, class_id):
        raise NotFoundError("Class not found")

    title = (title or "").strip()
    if not title:
        raise ValidationError("Title is required", field="title")
    if deadline is None:
        raise ValidationError("Deadline is required", field="deadline")
    points = _check_points(settings.DEFAULT_ASSIGNMENT_POINTS if points is None else points)

    a = Assignment(
        teacher_id=teacher.id,
        class_id=class_id,
        title=title,
        description=description,
        instructions=instructions,
        points=points,
        deadline=as_utc(deadline),
        type=AssignmentType(type),
        status=AssignmentStatus(status),
    )
    db.add(a)
    db.flush()

    students = (
        db.query(Student)
        .filter(Student.class_id == class_id, Student.status == StudentStatus.ACTIVE)
        .all()
    )
    for student in students:
        db.add(
            AssignmentSubmission(
                assignment_id=a.id,
                student_id=student.id,
                status=SubmissionStatus.NOT_SUBMITTED,
            )
        )

    log_activity(
        db, user_id=teacher.id, type="ASSIGNMENT_CREATED", description=f"Created assignment: {title}"
    )

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(a)
    logger.info(
        "assignment %s created in class %s for %s students", a.id, class_id, len(students)
    )
    return a


def get_assignment(
    db: Session, assignment_id: int, user: User, policy: AssignmentOwnership | None = None
) -> Assignment:
    a = ensure_assignment_exists(db, assignment_id)
    require_assignment_owner(user, a, policy)
    return a


def list_assignments(
    db: Session,
    user: User,
    *,
    class_id: int | None = None,
    status: AssignmentStatus | None = None,
    type: AssignmentType | None = None,
    search: str | None = None,
    now: datetime | None = None,
    policy: AssignmentOwnership | None = None,
) -> list[dict]:
    now = as_utc(now or utcnow())

    q = _owned_query(db, user, policy)
    if class_id is not None:
        q = q.filter(Assignment.class_id == class_id)
    if status is not None:
        q = q.filter(Assignment.status == status)
    if type is not None:
        q = q.filter(Assignment.type == type)
    if search:
        q = q.filter(Assignment.title.ilike(f"%{search}%"))

    result = []
    for a in q.order_by(Assignment.created_at.desc(), Assignment.id.desc()).all():
        counts = submission_counts(a)
        result.append(
            {
                "assignment": a,
                "class_name": a.school_class.name if a.school_class else None,
                "display_status": display_status(a, counts, now),
                **counts,
            }
        )
    return result


def update_assignment(
    db: Session,
    assignment_id: int,
    user: User,
    *,
    policy: AssignmentOwnership | None = None,
    **changes,
) -> Assignment:
    # Editing the deadline never re-evaluates lateness of existing submissions.
    a = get_assignment(db, assignment_id, user, policy)

    if changes.get("title") is not None:
        title = changes["title"].strip()
        if not title:
            raise ValidationError("Title is required", field="title")
        a.title = title
    if changes.get("points") is not None:
        a.points = _check_points(changes["points"])
    if changes.get("deadline") is not None:
        a.deadline = as_utc(changes["deadline"])
    if changes.get("type") is not None:
        a.type = AssignmentType(changes["type"])
    if changes.get("status") is not None:
        a.status = AssignmentStatus(changes["status"])
    for field in ("description", "instructions"):
        if changes.get(field) is not None:
            setattr(a, field, changes[field])

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(a)
    return a


def delete_assignment(
    db: Session, assignment_id: int, user: User, policy: AssignmentOwnership | None = None
) -> None:
    a = get_assignment(db, assignment_id, user, policy)
    title = a.title
    db.delete(a)
    log_activity(
        db, user_id=user.id, type="ASSIGNMENT_DELETED", description=f"Deleted assignment: {title}"
    )

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("assignment %s deleted by user %s", assignment_id, user.id)


def assignment_stats(
    db: Session,
    user: User,
    now: datetime | None = None,
    policy: AssignmentOwnership | None = None,
) -> dict:
    now = as_utc(now or utcnow())
    week_ahead = now + timedelta(days=7)

    assignments = _owned_query(db, user, policy).all()
    published = [a for a in assignments if a.status == AssignmentStatus.PUBLISHED]

    return {
        "total": len(assignments),
        "draft": sum(1 for a in assignments if a.status == AssignmentStatus.DRAFT),
        "active": sum(1 for a in published if as_utc(a.deadline) > now),
        "overdue": sum(1 for a in published if as_utc(a.deadline) <= now),
        "completed": sum(1 for a in assignments if a.status == AssignmentStatus.CLOSED),
        # due within the coming week, any status
        "this_week": sum(1 for a in assignments if now <= as_utc(a.deadline) <= week_ahead),
        "average_points": (
            round(sum(a.points for a in assignments) / len(assignments), 2) if assignments else 0.0
        ),
    }


def list_assignment_submissions(
    db: Session, assignment_id: int, user: User, policy: AssignmentOwnership | None = None
) -> list[AssignmentSubmission]:
    get_assignment(db, assignment_id, user, policy)
    return (
        db.query(AssignmentSubmission)
        .join(Student, Student.id == AssignmentSubmission.student_id)
        .filter(AssignmentSubmission.assignment_id == assignment_id)
        .order_by(Student.full_name.asc())
        .all()
    )

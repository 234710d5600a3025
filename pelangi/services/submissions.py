import logging
from datetime import datetime

from sqlalchemy.orm import Session

from pelangi.core.clock import as_utc, utcnow
from pelangi.core.errors import ConflictError, NotFoundError, ValidationError
from pelangi.models.assignment import Assignment, AssignmentStatus
from pelangi.models.student import Student
from pelangi.models.submission import AssignmentSubmission, SubmissionOrigin, SubmissionStatus
from pelangi.models.user import User
from pelangi.services.access import AssignmentOwnership, require_assignment_owner
from pelangi.services.activity import log_activity
from pelangi.services.assignments import ensure_assignment_exists
from pelangi.services.bulk import BulkResult, run_each
from pelangi.services.xp import grant_xp, xp_for_score

logger = logging.getLogger(__name__)

# content of rows a teacher grades without the student ever submitting
BACKFILL_MARKER = "Graded without submission"


def _check_score(score, points: int) -> float:
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ValidationError("score must be a number", field="score")
    if score < 0 or score > points:
        raise ValidationError(f"score must be between 0 and {points}", field="score")
    return float(score)


def submit(
    db: Session,
    *,
    student: Student,
    assignment_id: int,
    content: str | None = None,
    attachments: list | None = None,
    now: datetime | None = None,
) -> AssignmentSubmission:
    """
    Turn the student's pre-provisioned row into a submission.

    Lateness is decided here, once, against the deadline as it stands now.
    """
    assignment = (
        db.query(Assignment)
        .filter(Assignment.id == assignment_id, Assignment.status == AssignmentStatus.PUBLISHED)
        .first()
    )
    if not assignment:
        raise NotFoundError("Assignment not found or not published")

    sub = (
        db.query(AssignmentSubmission)
        .filter(
            AssignmentSubmission.assignment_id == assignment_id,
            AssignmentSubmission.student_id == student.id,
        )
        .first()
    )
    if not sub:
        raise NotFoundError("Submission record not found")
    if sub.status != SubmissionStatus.NOT_SUBMITTED:
        raise ConflictError("Assignment already submitted")

    now = as_utc(now or utcnow())
    is_late = now > as_utc(assignment.deadline)

    sub.status = SubmissionStatus.LATE_SUBMITTED if is_late else SubmissionStatus.SUBMITTED
    sub.origin = SubmissionOrigin.STUDENT_SUBMITTED
    sub.content = content
    sub.attachments = attachments or []
    sub.submitted_at = now

    if student.user_id is not None:
        log_activity(
            db,
            user_id=student.user_id,
            type="ASSIGNMENT_SUBMITTED",
            description=f"Submitted assignment: {assignment.title}",
        )

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(sub)
    logger.info(
        "student %s submitted assignment %s (%s)", student.id, assignment_id, sub.status.value
    )
    return sub


def _apply_grade(
    db: Session,
    sub: AssignmentSubmission,
    assignment: Assignment,
    score: float,
    feedback: str | None,
    grader: User,
    now: datetime,
) -> int:
    """Set the grade and grant whatever XP the new tier adds. Returns XP granted."""
    sub.status = SubmissionStatus.GRADED
    sub.score = score
    sub.feedback = feedback
    sub.graded_at = now
    sub.graded_by = grader.id

    earned = xp_for_score(score, assignment.points)
    already = sub.xp_awarded or 0
    delta = max(0, earned - already)
    if delta:
        sub.xp_awarded = already + delta
        grant_xp(db, sub.student_id, delta, reason=f"assignment {assignment.id}")
    return delta


def grade_submission(
    db: Session,
    *,
    submission_id: int,
    score: float,
    feedback: str | None,
    grader: User,
    now: datetime | None = None,
    policy: AssignmentOwnership | None = None,
) -> AssignmentSubmission:
    sub = db.query(AssignmentSubmission).filter(AssignmentSubmission.id == submission_id).first()
    if not sub:
        raise NotFoundError("Submission not found")

    assignment = sub.assignment
    require_assignment_owner(grader, assignment, policy)
    score = _check_score(score, assignment.points)

    try:
        granted = _apply_grade(db, sub, assignment, score, feedback, grader, as_utc(now or utcnow()))
        log_activity(
            db,
            user_id=grader.id,
            type="SUBMISSION_GRADED",
            description=f"Graded {sub.student.full_name}: {assignment.title} ({score:g})",
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(sub)
    logger.info("submission %s graded %s by user %s (+%s xp)", sub.id, score, grader.id, granted)
    return sub


def bulk_grade(
    db: Session,
    *,
    assignment_id: int,
    student_ids: list[int],
    grade: float,
    feedback: str | None,
    grader: User,
    now: datetime | None = None,
    policy: AssignmentOwnership | None = None,
) -> BulkResult:
    """
    Grade every listed student, each in its own transaction.

    Students with no submission row get one, flagged TEACHER_BACKFILLED and
    carrying ``BACKFILL_MARKER`` as content.
    """
    assignment = ensure_assignment_exists(db, assignment_id)
    require_assignment_owner(grader, assignment, policy)
    score = _check_score(grade, assignment.points)
    now = as_utc(now or utcnow())

    def grade_one(student_id: int) -> None:
        if db.get(Student, student_id) is None:
            raise NotFoundError(f"Student {student_id} not found")

        sub = (
            db.query(AssignmentSubmission)
            .filter(
                AssignmentSubmission.assignment_id == assignment_id,
                AssignmentSubmission.student_id == student_id,
            )
            .first()
        )
        if sub is None:
            sub = AssignmentSubmission(
                assignment_id=assignment_id,
                student_id=student_id,
                origin=SubmissionOrigin.TEACHER_BACKFILLED,
                content=BACKFILL_MARKER,
                xp_awarded=0,
            )
            db.add(sub)
            db.flush()

        _apply_grade(db, sub, assignment, score, feedback, grader, now)

    return run_each(db, student_ids, grade_one, label=f"bulk grade assignment {assignment_id}")


def student_submissions(db: Session, student: Student) -> list[AssignmentSubmission]:
    return (
        db.query(AssignmentSubmission)
        .join(Assignment, Assignment.id == AssignmentSubmission.assignment_id)
        .filter(
            AssignmentSubmission.student_id == student.id,
            Assignment.status != AssignmentStatus.DRAFT,
        )
        .order_by(Assignment.deadline.asc())
        .all()
    )

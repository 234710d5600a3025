"""
Challenge lifecycle.

A challenge is INACTIVE while ``is_active`` is false, ACTIVE between its start
and end dates, and EXPIRED once ``end_date`` has passed; expiry never flips
``is_active``. Each participant moves JOINED -> COMPLETED exactly once, and
that transition is the only place challenge XP is granted.
"""

import enum
import logging
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from pelangi.core.clock import as_utc, utcnow
from pelangi.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from pelangi.models.challenge import Challenge, ChallengeParticipant, ParticipantStatus, TargetType
from pelangi.models.classroom import SchoolClass
from pelangi.models.student import Student, StudentStatus
from pelangi.models.user import User
from pelangi.services.access import is_admin, is_staff
from pelangi.services.activity import log_activity
from pelangi.services.bulk import BulkResult, run_each
from pelangi.services.xp import grant_xp

logger = logging.getLogger(__name__)

DURATION_RANGE = (1, 365)
XP_REWARD_RANGE = (1, 1000)

TARGET_GRADES = {
    TargetType.GRADE_7: 7,
    TargetType.GRADE_8: 8,
    TargetType.GRADE_9: 9,
}


class ChallengeStatus(str, enum.Enum):
    INACTIVE = "INACTIVE"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"


def challenge_status(challenge: Challenge, now: datetime | None = None) -> ChallengeStatus:
    now = as_utc(now or utcnow())
    if not challenge.is_active:
        return ChallengeStatus.INACTIVE
    if now > as_utc(challenge.end_date):
        return ChallengeStatus.EXPIRED
    return ChallengeStatus.ACTIVE


def _check_range(value, bounds: tuple[int, int], field: str) -> int:
    low, high = bounds
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        raise ValidationError(f"{field} must be an integer between {low} and {high}", field=field)
    return value


def _check_target(value) -> TargetType:
    try:
        return TargetType(value)
    except ValueError:
        raise ValidationError(f"Unknown target type {value!r}", field="target_type") from None


def _get_challenge(db: Session, challenge_id: int) -> Challenge:
    challenge = db.get(Challenge, challenge_id)
    if challenge is None:
        raise NotFoundError("Challenge not found")
    return challenge


def _require_manager(actor: User, challenge: Challenge) -> None:
    if challenge.created_by != actor.id and not is_admin(actor):
        raise ForbiddenError("Only the creator or an admin can manage this challenge")


def targets_student(challenge: Challenge, student: Student) -> bool:
    if challenge.target_type == TargetType.ALL_STUDENTS:
        return True
    if student.school_class is None:
        return False
    return student.school_class.grade_level == TARGET_GRADES[challenge.target_type]


def create_challenge(
    db: Session,
    *,
    creator: User,
    title: str,
    duration: int,
    target_type,
    xp_reward: int,
    description: str | None = None,
    now: datetime | None = None,
) -> Challenge:
    if not is_staff(creator):
        raise ForbiddenError("Only teachers and admins can create challenges")

    title = (title or "").strip()
    if not title:
        raise ValidationError("Title is required", field="title")
    duration = _check_range(duration, DURATION_RANGE, "duration")
    xp_reward = _check_range(xp_reward, XP_REWARD_RANGE, "xp_reward")
    target_type = _check_target(target_type)

    start = as_utc(now or utcnow())
    challenge = Challenge(
        title=title,
        description=description,
        duration=duration,
        target_type=target_type,
        xp_reward=xp_reward,
        is_active=True,
        start_date=start,
        end_date=start + timedelta(days=duration),
        created_by=creator.id,
    )
    db.add(challenge)
    db.flush()
    log_activity(
        db, user_id=creator.id, type="CHALLENGE_CREATED", description=f"Created challenge: {title}"
    )

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(challenge)
    logger.info("challenge %s created by user %s (%s days)", challenge.id, creator.id, duration)
    return challenge


def update_challenge(db: Session, challenge_id: int, actor: User, **changes) -> Challenge:
    challenge = _get_challenge(db, challenge_id)
    _require_manager(actor, challenge)

    if changes.get("title") is not None:
        title = changes["title"].strip()
        if not title:
            raise ValidationError("Title is required", field="title")
        challenge.title = title
    if "description" in changes and changes["description"] is not None:
        challenge.description = changes["description"]
    if changes.get("xp_reward") is not None:
        challenge.xp_reward = _check_range(changes["xp_reward"], XP_REWARD_RANGE, "xp_reward")
    if changes.get("target_type") is not None:
        challenge.target_type = _check_target(changes["target_type"])
    if changes.get("is_active") is not None:
        challenge.is_active = bool(changes["is_active"])
    if changes.get("duration") is not None:
        duration = _check_range(changes["duration"], DURATION_RANGE, "duration")
        challenge.duration = duration
        # shift the end, never the start
        challenge.end_date = as_utc(challenge.start_date) + timedelta(days=duration)

    db.commit()
    db.refresh(challenge)
    return challenge


def delete_challenge(db: Session, challenge_id: int, actor: User) -> None:
    challenge = _get_challenge(db, challenge_id)
    _require_manager(actor, challenge)

    joined = db.scalar(
        select(ChallengeParticipant.id).where(ChallengeParticipant.challenge_id == challenge_id).limit(1)
    )
    if joined is not None:
        raise ConflictError("Cannot delete a challenge that has participants")

    db.delete(challenge)
    db.commit()
    logger.info("challenge %s deleted by user %s", challenge_id, actor.id)


def list_challenges(db: Session, *, active_only: bool = False) -> list[Challenge]:
    stmt = select(Challenge).order_by(Challenge.created_at.desc(), Challenge.id.desc())
    if active_only:
        stmt = stmt.where(Challenge.is_active.is_(True))
    return list(db.scalars(stmt).all())


def get_challenge(db: Session, challenge_id: int) -> Challenge:
    return _get_challenge(db, challenge_id)


def list_participants(db: Session, challenge_id: int) -> list[ChallengeParticipant]:
    _get_challenge(db, challenge_id)
    return list(
        db.scalars(
            select(ChallengeParticipant)
            .where(ChallengeParticipant.challenge_id == challenge_id)
            .order_by(ChallengeParticipant.joined_at, ChallengeParticipant.id)
        ).all()
    )


def join_challenge(db: Session, challenge_id: int, student: Student, now: datetime | None = None) -> ChallengeParticipant:
    challenge = _get_challenge(db, challenge_id)
    status = challenge_status(challenge, now)
    if status is not ChallengeStatus.ACTIVE:
        raise ConflictError(f"Challenge is {status.value.lower()} and cannot be joined")
    if not targets_student(challenge, student):
        raise ForbiddenError("This challenge is not open to your grade")

    existing = db.scalar(
        select(ChallengeParticipant.id).where(
            ChallengeParticipant.challenge_id == challenge_id,
            ChallengeParticipant.student_id == student.id,
        )
    )
    if existing is not None:
        raise ConflictError("Already joined this challenge")

    participant = ChallengeParticipant(
        challenge_id=challenge_id, student_id=student.id, status=ParticipantStatus.JOINED
    )
    db.add(participant)
    db.commit()
    db.refresh(participant)
    logger.info("student %s joined challenge %s", student.id, challenge_id)
    return participant


def enroll_targets(db: Session, challenge_id: int, actor: User) -> int:
    challenge = _get_challenge(db, challenge_id)
    _require_manager(actor, challenge)

    already = select(ChallengeParticipant.student_id).where(
        ChallengeParticipant.challenge_id == challenge_id
    )
    stmt = select(Student.id).where(
        Student.status == StudentStatus.ACTIVE, Student.id.not_in(already)
    )
    if challenge.target_type != TargetType.ALL_STUDENTS:
        stmt = stmt.join(SchoolClass, SchoolClass.id == Student.class_id).where(
            SchoolClass.grade_level == TARGET_GRADES[challenge.target_type]
        )

    student_ids = db.scalars(stmt).all()
    for sid in student_ids:
        db.add(
            ChallengeParticipant(
                challenge_id=challenge_id, student_id=sid, status=ParticipantStatus.JOINED
            )
        )

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("enrolled %s students in challenge %s", len(student_ids), challenge_id)
    return len(student_ids)


def _complete(db: Session, participant: ChallengeParticipant, reward: int, now: datetime) -> None:
    # conditional transition; a second finaliser matches zero rows
    result = db.execute(
        update(ChallengeParticipant)
        .where(
            ChallengeParticipant.id == participant.id,
            ChallengeParticipant.status == ParticipantStatus.JOINED,
        )
        .values(status=ParticipantStatus.COMPLETED, completed_at=now, xp_awarded=reward)
    )
    if result.rowcount == 0:
        raise ConflictError("Participant has already completed this challenge")

    grant_xp(
        db, participant.student_id, reward, reason=f"challenge {participant.challenge_id}"
    )


def mark_completed(db: Session, participant_id: int, actor: User, now: datetime | None = None) -> ChallengeParticipant:
    if not is_staff(actor):
        raise ForbiddenError("Only teachers and admins can complete challenges")

    participant = db.get(ChallengeParticipant, participant_id)
    if participant is None:
        raise NotFoundError("Participant not found")
    if participant.status == ParticipantStatus.COMPLETED:
        raise ConflictError("Participant has already completed this challenge")

    challenge = participant.challenge
    try:
        _complete(db, participant, challenge.xp_reward, as_utc(now or utcnow()))
        log_activity(
            db,
            user_id=actor.id,
            type="CHALLENGE_COMPLETED",
            description=f"Marked {participant.student.full_name} complete: {challenge.title}",
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(participant)
    logger.info(
        "participant %s completed challenge %s (+%s xp)",
        participant.id,
        challenge.id,
        challenge.xp_reward,
    )
    return participant


def complete_bulk(
    db: Session,
    challenge_id: int,
    actor: User,
    now: datetime | None = None,
    force: bool = False,
) -> BulkResult:
    """Complete every still-JOINED participant, each in its own transaction."""
    challenge = _get_challenge(db, challenge_id)
    _require_manager(actor, challenge)

    now = as_utc(now or utcnow())
    if not force and now < as_utc(challenge.end_date):
        raise ConflictError("Challenge has not ended yet")

    reward = challenge.xp_reward
    pending = db.scalars(
        select(ChallengeParticipant).where(
            ChallengeParticipant.challenge_id == challenge_id,
            ChallengeParticipant.status == ParticipantStatus.JOINED,
        )
    ).all()

    return run_each(
        db,
        pending,
        lambda p: _complete(db, p, reward, now),
        label=f"complete challenge {challenge_id}",
    )


def student_challenges(db: Session, student: Student, now: datetime | None = None) -> list[dict]:
    """Active challenges open to the student, with their own participation if any."""
    mine = {
        p.challenge_id: p
        for p in db.scalars(
            select(ChallengeParticipant).where(ChallengeParticipant.student_id == student.id)
        ).all()
    }

    result = []
    for challenge in list_challenges(db, active_only=True):
        if not targets_student(challenge, student):
            continue
        p = mine.get(challenge.id)
        result.append(
            {
                "challenge": challenge,
                "status": challenge_status(challenge, now).value,
                "participation_status": p.status if p else None,
                "completed_at": p.completed_at if p else None,
                "xp_awarded": p.xp_awarded if p else 0,
            }
        )
    return result

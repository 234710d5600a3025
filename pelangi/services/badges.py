import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from pelangi.core.errors import ConflictError, NotFoundError, ValidationError
from pelangi.models.gamification import Badge, StudentBadge
from pelangi.models.student import Student
from pelangi.models.user import User
from pelangi.services.activity import log_activity
from pelangi.services.xp import grant_xp

logger = logging.getLogger(__name__)

XP_REWARD_RANGE = (1, 1000)


def _check_reward(xp_reward) -> int:
    low, high = XP_REWARD_RANGE
    if isinstance(xp_reward, bool) or not isinstance(xp_reward, int) or not low <= xp_reward <= high:
        raise ValidationError(f"xp_reward must be between {low} and {high}", field="xp_reward")
    return xp_reward


def _get_badge(db: Session, badge_id: int) -> Badge:
    badge = db.get(Badge, badge_id)
    if badge is None:
        raise NotFoundError("Badge not found")
    return badge


def _name_taken(db: Session, name: str, exclude_id: int | None = None) -> bool:
    stmt = select(Badge.id).where(Badge.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Badge.id != exclude_id)
    return db.scalar(stmt) is not None


def list_badges(db: Session) -> list[Badge]:
    return list(db.scalars(select(Badge).where(Badge.is_active.is_(True)).order_by(Badge.name)).all())


def create_badge(db: Session, *, name: str, description: str, icon: str, xp_reward: int) -> Badge:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Badge name is required", field="name")
    xp_reward = _check_reward(xp_reward)
    if _name_taken(db, name):
        raise ConflictError(f"Badge {name} already exists")

    badge = Badge(name=name, description=description, icon=icon, xp_reward=xp_reward)
    db.add(badge)
    db.commit()
    db.refresh(badge)
    logger.info("badge %s (%s) created", badge.id, name)
    return badge


def update_badge(db: Session, badge_id: int, **changes) -> Badge:
    badge = _get_badge(db, badge_id)

    if changes.get("name") is not None:
        name = changes["name"].strip()
        if not name:
            raise ValidationError("Badge name is required", field="name")
        if _name_taken(db, name, exclude_id=badge.id):
            raise ConflictError(f"Badge {name} already exists")
        badge.name = name
    if changes.get("xp_reward") is not None:
        badge.xp_reward = _check_reward(changes["xp_reward"])
    for field in ("description", "icon", "is_active"):
        if changes.get(field) is not None:
            setattr(badge, field, changes[field])

    db.commit()
    db.refresh(badge)
    return badge


def delete_badge(db: Session, badge_id: int) -> None:
    badge = _get_badge(db, badge_id)
    awarded = db.scalar(select(StudentBadge.id).where(StudentBadge.badge_id == badge_id).limit(1))
    if awarded is not None:
        raise ConflictError("Cannot delete a badge that has been awarded to students")

    db.delete(badge)
    db.commit()
    logger.info("badge %s deleted", badge_id)


def award_badge(
    db: Session,
    *,
    badge_id: int,
    student_id: int,
    awarded_by: User,
    reason: str | None = None,
) -> StudentBadge:
    badge = _get_badge(db, badge_id)
    if not badge.is_active:
        raise ConflictError("Badge is not active")

    student = db.get(Student, student_id)
    if student is None:
        raise NotFoundError("Student not found")

    dup = db.scalar(
        select(StudentBadge.id).where(
            StudentBadge.student_id == student_id, StudentBadge.badge_id == badge_id
        )
    )
    if dup is not None:
        raise ConflictError("Student already has this badge")

    award = StudentBadge(
        student_id=student_id, badge_id=badge_id, awarded_by=awarded_by.id, reason=reason
    )
    db.add(award)

    try:
        grant_xp(db, student_id, badge.xp_reward, reason=f"badge {badge.name}")
        log_activity(
            db,
            user_id=awarded_by.id,
            type="BADGE_AWARDED",
            description=f"Awarded {badge.name} to {student.full_name}",
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(award)
    return award


def student_badges(db: Session, student_id: int) -> list[StudentBadge]:
    return list(
        db.scalars(
            select(StudentBadge)
            .where(StudentBadge.student_id == student_id)
            .order_by(StudentBadge.awarded_at.desc())
        ).all()
    )

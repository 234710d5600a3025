"""
XP / level engine.

XP only ever goes up. Every change to ``StudentXp.total_xp`` is expressed as
one of two tagged operations, ``XpCreate`` or ``XpIncrement``, and an
increment is sent to the store as a relative ``total_xp = total_xp + delta``
so concurrent grants to the same student are never lost.

Nothing here commits; the caller owns the transaction.
"""

import logging
import math
from dataclasses import dataclass
from typing import Sequence

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from pelangi.core.errors import InternalError, NotFoundError, ValidationError
from pelangi.models.classroom import SchoolClass
from pelangi.models.gamification import Level, StudentBadge, StudentXp
from pelangi.models.student import Student, StudentStatus

logger = logging.getLogger(__name__)

DEFAULT_LEVEL = 1
DEFAULT_LEVEL_NAME = "Pemula"

# (minimum percentage, xp), checked top-down
XP_TIERS = (
    (90, 50),
    (80, 40),
    (70, 30),
    (60, 20),
    (50, 10),
)


@dataclass(frozen=True)
class XpCreate:
    student_id: int
    initial: int

    def __post_init__(self):
        if self.initial < 0:
            raise ValidationError("XP amount cannot be negative", field="amount")


@dataclass(frozen=True)
class XpIncrement:
    student_id: int
    delta: int

    def __post_init__(self):
        if self.delta < 0:
            raise ValidationError("XP is never decremented", field="amount")


XpChange = XpCreate | XpIncrement


@dataclass(frozen=True)
class LevelProgress:
    level: int
    name: str
    benefits: str | None
    xp_required: int
    next_level: int | None
    next_level_xp: int | None
    progress_to_next_level: float


def xp_for_score(score: float, points: float) -> int:
    if points is None or points <= 0:
        raise ValidationError("points must be positive", field="points")
    if score < 0:
        raise ValidationError("score cannot be negative", field="score")

    # score / points * 100 >= pct, compared without dividing
    for pct, xp in XP_TIERS:
        if score * 100 >= pct * points:
            return xp
    return 0


def _validate_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise ValidationError("XP amount must be a number", field="amount")
    if isinstance(amount, float):
        if not math.isfinite(amount) or not amount.is_integer():
            raise ValidationError("XP amount must be a finite whole number", field="amount")
        amount = int(amount)
    if amount < 0:
        raise ValidationError("XP amount cannot be negative", field="amount")
    return amount


def active_levels(db: Session) -> list[Level]:
    return list(
        db.scalars(
            select(Level)
            .where(Level.is_active.is_(True))
            .order_by(Level.xp_required.asc(), Level.level.asc())
        ).all()
    )


def compute_level(levels: Sequence[Level], total_xp: int) -> LevelProgress:
    if total_xp < 0:
        raise ValidationError("total XP cannot be negative", field="total_xp")

    ordered = sorted(levels, key=lambda lv: (lv.xp_required, lv.level))
    if not ordered or ordered[0].xp_required != 0:
        raise InternalError("Level table is misconfigured: no level starts at 0 XP")

    idx = 0
    for i, lv in enumerate(ordered):
        if lv.xp_required <= total_xp:
            idx = i
        else:
            break

    current = ordered[idx]
    nxt = ordered[idx + 1] if idx + 1 < len(ordered) else None

    if nxt is None:
        progress = 100.0
    else:
        span = nxt.xp_required - current.xp_required
        if span <= 0:
            progress = 100.0
        else:
            progress = (total_xp - current.xp_required) / span * 100
            progress = round(min(max(progress, 0.0), 100.0), 2)

    return LevelProgress(
        level=current.level,
        name=current.name,
        benefits=current.benefits,
        xp_required=current.xp_required,
        next_level=nxt.level if nxt else None,
        next_level_xp=nxt.xp_required if nxt else None,
        progress_to_next_level=progress,
    )


def plan_xp_change(db: Session, student_id: int, amount: int) -> XpChange:
    exists = db.scalar(select(StudentXp.id).where(StudentXp.student_id == student_id))
    if exists is None:
        return XpCreate(student_id=student_id, initial=amount)
    return XpIncrement(student_id=student_id, delta=amount)


def apply_xp_change(db: Session, change: XpChange) -> StudentXp:
    if isinstance(change, XpCreate):
        db.add(
            StudentXp(
                student_id=change.student_id,
                total_xp=change.initial,
                level=DEFAULT_LEVEL,
                level_name=DEFAULT_LEVEL_NAME,
            )
        )
        db.flush()
    else:
        db.execute(
            update(StudentXp)
            .where(StudentXp.student_id == change.student_id)
            .values(total_xp=StudentXp.total_xp + change.delta)
        )

    row = db.scalar(select(StudentXp).where(StudentXp.student_id == change.student_id))
    db.refresh(row)
    return row


def sync_level(db: Session, xp_row: StudentXp) -> LevelProgress:
    progress = compute_level(active_levels(db), xp_row.total_xp)
    if xp_row.level != progress.level or xp_row.level_name != progress.name:
        xp_row.level = progress.level
        xp_row.level_name = progress.name
        db.flush()
    return progress


def ensure_student_xp(db: Session, student_id: int) -> StudentXp:
    row = db.scalar(select(StudentXp).where(StudentXp.student_id == student_id))
    if row is None:
        row = apply_xp_change(db, XpCreate(student_id=student_id, initial=0))
    return row


def grant_xp(db: Session, student_id: int, amount, *, reason: str | None = None) -> StudentXp:
    """Add ``amount`` XP to a student and re-derive their level."""
    amount = _validate_amount(amount)

    if db.get(Student, student_id) is None:
        raise NotFoundError("Student not found")

    change = plan_xp_change(db, student_id, amount)
    row = apply_xp_change(db, change)
    progress = sync_level(db, row)

    logger.info(
        "xp +%s for student %s (%s) -> total %s, level %s",
        amount,
        student_id,
        reason or "unspecified",
        row.total_xp,
        progress.level,
    )
    return row


def get_student_xp(db: Session, student_id: int) -> dict:
    student = db.get(Student, student_id)
    if student is None:
        raise NotFoundError("Student not found")

    row = db.scalar(select(StudentXp).where(StudentXp.student_id == student_id))
    total = row.total_xp if row else 0
    progress = compute_level(active_levels(db), total)

    return {
        "student_id": student.id,
        "nisn": student.student_id,
        "full_name": student.full_name,
        "total_xp": total,
        "level": progress.level,
        "level_name": progress.name,
        "benefits": progress.benefits,
        "next_level_xp": progress.next_level_xp,
        "progress_to_next_level": progress.progress_to_next_level,
    }


def leaderboard(db: Session, class_id: int | None = None, limit: int = 50) -> list[dict]:
    badge_count = (
        select(func.count(StudentBadge.id))
        .where(StudentBadge.student_id == Student.id)
        .correlate(Student)
        .scalar_subquery()
    )
    total = func.coalesce(StudentXp.total_xp, 0)

    stmt = (
        select(
            Student.id,
            Student.student_id.label("nisn"),
            Student.full_name,
            SchoolClass.name.label("class_name"),
            total.label("total_xp"),
            StudentXp.level,
            StudentXp.level_name,
            badge_count.label("badge_count"),
        )
        .outerjoin(StudentXp, StudentXp.student_id == Student.id)
        .outerjoin(SchoolClass, SchoolClass.id == Student.class_id)
        .where(Student.status == StudentStatus.ACTIVE)
        .order_by(total.desc(), Student.full_name.asc(), Student.id.asc())
        .limit(limit)
    )
    if class_id is not None:
        stmt = stmt.where(Student.class_id == class_id)

    rows = db.execute(stmt).all()
    return [
        {
            "rank": i + 1,
            "student_id": r.id,
            "nisn": r.nisn,
            "full_name": r.full_name,
            "class_name": r.class_name,
            "total_xp": r.total_xp,
            "level": r.level or DEFAULT_LEVEL,
            "level_name": r.level_name or DEFAULT_LEVEL_NAME,
            "badge_count": r.badge_count or 0,
        }
        for i, r in enumerate(rows)
    ]

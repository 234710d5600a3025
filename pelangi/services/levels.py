import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from pelangi.core.errors import ConflictError, NotFoundError, ValidationError
from pelangi.models.gamification import Level

logger = logging.getLogger(__name__)

# ordinals 1..SYSTEM_LEVEL_MAX cannot be deleted
SYSTEM_LEVEL_MAX = 10

DEFAULT_LEVELS = (
    (1, "Pemula", 0, "Akses dasar ke semua fitur"),
    (2, "Berkembang", 100, "Akses ke quiz tambahan"),
    (3, "Mahir", 300, "Akses ke materi advanced"),
    (4, "Ahli", 600, "Akses ke proyek khusus"),
    (5, "Master", 1000, "Akses ke semua fitur premium"),
    (6, "Grandmaster", 1500, "Akses mentor untuk siswa lain"),
    (7, "Legend", 2200, "Akses ke kompetisi eksklusif"),
    (8, "Mythic", 3000, "Akses ke program beasiswa"),
    (9, "Divine", 4000, "Akses ke universitas partner"),
    (10, "Immortal", 5500, "Status legend sekolah"),
)


def seed_default_levels(db: Session) -> int:
    if db.scalar(select(Level.id).limit(1)) is not None:
        return 0
    for level, name, xp_required, benefits in DEFAULT_LEVELS:
        db.add(Level(level=level, name=name, xp_required=xp_required, benefits=benefits))
    db.commit()
    logger.info("seeded %s default levels", len(DEFAULT_LEVELS))
    return len(DEFAULT_LEVELS)


def list_levels(db: Session) -> list[Level]:
    return list(
        db.scalars(select(Level).where(Level.is_active.is_(True)).order_by(Level.level)).all()
    )


def _check_monotonic(db: Session, ordinal: int, xp_required: int, exclude_id: int | None = None) -> None:
    """xp_required must be non-decreasing in level order."""
    if xp_required < 0:
        raise ValidationError("xp_required cannot be negative", field="xp_required")
    if ordinal == 1 and xp_required != 0:
        raise ValidationError("Level 1 must require 0 XP", field="xp_required")

    lower = select(Level).where(Level.level < ordinal).order_by(Level.level.desc()).limit(1)
    higher = select(Level).where(Level.level > ordinal).order_by(Level.level.asc()).limit(1)
    if exclude_id is not None:
        lower = lower.where(Level.id != exclude_id)
        higher = higher.where(Level.id != exclude_id)

    below = db.scalar(lower)
    above = db.scalar(higher)
    if below is not None and xp_required < below.xp_required:
        raise ValidationError(
            f"xp_required must be at least {below.xp_required} (level {below.level})",
            field="xp_required",
        )
    if above is not None and xp_required > above.xp_required:
        raise ValidationError(
            f"xp_required must be at most {above.xp_required} (level {above.level})",
            field="xp_required",
        )


def create_level(db: Session, *, level: int, name: str, xp_required: int, benefits: str | None) -> Level:
    if level < 1:
        raise ValidationError("level must be at least 1", field="level")
    if db.scalar(select(Level.id).where(Level.level == level)) is not None:
        raise ConflictError(f"Level {level} already exists")

    _check_monotonic(db, level, xp_required)

    row = Level(level=level, name=name, xp_required=xp_required, benefits=benefits)
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("level %s (%s) created at %s XP", level, name, xp_required)
    return row


def update_level(
    db: Session,
    level_id: int,
    *,
    name: str | None = None,
    xp_required: int | None = None,
    benefits: str | None = None,
) -> Level:
    row = db.get(Level, level_id)
    if row is None:
        raise NotFoundError("Level not found")

    if xp_required is not None:
        _check_monotonic(db, row.level, xp_required, exclude_id=row.id)
        row.xp_required = xp_required
    if name is not None:
        row.name = name
    if benefits is not None:
        row.benefits = benefits

    db.commit()
    db.refresh(row)
    return row


def delete_level(db: Session, level_id: int) -> None:
    row = db.get(Level, level_id)
    if row is None:
        raise NotFoundError("Level not found")
    if row.level <= SYSTEM_LEVEL_MAX:
        raise ConflictError("System levels cannot be deleted")

    db.delete(row)
    db.commit()
    logger.info("level %s deleted", row.level)

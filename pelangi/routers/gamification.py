from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from pelangi.core.config import settings
from pelangi.core.current_user import get_current_user
from pelangi.core.deps import get_db
from pelangi.core.permissions import require_admin, require_staff
from pelangi.models.user import User
from pelangi.schemas.common import ApiResponse, ok
from pelangi.schemas.gamification import (
    BadgeAward,
    BadgeCreate,
    BadgeRead,
    BadgeUpdate,
    LeaderboardRow,
    LevelCreate,
    LevelRead,
    LevelUpdate,
    StudentBadgeRead,
)
from pelangi.services import badges as badge_service
from pelangi.services import levels as level_service
from pelangi.services.xp import leaderboard

router = APIRouter()


@router.get("/leaderboard", response_model=ApiResponse[list[LeaderboardRow]])
def get_leaderboard(
    class_id: int | None = None,
    limit: int | None = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return ok(leaderboard(db, class_id=class_id, limit=limit or settings.LEADERBOARD_LIMIT))


@router.get("/levels", response_model=ApiResponse[list[LevelRead]])
def get_levels(db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    return ok(level_service.list_levels(db))


@router.post("/levels", response_model=ApiResponse[LevelRead], status_code=status.HTTP_201_CREATED)
def add_level(payload: LevelCreate, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    row = level_service.create_level(
        db,
        level=payload.level,
        name=payload.name,
        xp_required=payload.xp_required,
        benefits=payload.benefits,
    )
    return ok(row, "Level created")


@router.put("/levels/{level_id}", response_model=ApiResponse[LevelRead])
def edit_level(
    level_id: int,
    payload: LevelUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    row = level_service.update_level(db, level_id, **payload.model_dump(exclude_unset=True))
    return ok(row, "Level updated")


@router.delete("/levels/{level_id}", response_model=ApiResponse[None])
def remove_level(level_id: int, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    level_service.delete_level(db, level_id)
    return ok(message="Level deleted")


@router.get("/badges", response_model=ApiResponse[list[BadgeRead]])
def get_badges(db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    return ok(badge_service.list_badges(db))


@router.post("/badges", response_model=ApiResponse[BadgeRead], status_code=status.HTTP_201_CREATED)
def add_badge(payload: BadgeCreate, db: Session = Depends(get_db), _: User = Depends(require_staff)):
    badge = badge_service.create_badge(
        db,
        name=payload.name,
        description=payload.description,
        icon=payload.icon,
        xp_reward=payload.xp_reward,
    )
    return ok(badge, "Badge created")


@router.put("/badges/{badge_id}", response_model=ApiResponse[BadgeRead])
def edit_badge(
    badge_id: int,
    payload: BadgeUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_staff),
):
    return ok(badge_service.update_badge(db, badge_id, **payload.model_dump(exclude_unset=True)))


@router.delete("/badges/{badge_id}", response_model=ApiResponse[None])
def remove_badge(badge_id: int, db: Session = Depends(get_db), _: User = Depends(require_staff)):
    badge_service.delete_badge(db, badge_id)
    return ok(message="Badge deleted")


@router.post(
    "/badges/{badge_id}/award",
    response_model=ApiResponse[StudentBadgeRead],
    status_code=status.HTTP_201_CREATED,
)
def award(
    badge_id: int,
    payload: BadgeAward,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_staff),
):
    row = badge_service.award_badge(
        db,
        badge_id=badge_id,
        student_id=payload.student_id,
        awarded_by=teacher,
        reason=payload.reason,
    )
    return ok(row, "Badge awarded")

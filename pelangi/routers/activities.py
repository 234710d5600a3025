from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pelangi.core.current_user import get_current_user
from pelangi.core.deps import get_db
from pelangi.models.user import User
from pelangi.schemas.activity import ActivityRead
from pelangi.schemas.common import ApiResponse, ok
from pelangi.services.activity import recent_activities

router = APIRouter()


@router.get("", response_model=ApiResponse[list[ActivityRead]])
def list_activities(
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ok(recent_activities(db, user, limit))

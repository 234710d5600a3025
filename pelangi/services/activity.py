from sqlalchemy import select
from sqlalchemy.orm import Session

from pelangi.models.activity import Activity
from pelangi.models.user import Role, User


def log_activity(db: Session, *, user_id: int | None, type: str, description: str) -> Activity:
    # joins the caller's transaction; no commit here
    row = Activity(user_id=user_id, type=type, description=description)
    db.add(row)
    return row


def recent_activities(db: Session, user: User, limit: int = 20) -> list[Activity]:
    stmt = select(Activity).order_by(Activity.created_at.desc(), Activity.id.desc()).limit(limit)
    if user.role != Role.ADMIN:
        stmt = stmt.where(Activity.user_id == user.id)
    return list(db.scalars(stmt).all())

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class LevelCreate(BaseModel):
    level: int
    name: str
    xp_required: int
    benefits: Optional[str] = None


class LevelUpdate(BaseModel):
    name: Optional[str] = None
    xp_required: Optional[int] = None
    benefits: Optional[str] = None


class LevelRead(BaseModel):
    id: int
    level: int
    name: str
    xp_required: int
    benefits: Optional[str] = None
    is_active: bool

    class Config:
        from_attributes = True


class StudentXpRead(BaseModel):
    student_id: int
    nisn: str
    full_name: str
    total_xp: int
    level: int
    level_name: str
    benefits: Optional[str] = None
    next_level_xp: Optional[int] = None
    progress_to_next_level: float


class LeaderboardRow(BaseModel):
    rank: int
    student_id: int
    nisn: str
    full_name: str
    class_name: Optional[str] = None
    total_xp: int
    level: int
    level_name: str
    badge_count: int


class BadgeCreate(BaseModel):
    name: str
    description: str
    icon: str
    xp_reward: int


class BadgeUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    xp_reward: Optional[int] = None
    is_active: Optional[bool] = None


class BadgeRead(BaseModel):
    id: int
    name: str
    description: str
    icon: str
    xp_reward: int
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class BadgeAward(BaseModel):
    student_id: int
    reason: Optional[str] = None


class StudentBadgeRead(BaseModel):
    id: int
    student_id: int
    badge_id: int
    awarded_by: Optional[int] = None
    reason: Optional[str] = None
    awarded_at: datetime
    badge: BadgeRead

    class Config:
        from_attributes = True

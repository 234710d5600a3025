from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from pelangi.models.challenge import ParticipantStatus, TargetType


class ChallengeCreate(BaseModel):
    title: str
    description: Optional[str] = None
    duration: int
    target_type: TargetType
    xp_reward: int


class ChallengeUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    duration: Optional[int] = None
    target_type: Optional[TargetType] = None
    xp_reward: Optional[int] = None
    is_active: Optional[bool] = None


class ChallengeRead(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    duration: int
    target_type: TargetType
    xp_reward: int
    is_active: bool
    start_date: datetime
    end_date: datetime
    created_by: int
    created_at: datetime

    class Config:
        from_attributes = True


class ParticipantRead(BaseModel):
    id: int
    challenge_id: int
    student_id: int
    status: ParticipantStatus
    joined_at: datetime
    completed_at: Optional[datetime] = None
    xp_awarded: int

    class Config:
        from_attributes = True


class StudentChallengeRow(BaseModel):
    challenge: ChallengeRead
    status: str
    participation_status: Optional[ParticipantStatus] = None
    completed_at: Optional[datetime] = None
    xp_awarded: int = 0

    class Config:
        from_attributes = True


class CompleteBulkRequest(BaseModel):
    force: bool = False

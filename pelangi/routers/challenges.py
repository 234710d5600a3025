from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from pelangi.core.current_user import get_current_user
from pelangi.core.deps import get_db
from pelangi.core.permissions import require_staff, require_student
from pelangi.models.student import Student
from pelangi.models.user import User
from pelangi.schemas.challenge import (
    ChallengeCreate,
    ChallengeRead,
    ChallengeUpdate,
    CompleteBulkRequest,
    ParticipantRead,
    StudentChallengeRow,
)
from pelangi.schemas.common import ApiResponse, BulkResultRead, ok
from pelangi.services import challenges as challenge_service

router = APIRouter()


@router.get("", response_model=ApiResponse[list[ChallengeRead]])
def list_challenges(
    active_only: bool = False,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return ok(challenge_service.list_challenges(db, active_only=active_only))


@router.post("", response_model=ApiResponse[ChallengeRead], status_code=status.HTTP_201_CREATED)
def create_challenge(
    payload: ChallengeCreate,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_staff),
):
    challenge = challenge_service.create_challenge(
        db,
        creator=teacher,
        title=payload.title,
        description=payload.description,
        duration=payload.duration,
        target_type=payload.target_type,
        xp_reward=payload.xp_reward,
    )
    return ok(challenge, "Challenge created")


@router.get("/me", response_model=ApiResponse[list[StudentChallengeRow]])
def my_challenges(db: Session = Depends(get_db), student: Student = Depends(require_student)):
    return ok(challenge_service.student_challenges(db, student))


@router.post(
    "/participants/{participant_id}/complete",
    response_model=ApiResponse[ParticipantRead],
)
def complete_participant(
    participant_id: int,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_staff),
):
    return ok(challenge_service.mark_completed(db, participant_id, teacher), "Challenge completed")


@router.get("/{challenge_id}", response_model=ApiResponse[ChallengeRead])
def get_challenge(challenge_id: int, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    return ok(challenge_service.get_challenge(db, challenge_id))


@router.put("/{challenge_id}", response_model=ApiResponse[ChallengeRead])
def update_challenge(
    challenge_id: int,
    payload: ChallengeUpdate,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_staff),
):
    challenge = challenge_service.update_challenge(
        db, challenge_id, teacher, **payload.model_dump(exclude_unset=True)
    )
    return ok(challenge, "Challenge updated")


@router.delete("/{challenge_id}", response_model=ApiResponse[None])
def delete_challenge(challenge_id: int, db: Session = Depends(get_db), teacher: User = Depends(require_staff)):
    challenge_service.delete_challenge(db, challenge_id, teacher)
    return ok(message="Challenge deleted")


@router.post("/{challenge_id}/join", response_model=ApiResponse[ParticipantRead], status_code=status.HTTP_201_CREATED)
def join(challenge_id: int, db: Session = Depends(get_db), student: Student = Depends(require_student)):
    return ok(challenge_service.join_challenge(db, challenge_id, student), "Joined challenge")


@router.post("/{challenge_id}/enroll", response_model=ApiResponse[int])
def enroll(challenge_id: int, db: Session = Depends(get_db), teacher: User = Depends(require_staff)):
    count = challenge_service.enroll_targets(db, challenge_id, teacher)
    return ok(count, f"Enrolled {count} students")


@router.get("/{challenge_id}/participants", response_model=ApiResponse[list[ParticipantRead]])
def participants(challenge_id: int, db: Session = Depends(get_db), _: User = Depends(require_staff)):
    return ok(challenge_service.list_participants(db, challenge_id))


@router.post("/{challenge_id}/complete", response_model=ApiResponse[BulkResultRead])
def complete_all(
    challenge_id: int,
    payload: CompleteBulkRequest | None = None,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_staff),
):
    force = payload.force if payload else False
    result = challenge_service.complete_bulk(db, challenge_id, teacher, force=force)
    return ok(result.as_dict(), f"Completed {result.successful} of {result.total} participants")

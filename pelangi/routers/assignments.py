from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from pelangi.core.deps import get_db
from pelangi.core.permissions import require_staff
from pelangi.models.assignment import AssignmentStatus, AssignmentType
from pelangi.models.user import User
from pelangi.schemas.assignment import (
    AssignmentCreate,
    AssignmentListRow,
    AssignmentRead,
    AssignmentStats,
    AssignmentUpdate,
)
from pelangi.schemas.common import ApiResponse, BulkResultRead, ok
from pelangi.schemas.submission import BulkGradeRequest, SubmissionRead
from pelangi.services import assignments as assignment_service
from pelangi.services.submissions import bulk_grade

router = APIRouter()


@router.get("", response_model=ApiResponse[list[AssignmentListRow]])
def list_assignments(
    class_id: int | None = None,
    status: AssignmentStatus | None = None,
    type: AssignmentType | None = None,
    search: str | None = None,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_staff),
):
    rows = assignment_service.list_assignments(
        db, teacher, class_id=class_id, status=status, type=type, search=search
    )
    return ok(rows)


@router.get("/stats", response_model=ApiResponse[AssignmentStats])
def stats(db: Session = Depends(get_db), teacher: User = Depends(require_staff)):
    return ok(assignment_service.assignment_stats(db, teacher))


@router.post("", response_model=ApiResponse[AssignmentRead], status_code=status.HTTP_201_CREATED)
def create_assignment(
    payload: AssignmentCreate,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_staff),
):
    a = assignment_service.create_assignment(
        db,
        teacher=teacher,
        class_id=payload.class_id,
        title=payload.title,
        deadline=payload.deadline,
        points=payload.points,
        type=payload.type,
        description=payload.description,
        instructions=payload.instructions,
        status=payload.status,
    )
    return ok(a, "Assignment created")


@router.get("/{assignment_id}", response_model=ApiResponse[AssignmentRead])
def get_assignment(assignment_id: int, db: Session = Depends(get_db), teacher: User = Depends(require_staff)):
    return ok(assignment_service.get_assignment(db, assignment_id, teacher))


@router.put("/{assignment_id}", response_model=ApiResponse[AssignmentRead])
def update_assignment(
    assignment_id: int,
    payload: AssignmentUpdate,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_staff),
):
    a = assignment_service.update_assignment(
        db, assignment_id, teacher, **payload.model_dump(exclude_unset=True)
    )
    return ok(a, "Assignment updated")


@router.delete("/{assignment_id}", response_model=ApiResponse[None])
def delete_assignment(assignment_id: int, db: Session = Depends(get_db), teacher: User = Depends(require_staff)):
    assignment_service.delete_assignment(db, assignment_id, teacher)
    return ok(message="Assignment deleted")


@router.get("/{assignment_id}/submissions", response_model=ApiResponse[list[SubmissionRead]])
def list_submissions(
    assignment_id: int,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_staff),
):
    return ok(assignment_service.list_assignment_submissions(db, assignment_id, teacher))


@router.put("/{assignment_id}/bulk-grade", response_model=ApiResponse[BulkResultRead])
def bulk_grade_submissions(
    assignment_id: int,
    payload: BulkGradeRequest,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_staff),
):
    result = bulk_grade(
        db,
        assignment_id=assignment_id,
        student_ids=payload.student_ids,
        grade=payload.grade,
        feedback=payload.feedback,
        grader=teacher,
    )
    return ok(result.as_dict(), f"Successfully graded {result.successful} submissions")

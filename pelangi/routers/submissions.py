from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pelangi.core.deps import get_db
from pelangi.core.permissions import require_staff, require_student
from pelangi.models.student import Student
from pelangi.models.user import User
from pelangi.schemas.common import ApiResponse, ok
from pelangi.schemas.submission import SubmissionCreate, SubmissionGradeUpdate, SubmissionRead
from pelangi.services import submissions as submission_service

router = APIRouter()


@router.post("/assignments/{assignment_id}/submit", response_model=ApiResponse[SubmissionRead])
def submit_assignment(
    assignment_id: int,
    payload: SubmissionCreate,
    db: Session = Depends(get_db),
    student: Student = Depends(require_student),
):
    sub = submission_service.submit(
        db,
        student=student,
        assignment_id=assignment_id,
        content=payload.content,
        attachments=payload.attachments,
    )
    return ok(sub, "Assignment submitted")


@router.get("/me", response_model=ApiResponse[list[SubmissionRead]])
def my_submissions(db: Session = Depends(get_db), student: Student = Depends(require_student)):
    return ok(submission_service.student_submissions(db, student))


@router.patch("/{submission_id}/grade", response_model=ApiResponse[SubmissionRead])
def grade_submission(
    submission_id: int,
    payload: SubmissionGradeUpdate,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_staff),
):
    sub = submission_service.grade_submission(
        db,
        submission_id=submission_id,
        score=payload.score,
        feedback=payload.feedback,
        grader=teacher,
    )
    return ok(sub, "Grade saved successfully")

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from pelangi.core.deps import get_db
from pelangi.core.permissions import require_admin, require_staff
from pelangi.models.user import User
from pelangi.schemas.classroom import (
    ClassCreate,
    ClassRead,
    ClassSubjectCreate,
    ClassSubjectRead,
    ClassTeacherSubjectRead,
    SubjectCreate,
    SubjectRead,
    TeacherAssign,
)
from pelangi.schemas.common import ApiResponse, BulkResultRead, ok
from pelangi.schemas.student import StudentAssign, StudentRead
from pelangi.services import classes as class_service
from pelangi.services.students import assign_students_to_class

router = APIRouter()


@router.get("", response_model=ApiResponse[list[ClassRead]])
def list_classes(db: Session = Depends(get_db), _: User = Depends(require_staff)):
    return ok(class_service.list_classes(db))


@router.post("", response_model=ApiResponse[ClassRead], status_code=status.HTTP_201_CREATED)
def create_class(payload: ClassCreate, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    c = class_service.create_class(
        db,
        name=payload.name,
        grade_level=payload.grade_level,
        is_physical_class=payload.is_physical_class,
    )
    return ok(c, "Class created")


@router.get("/subjects", response_model=ApiResponse[list[SubjectRead]])
def list_subjects(db: Session = Depends(get_db), _: User = Depends(require_staff)):
    return ok(class_service.list_subjects(db))


@router.post("/subjects", response_model=ApiResponse[SubjectRead], status_code=status.HTTP_201_CREATED)
def create_subject(payload: SubjectCreate, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    return ok(class_service.create_subject(db, name=payload.name, code=payload.code), "Subject created")


@router.post(
    "/{class_id}/subjects",
    response_model=ApiResponse[ClassSubjectRead],
    status_code=status.HTTP_201_CREATED,
)
def add_subject(
    class_id: int,
    payload: ClassSubjectCreate,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    cs, enrolled = class_service.add_subject_to_class(db, class_id, payload.subject_id)
    data = {
        "id": cs.id,
        "class_id": cs.class_id,
        "subject_id": cs.subject_id,
        "is_active": cs.is_active,
        "enrolled_students": enrolled,
    }
    return ok(data, f"Subject added, {enrolled} students enrolled")


@router.delete("/{class_id}/subjects/{subject_id}", response_model=ApiResponse[None])
def remove_subject(
    class_id: int,
    subject_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    class_service.remove_subject_from_class(db, class_id, subject_id)
    return ok(message="Subject removed from class")


@router.post(
    "/{class_id}/subjects/{subject_id}/teachers",
    response_model=ApiResponse[ClassTeacherSubjectRead],
    status_code=status.HTTP_201_CREATED,
)
def assign_teacher(
    class_id: int,
    subject_id: int,
    payload: TeacherAssign,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    row = class_service.assign_teacher(db, class_id, subject_id, payload.teacher_id)
    return ok(row, "Teacher assigned")


@router.delete("/{class_id}/subjects/{subject_id}/teachers/{teacher_id}", response_model=ApiResponse[None])
def unassign_teacher(
    class_id: int,
    subject_id: int,
    teacher_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    class_service.unassign_teacher(db, class_id, subject_id, teacher_id)
    return ok(message="Teacher unassigned")


@router.get("/{class_id}/subjects/{subject_id}/students", response_model=ApiResponse[list[StudentRead]])
def subject_students(
    class_id: int,
    subject_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    return ok(class_service.class_subject_students(db, user, class_id, subject_id))


@router.post("/{class_id}/students", response_model=ApiResponse[BulkResultRead])
def assign_students(
    class_id: int,
    payload: StudentAssign,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    result = assign_students_to_class(db, class_id, payload.student_ids)
    return ok(result.as_dict(), f"Assigned {result.successful} of {result.total} students")

from datetime import date

import pytest

from pelangi.core.errors import ForbiddenError, NotFoundError, ValidationError
from pelangi.models.assignment import Assignment
from pelangi.models.student import Student
from pelangi.models.user import User
from pelangi.services import access
from pelangi.services.attendance import student_attendance
from pelangi.services.grades import create_grade, list_grades, student_grades


def login(client, email: str, password: str = "password123") -> str:
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_teacher_without_assignment_row_is_denied_grades(db, seed):
    guru2 = db.get(User, seed["guru2"])
    with pytest.raises(ForbiddenError):
        list_grades(db, guru2, seed["class_7a"], seed["mtk"])


def test_admin_reads_grades_without_any_assignment_row(db, seed):
    admin = db.get(User, seed["admin"])
    assert list_grades(db, admin, seed["class_7a"], seed["mtk"]) == []


def test_teacher_with_assignment_row_reads_grades(db, seed):
    guru1 = db.get(User, seed["guru1"])
    create_grade(
        db,
        actor=guru1,
        student_id=seed["students"][0],
        class_id=seed["class_7a"],
        subject_id=seed["mtk"],
        grade_type="UTS",
        score=85,
        date=date(2026, 3, 2),
    )
    rows = list_grades(db, guru1, seed["class_7a"], seed["mtk"])
    assert len(rows) == 1
    assert rows[0].score == 85


def test_inactive_teacher_assignment_does_not_grant_access(db, seed):
    guru1 = db.get(User, seed["guru1"])
    for row in guru1.teaching_assignments:
        row.is_active = False
    db.commit()

    assert not access.can_access_class(db, guru1, seed["class_7a"])
    assert not access.can_access_subject(db, guru1, seed["class_7a"], seed["mtk"])


def test_grades_endpoint_returns_403_not_404(client, seed):
    token = login(client, "guru2@pelangi.sch.id")
    r = client.get(
        "/grades",
        params={"class_id": seed["class_7a"], "subject_id": seed["mtk"]},
        headers=auth_header(token),
    )
    assert r.status_code == 403, r.text
    assert r.json()["success"] is False


def test_student_reads_own_grades_only(db, seed):
    siswa = db.get(User, seed["siswa"])
    own, other = seed["students"][0], seed["students"][1]

    assert student_grades(db, siswa, own) == []
    with pytest.raises(ForbiddenError):
        student_grades(db, siswa, other)


def test_student_record_access_for_teachers(db, seed):
    student = db.get(Student, seed["students"][2])
    access.require_student_record_access(db, db.get(User, seed["guru1"]), student, seed["mtk"])
    access.require_student_record_access(db, db.get(User, seed["admin"]), student)
    with pytest.raises(ForbiddenError):
        access.require_student_record_access(db, db.get(User, seed["guru2"]), student)


def test_assignment_ownership_policies(db, seed):
    assignment = db.get(Assignment, seed["assignment"])
    admin = db.get(User, seed["admin"])
    guru1 = db.get(User, seed["guru1"])
    guru2 = db.get(User, seed["guru2"])

    access.require_assignment_owner(guru1, assignment, access.AssignmentOwnership.OWNER_ONLY)
    with pytest.raises(ForbiddenError):
        access.require_assignment_owner(admin, assignment, access.AssignmentOwnership.OWNER_ONLY)
    access.require_assignment_owner(admin, assignment, access.AssignmentOwnership.OWNER_OR_ADMIN)

    # the admin bypass never extends to other teachers
    with pytest.raises(ForbiddenError):
        access.require_assignment_owner(guru2, assignment, access.AssignmentOwnership.OWNER_OR_ADMIN)


def test_user_permissions(db, seed):
    admin_perms = access.get_user_permissions(db, db.get(User, seed["admin"]))
    assert admin_perms.can_view_all_subjects
    assert admin_perms.allowed_classes == []

    guru_perms = access.get_user_permissions(db, db.get(User, seed["guru1"]))
    assert not guru_perms.can_view_all_subjects
    assert guru_perms.can_grade_assignments
    assert guru_perms.allowed_classes == [seed["class_7a"]]
    assert guru_perms.allowed_subjects == [seed["mtk"]]

    siswa_perms = access.get_user_permissions(db, db.get(User, seed["siswa"]))
    assert not siswa_perms.can_create_assignments


def test_accessible_content(db, seed):
    content = access.accessible_content(db, db.get(User, seed["guru1"]))
    assert len(content) == 1
    assert content[0]["name"] == "7A"
    assert content[0]["student_count"] == 5
    assert [s["code"] for s in content[0]["subjects"]] == ["MTK"]

    assert access.accessible_content(db, db.get(User, seed["guru2"])) == []


@pytest.mark.parametrize("lookup", [student_grades, student_attendance])
def test_unknown_student_looks_like_an_out_of_scope_one(db, seed, lookup):
    guru2 = db.get(User, seed["guru2"])
    siswa = db.get(User, seed["siswa"])

    for user in (guru2, siswa):
        with pytest.raises(ForbiddenError):
            lookup(db, user, seed["students"][1])
        with pytest.raises(ForbiddenError):
            lookup(db, user, 99999)

    with pytest.raises(NotFoundError):
        lookup(db, db.get(User, seed["admin"]), 99999)


@pytest.mark.parametrize("path", ["grades", "attendance", "xp", "badges"])
def test_student_record_endpoints_do_not_reveal_unknown_ids(client, seed, path):
    teacher = auth_header(login(client, "guru2@pelangi.sch.id"))
    admin = auth_header(login(client, "admin@pelangi.sch.id"))

    assert client.get(f"/students/{seed['students'][0]}/{path}", headers=teacher).status_code == 403
    assert client.get(f"/students/99999/{path}", headers=teacher).status_code == 403
    assert client.get(f"/students/99999/{path}", headers=admin).status_code == 404


def test_grade_entry_treats_unknown_and_foreign_students_alike(db, seed):
    guru1 = db.get(User, seed["guru1"])
    outsider = Student(student_id="0055555555", full_name="Siswa Luar")
    db.add(outsider)
    db.commit()

    for student_id in (outsider.id, 99999):
        with pytest.raises(ValidationError) as exc:
            create_grade(
                db,
                actor=guru1,
                student_id=student_id,
                class_id=seed["class_7a"],
                subject_id=seed["mtk"],
                grade_type="UTS",
                score=70,
                date=date(2026, 3, 2),
            )
        assert exc.value.field == "student_id"

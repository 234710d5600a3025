from datetime import datetime, timedelta, timezone

import pytest

from pelangi.core.clock import as_utc
from pelangi.core.errors import ForbiddenError, NotFoundError, ValidationError
from pelangi.models.assignment import Assignment, AssignmentStatus
from pelangi.models.student import Student, StudentStatus
from pelangi.models.submission import AssignmentSubmission, SubmissionStatus
from pelangi.models.user import User
from pelangi.services import assignments
from pelangi.services.access import AssignmentOwnership


def login(client, email: str, password: str = "password123") -> str:
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _tomorrow() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=1)


def test_create_provisions_one_row_per_active_student(db, seed):
    inactive = db.get(Student, seed["students"][4])
    inactive.status = StudentStatus.INACTIVE
    db.commit()

    a = assignments.create_assignment(
        db,
        teacher=db.get(User, seed["guru1"]),
        class_id=seed["class_7a"],
        title="PR Aljabar",
        deadline=_tomorrow(),
        status=AssignmentStatus.PUBLISHED,
    )
    assert a.points == 100
    rows = db.query(AssignmentSubmission).filter(AssignmentSubmission.assignment_id == a.id).all()
    assert len(rows) == 4
    assert {r.status for r in rows} == {SubmissionStatus.NOT_SUBMITTED}


def test_students_added_later_get_no_row(db, seed):
    a = assignments.create_assignment(
        db,
        teacher=db.get(User, seed["guru1"]),
        class_id=seed["class_7a"],
        title="PR Geometri",
        deadline=_tomorrow(),
    )
    db.add(Student(student_id="0088888888", full_name="Siswa Pindahan", class_id=seed["class_7a"]))
    db.commit()

    count = db.query(AssignmentSubmission).filter(AssignmentSubmission.assignment_id == a.id).count()
    assert count == 5


def test_create_requires_class_access(db, seed):
    with pytest.raises(ForbiddenError):
        assignments.create_assignment(
            db,
            teacher=db.get(User, seed["guru2"]),
            class_id=seed["class_7a"],
            title="Tidak boleh",
            deadline=_tomorrow(),
        )


def test_admin_creates_without_class_access(db, seed):
    a = assignments.create_assignment(
        db,
        teacher=db.get(User, seed["admin"]),
        class_id=seed["class_7a"],
        title="Ujian Bersama",
        deadline=_tomorrow(),
        points=50,
    )
    assert a.teacher_id == seed["admin"]


def test_create_validates_points_and_class(db, seed):
    guru1 = db.get(User, seed["guru1"])
    with pytest.raises(ValidationError):
        assignments.create_assignment(
            db, teacher=guru1, class_id=seed["class_7a"], title="X", deadline=_tomorrow(), points=0
        )
    with pytest.raises(NotFoundError):
        assignments.create_assignment(
            db, teacher=db.get(User, seed["admin"]), class_id=999, title="X", deadline=_tomorrow()
        )


@pytest.mark.parametrize("teacher", ["guru1", "guru2"])
def test_unknown_class_is_forbidden_for_teachers(db, seed, teacher):
    with pytest.raises(ForbiddenError):
        assignments.create_assignment(
            db, teacher=db.get(User, seed[teacher]), class_id=999, title="X", deadline=_tomorrow()
        )


def test_other_teacher_cannot_read_or_edit(client, seed):
    token = login(client, "guru2@pelangi.sch.id")
    aid = seed["assignment"]

    assert client.get(f"/assignments/{aid}", headers=auth_header(token)).status_code == 403
    r = client.put(f"/assignments/{aid}", headers=auth_header(token), json={"title": "x"})
    assert r.status_code == 403
    assert client.delete(f"/assignments/{aid}", headers=auth_header(token)).status_code == 403


def test_list_is_isolated_by_owner(client, seed):
    mine = client.get("/assignments", headers=auth_header(login(client, "guru1@pelangi.sch.id")))
    assert mine.status_code == 200
    rows = mine.json()["data"]
    assert len(rows) == 1
    assert rows[0]["display_status"] == "active"
    assert rows[0]["total_students"] == 5
    assert rows[0]["submitted"] == 0

    other = client.get("/assignments", headers=auth_header(login(client, "guru2@pelangi.sch.id")))
    assert other.json()["data"] == []


def test_admin_sees_all_only_under_owner_or_admin(db, seed):
    admin = db.get(User, seed["admin"])
    assert assignments.list_assignments(db, admin) == []

    rows = assignments.list_assignments(db, admin, policy=AssignmentOwnership.OWNER_OR_ADMIN)
    assert len(rows) == 1


def test_display_status_overdue_and_completed(db, seed):
    guru1 = db.get(User, seed["guru1"])
    a = db.get(Assignment, seed["assignment"])
    later = datetime.now(timezone.utc) + timedelta(days=3)

    [row] = assignments.list_assignments(db, guru1, now=later)
    assert row["display_status"] == "overdue"

    a.status = AssignmentStatus.CLOSED
    db.commit()
    [row] = assignments.list_assignments(db, guru1)
    assert row["display_status"] == "completed"


def test_list_filters(db, seed):
    guru1 = db.get(User, seed["guru1"])
    assert len(assignments.list_assignments(db, guru1, search="pecahan")) == 1
    assert assignments.list_assignments(db, guru1, search="biologi") == []
    assert assignments.list_assignments(db, guru1, status=AssignmentStatus.DRAFT) == []


def test_stats(client, seed):
    token = login(client, "guru1@pelangi.sch.id")
    r = client.get("/assignments/stats", headers=auth_header(token))
    assert r.status_code == 200
    stats = r.json()["data"]
    assert stats["total"] == 1
    assert stats["active"] == 1
    assert stats["overdue"] == 0
    assert stats["this_week"] == 1
    assert stats["average_points"] == 100


def test_stats_deadline_windows(db, seed):
    guru1 = db.get(User, seed["guru1"])
    due = as_utc(db.get(Assignment, seed["assignment"]).deadline)

    at_deadline = assignments.assignment_stats(db, guru1, now=due)
    assert at_deadline["active"] == 0
    assert at_deadline["overdue"] == 1
    assert at_deadline["this_week"] == 1

    week_out = assignments.assignment_stats(db, guru1, now=due - timedelta(days=7))
    assert week_out["active"] == 1
    assert week_out["this_week"] == 1

    too_early = assignments.assignment_stats(db, guru1, now=due - timedelta(days=8))
    assert too_early["this_week"] == 0

    past = assignments.assignment_stats(db, guru1, now=due + timedelta(seconds=1))
    assert past["this_week"] == 0


def test_stats_this_week_counts_drafts_by_deadline(db, seed):
    guru1 = db.get(User, seed["guru1"])
    assignments.create_assignment(
        db,
        teacher=guru1,
        class_id=seed["class_7a"],
        title="Draf Minggu Depan",
        deadline=datetime.now(timezone.utc) + timedelta(days=3),
    )
    assignments.create_assignment(
        db,
        teacher=guru1,
        class_id=seed["class_7a"],
        title="Draf Bulan Depan",
        deadline=datetime.now(timezone.utc) + timedelta(days=30),
    )

    stats = assignments.assignment_stats(db, guru1)
    assert stats["total"] == 3
    assert stats["draft"] == 2
    assert stats["this_week"] == 2


def test_delete_cascades_submissions(db, seed):
    assignments.delete_assignment(db, seed["assignment"], db.get(User, seed["guru1"]))
    assert db.query(AssignmentSubmission).count() == 0


def test_create_via_http(client, seed):
    token = login(client, "guru1@pelangi.sch.id")
    r = client.post(
        "/assignments",
        headers=auth_header(token),
        json={
            "class_id": seed["class_7a"],
            "title": "Kuis Bilangan",
            "deadline": _tomorrow().isoformat(),
            "type": "QUIZ",
            "status": "PUBLISHED",
        },
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["success"] is True
    assert body["data"]["type"] == "QUIZ"

    subs = client.get(f"/assignments/{body['data']['id']}/submissions", headers=auth_header(token))
    assert len(subs.json()["data"]) == 5


def test_student_cannot_create(client, seed):
    token = login(client, "siswa1@pelangi.sch.id")
    r = client.post(
        "/assignments",
        headers=auth_header(token),
        json={"class_id": seed["class_7a"], "title": "x", "deadline": _tomorrow().isoformat()},
    )
    assert r.status_code == 403

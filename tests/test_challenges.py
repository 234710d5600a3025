from datetime import datetime, timedelta, timezone

import pytest

from pelangi.core.clock import as_utc
from pelangi.core.errors import ConflictError, ForbiddenError, ValidationError
from pelangi.models.challenge import ChallengeParticipant, ParticipantStatus, TargetType
from pelangi.models.gamification import StudentXp
from pelangi.models.student import Student
from pelangi.models.user import User
from pelangi.services import challenges


def login(client, email: str, password: str = "password123") -> str:
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


T0 = datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc)


def _create(db, seed, **overrides):
    kwargs = dict(
        creator=db.get(User, seed["guru1"]),
        title="Baca 10 Buku",
        duration=10,
        target_type=TargetType.ALL_STUDENTS,
        xp_reward=100,
        now=T0,
    )
    kwargs.update(overrides)
    return challenges.create_challenge(db, **kwargs)


def _xp(db, student_id) -> int:
    db.expire_all()
    row = db.query(StudentXp).filter(StudentXp.student_id == student_id).first()
    return row.total_xp if row else 0


def test_create_sets_window(db, seed):
    c = _create(db, seed)
    assert c.is_active
    assert as_utc(c.start_date) == T0
    assert as_utc(c.end_date) == T0 + timedelta(days=10)


@pytest.mark.parametrize(
    "field,value",
    [("duration", 0), ("duration", 366), ("xp_reward", 0), ("xp_reward", 1001), ("target_type", "GRADE_12")],
)
def test_create_validates_ranges(db, seed, field, value):
    with pytest.raises(ValidationError) as exc:
        _create(db, seed, **{field: value})
    assert exc.value.field == field


def test_duration_change_recomputes_from_original_start(db, seed):
    c = _create(db, seed)
    updated = challenges.update_challenge(db, c.id, db.get(User, seed["guru1"]), duration=20)
    assert as_utc(updated.start_date) == T0
    assert as_utc(updated.end_date) == T0 + timedelta(days=20)


def test_only_creator_or_admin_may_update(db, seed):
    c = _create(db, seed)
    with pytest.raises(ForbiddenError):
        challenges.update_challenge(db, c.id, db.get(User, seed["guru2"]), title="x")
    challenges.update_challenge(db, c.id, db.get(User, seed["admin"]), title="Baca 12 Buku")


def test_delete_with_participants_is_conflict(db, seed):
    c = _create(db, seed, now=None)
    challenges.join_challenge(db, c.id, db.get(Student, seed["students"][0]))

    with pytest.raises(ConflictError):
        challenges.delete_challenge(db, c.id, db.get(User, seed["guru1"]))

    empty = _create(db, seed, title="Kosong")
    challenges.delete_challenge(db, empty.id, db.get(User, seed["guru1"]))


def test_join_rules(db, seed):
    student = db.get(Student, seed["students"][0])

    grade8 = _create(db, seed, target_type=TargetType.GRADE_8, now=None)
    with pytest.raises(ForbiddenError):
        challenges.join_challenge(db, grade8.id, student)

    grade7 = _create(db, seed, target_type=TargetType.GRADE_7, now=None)
    challenges.join_challenge(db, grade7.id, student)
    with pytest.raises(ConflictError):
        challenges.join_challenge(db, grade7.id, student)

    expired = _create(db, seed, now=datetime.now(timezone.utc) - timedelta(days=30))
    with pytest.raises(ConflictError):
        challenges.join_challenge(db, expired.id, student)


def test_status_transitions(db, seed):
    c = _create(db, seed)
    assert challenges.challenge_status(c, T0 + timedelta(days=1)) is challenges.ChallengeStatus.ACTIVE
    assert challenges.challenge_status(c, T0 + timedelta(days=11)) is challenges.ChallengeStatus.EXPIRED
    c.is_active = False
    assert challenges.challenge_status(c, T0) is challenges.ChallengeStatus.INACTIVE


def test_mark_completed_grants_once(db, seed):
    sid = seed["students"][0]
    guru1 = db.get(User, seed["guru1"])
    c = _create(db, seed, now=None)
    p = challenges.join_challenge(db, c.id, db.get(Student, sid))

    done = challenges.mark_completed(db, p.id, guru1)
    assert done.status == ParticipantStatus.COMPLETED
    assert done.xp_awarded == 100
    assert _xp(db, sid) == 100

    with pytest.raises(ConflictError):
        challenges.mark_completed(db, p.id, guru1)
    assert _xp(db, sid) == 100


def test_complete_bulk_waits_for_deadline(db, seed):
    c = _create(db, seed)
    with pytest.raises(ConflictError):
        challenges.complete_bulk(db, c.id, db.get(User, seed["guru1"]), now=T0 + timedelta(days=2))


def test_complete_bulk_finalises_joined_only(db, seed):
    guru1 = db.get(User, seed["guru1"])
    c = _create(db, seed)
    enrolled = challenges.enroll_targets(db, c.id, guru1)
    assert enrolled == 5

    first = (
        db.query(ChallengeParticipant)
        .filter(ChallengeParticipant.challenge_id == c.id)
        .order_by(ChallengeParticipant.id)
        .first()
    )
    challenges.mark_completed(db, first.id, guru1)

    after = T0 + timedelta(days=10)
    result = challenges.complete_bulk(db, c.id, guru1, now=after)
    assert result.as_dict() == {"successful": 4, "failed": 0, "total": 4}

    for sid in seed["students"]:
        assert _xp(db, sid) == 100

    # re-finalising is a no-op and grants nothing
    again = challenges.complete_bulk(db, c.id, guru1, now=after)
    assert again.as_dict() == {"successful": 0, "failed": 0, "total": 0}
    assert _xp(db, seed["students"][0]) == 100


def test_complete_bulk_force_before_deadline(db, seed):
    guru1 = db.get(User, seed["guru1"])
    c = _create(db, seed)
    challenges.enroll_targets(db, c.id, guru1)

    result = challenges.complete_bulk(db, c.id, guru1, now=T0, force=True)
    assert result.successful == 5


def test_complete_bulk_survives_one_failed_grant(db, seed, monkeypatch):
    guru1 = db.get(User, seed["guru1"])
    c = _create(db, seed)
    challenges.enroll_targets(db, c.id, guru1)
    unlucky = seed["students"][2]

    real_grant = challenges.grant_xp

    def flaky_grant(db, student_id, amount, **kwargs):
        if student_id == unlucky:
            raise RuntimeError("xp store unavailable")
        return real_grant(db, student_id, amount, **kwargs)

    monkeypatch.setattr(challenges, "grant_xp", flaky_grant)
    result = challenges.complete_bulk(db, c.id, guru1, now=T0 + timedelta(days=10))
    assert result.as_dict() == {"successful": 4, "failed": 1, "total": 5}

    db.expire_all()
    stuck = (
        db.query(ChallengeParticipant)
        .filter(ChallengeParticipant.challenge_id == c.id, ChallengeParticipant.student_id == unlucky)
        .one()
    )
    assert stuck.status == ParticipantStatus.JOINED
    assert stuck.xp_awarded == 0
    assert stuck.completed_at is None
    assert _xp(db, unlucky) == 0
    for sid in seed["students"]:
        if sid != unlucky:
            assert _xp(db, sid) == 100


def test_enroll_targets_by_grade(db, seed):
    guru1 = db.get(User, seed["guru1"])
    c = _create(db, seed, target_type=TargetType.GRADE_9)
    assert challenges.enroll_targets(db, c.id, guru1) == 0


def test_student_challenge_flow_over_http(client, seed):
    teacher = auth_header(login(client, "guru1@pelangi.sch.id"))
    student = auth_header(login(client, "siswa1@pelangi.sch.id"))

    r = client.post(
        "/challenges",
        headers=teacher,
        json={"title": "Hafalan", "duration": 7, "target_type": "GRADE_7", "xp_reward": 30},
    )
    assert r.status_code == 201, r.text
    cid = r.json()["data"]["id"]

    r = client.post(f"/challenges/{cid}/join", headers=student)
    assert r.status_code == 201, r.text
    pid = r.json()["data"]["id"]

    mine = client.get("/challenges/me", headers=student).json()["data"]
    assert mine[0]["participation_status"] == "JOINED"
    assert mine[0]["status"] == "ACTIVE"

    r = client.post(f"/challenges/participants/{pid}/complete", headers=teacher)
    assert r.status_code == 200
    assert r.json()["data"]["xp_awarded"] == 30

    r = client.post(f"/challenges/participants/{pid}/complete", headers=teacher)
    assert r.status_code == 409

    r = client.delete(f"/challenges/{cid}", headers=teacher)
    assert r.status_code == 409

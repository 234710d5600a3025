import pytest

from pelangi.core.errors import ConflictError, ValidationError
from pelangi.models.gamification import Badge, StudentBadge, StudentXp
from pelangi.models.user import User
from pelangi.services import badges


def login(client, email: str, password: str = "password123") -> str:
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _badge(db, name="Rajin", xp_reward=25):
    return badges.create_badge(db, name=name, description="Selalu tepat waktu", icon="star", xp_reward=xp_reward)


def _xp(db, student_id) -> int:
    db.expire_all()
    row = db.query(StudentXp).filter(StudentXp.student_id == student_id).first()
    return row.total_xp if row else 0


def test_create_badge_rules(db, seed):
    _badge(db)
    with pytest.raises(ConflictError):
        _badge(db)
    with pytest.raises(ValidationError) as exc:
        _badge(db, name="Lain", xp_reward=0)
    assert exc.value.field == "xp_reward"


def test_award_grants_xp_once(db, seed):
    sid = seed["students"][1]
    badge = _badge(db)
    guru1 = db.get(User, seed["guru1"])

    award = badges.award_badge(db, badge_id=badge.id, student_id=sid, awarded_by=guru1, reason="PR lengkap")
    assert award.awarded_by == guru1.id
    assert _xp(db, sid) == 25

    with pytest.raises(ConflictError):
        badges.award_badge(db, badge_id=badge.id, student_id=sid, awarded_by=guru1)
    assert _xp(db, sid) == 25


def test_inactive_badge_cannot_be_awarded(db, seed):
    badge = _badge(db)
    badges.update_badge(db, badge.id, is_active=False)
    with pytest.raises(ConflictError):
        badges.award_badge(
            db, badge_id=badge.id, student_id=seed["students"][0], awarded_by=db.get(User, seed["guru1"])
        )


def test_unawarded_badge_can_be_deleted(db, seed):
    badge = _badge(db)
    badges.delete_badge(db, badge.id)
    assert db.get(Badge, badge.id) is None


def test_awarded_badge_cannot_be_deleted(db, seed):
    badge = _badge(db)
    badges.award_badge(
        db, badge_id=badge.id, student_id=seed["students"][0], awarded_by=db.get(User, seed["guru1"])
    )

    with pytest.raises(ConflictError):
        badges.delete_badge(db, badge.id)

    db.expire_all()
    assert db.get(Badge, badge.id) is not None
    assert db.query(StudentBadge).filter(StudentBadge.badge_id == badge.id).count() == 1


def test_badge_endpoints(client, seed):
    teacher = auth_header(login(client, "guru1@pelangi.sch.id"))
    student = auth_header(login(client, "siswa1@pelangi.sch.id"))
    payload = {"name": "Juara Kelas", "description": "Nilai tertinggi", "icon": "trophy", "xp_reward": 100}

    assert client.post("/gamification/badges", headers=student, json=payload).status_code == 403

    r = client.post("/gamification/badges", headers=teacher, json=payload)
    assert r.status_code == 201, r.text
    bid = r.json()["data"]["id"]

    r = client.post(
        f"/gamification/badges/{bid}/award",
        headers=teacher,
        json={"student_id": seed["students"][0]},
    )
    assert r.status_code == 201, r.text
    assert r.json()["data"]["badge"]["name"] == "Juara Kelas"

    mine = client.get(f"/students/{seed['students'][0]}/badges", headers=student)
    assert mine.status_code == 200
    assert len(mine.json()["data"]) == 1

    assert client.delete(f"/gamification/badges/{bid}", headers=teacher).status_code == 409

import pytest

from pelangi.core.errors import ConflictError, ValidationError
from pelangi.models.gamification import Level
from pelangi.services import levels


def login(client, email: str, password: str = "password123") -> str:
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_default_levels_are_seeded_once(db, seed):
    rows = levels.list_levels(db)
    assert [r.level for r in rows] == list(range(1, 11))
    assert rows[0].xp_required == 0
    assert rows[-1].xp_required == 5500

    assert levels.seed_default_levels(db) == 0


def test_create_level_above_top(db, seed):
    row = levels.create_level(db, level=11, name="Celestial", xp_required=6000, benefits=None)
    assert row.level == 11

    with pytest.raises(ConflictError):
        levels.create_level(db, level=11, name="Lagi", xp_required=7000, benefits=None)


@pytest.mark.parametrize("level,xp_required", [(11, 5000), (12, -5)])
def test_create_level_keeps_thresholds_ordered(db, seed, level, xp_required):
    with pytest.raises(ValidationError) as exc:
        levels.create_level(db, level=level, name="X", xp_required=xp_required, benefits=None)
    assert exc.value.field == "xp_required"


def test_first_level_starts_at_zero(db, seed):
    db.query(Level).filter(Level.level == 1).delete()
    db.commit()

    with pytest.raises(ValidationError):
        levels.create_level(db, level=1, name="Pemula", xp_required=10, benefits=None)
    levels.create_level(db, level=1, name="Pemula", xp_required=0, benefits=None)


def test_update_level_threshold_between_neighbours(db, seed):
    lvl3 = db.query(Level).filter(Level.level == 3).one()
    levels.update_level(db, lvl3.id, xp_required=350)

    with pytest.raises(ValidationError):
        levels.update_level(db, lvl3.id, xp_required=700)


def test_system_levels_cannot_be_deleted(db, seed):
    lvl5 = db.query(Level).filter(Level.level == 5).one()
    with pytest.raises(ConflictError):
        levels.delete_level(db, lvl5.id)

    extra = levels.create_level(db, level=11, name="Celestial", xp_required=6000, benefits=None)
    levels.delete_level(db, extra.id)
    assert db.get(Level, extra.id) is None


def test_level_endpoints_are_admin_only(client, seed):
    teacher = auth_header(login(client, "guru1@pelangi.sch.id"))
    admin = auth_header(login(client, "admin@pelangi.sch.id"))
    payload = {"level": 11, "name": "Celestial", "xp_required": 6000}

    assert client.get("/gamification/levels", headers=teacher).status_code == 200
    assert client.post("/gamification/levels", headers=teacher, json=payload).status_code == 403

    r = client.post("/gamification/levels", headers=admin, json=payload)
    assert r.status_code == 201, r.text
    assert r.json()["data"]["is_active"] is True

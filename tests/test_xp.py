import math

import pytest

from pelangi.core.errors import InternalError, NotFoundError, ValidationError
from pelangi.models.gamification import Level, StudentXp
from pelangi.services import xp


def _levels(db):
    return xp.active_levels(db)


def test_compute_level_at_zero_is_level_one(db):
    progress = xp.compute_level(_levels(db), 0)
    assert progress.level == 1
    assert progress.name == "Pemula"
    assert progress.progress_to_next_level == 0


def test_compute_level_picks_highest_reached(db):
    levels = _levels(db)
    assert xp.compute_level(levels, 99).level == 1
    assert xp.compute_level(levels, 100).level == 2
    assert xp.compute_level(levels, 599).level == 3
    assert xp.compute_level(levels, 600).name == "Ahli"


def test_progress_is_percentage_of_current_span(db):
    # level 2 spans 100..300
    progress = xp.compute_level(_levels(db), 150)
    assert progress.level == 2
    assert progress.next_level_xp == 300
    assert progress.progress_to_next_level == 25.0


def test_progress_is_100_at_max_level(db):
    progress = xp.compute_level(_levels(db), 10_000)
    assert progress.level == 10
    assert progress.next_level_xp is None
    assert progress.progress_to_next_level == 100.0


def test_misconfigured_level_table_is_internal_error(db):
    db.query(Level).filter(Level.xp_required == 0).delete()
    db.commit()

    with pytest.raises(InternalError):
        xp.compute_level(_levels(db), 50)

    with pytest.raises(InternalError):
        xp.compute_level([], 0)


@pytest.mark.parametrize(
    "score,points,expected",
    [
        (90, 100, 50),
        (80, 100, 40),
        (70, 100, 30),
        (60, 100, 20),
        (55, 100, 10),
        (40, 100, 0),
        (45, 50, 50),
    ],
)
def test_xp_for_score_tiers(score, points, expected):
    assert xp.xp_for_score(score, points) == expected


def test_grant_creates_then_increments(db, seed):
    sid = seed["students"][0]

    row = xp.grant_xp(db, sid, 40)
    db.commit()
    assert row.total_xp == 40
    assert row.level == 1

    row = xp.grant_xp(db, sid, 70)
    db.commit()
    assert row.total_xp == 110
    assert row.level == 2
    assert row.level_name == "Berkembang"


def test_grant_unknown_student_is_not_found(db):
    with pytest.raises(NotFoundError):
        xp.grant_xp(db, 99999, 10)


@pytest.mark.parametrize("amount", [-1, math.inf, math.nan, 2.5, "10", True])
def test_grant_rejects_bad_amounts(db, seed, amount):
    with pytest.raises(ValidationError):
        xp.grant_xp(db, seed["students"][0], amount)


def test_tagged_changes_reject_negative():
    with pytest.raises(ValidationError):
        xp.XpIncrement(student_id=1, delta=-5)
    with pytest.raises(ValidationError):
        xp.XpCreate(student_id=1, initial=-5)


def test_concurrent_grants_are_both_counted(seed, session_factory):
    sid = seed["students"][0]

    first = session_factory()
    second = session_factory()
    try:
        xp.grant_xp(first, sid, 10)
        first.commit()

        # both sessions load the row before either increments
        stale_a = first.query(StudentXp).filter(StudentXp.student_id == sid).one()
        stale_b = second.query(StudentXp).filter(StudentXp.student_id == sid).one()
        assert stale_a.total_xp == stale_b.total_xp == 10

        xp.grant_xp(first, sid, 20)
        first.commit()
        xp.grant_xp(second, sid, 30)
        second.commit()
    finally:
        first.close()
        second.close()

    check = session_factory()
    try:
        row = check.query(StudentXp).filter(StudentXp.student_id == sid).one()
        assert row.total_xp == 60
    finally:
        check.close()


def test_leaderboard_orders_by_xp_then_name(db, seed):
    a, b, c = seed["students"][:3]
    xp.grant_xp(db, b, 200)
    xp.grant_xp(db, c, 200)
    xp.grant_xp(db, a, 50)
    db.commit()

    rows = xp.leaderboard(db, class_id=seed["class_7a"])
    assert [r["rank"] for r in rows] == [1, 2, 3, 4, 5]
    # equal XP falls back to full name: "Siswa Dua" < "Siswa Tiga"
    assert [r["student_id"] for r in rows[:3]] == [b, c, a]
    assert rows[0]["level_name"] == "Berkembang"
    # students without an XP row still rank, with 0
    assert rows[-1]["total_xp"] == 0


def test_get_student_xp_reports_progress(db, seed):
    sid = seed["students"][0]
    xp.grant_xp(db, sid, 200)
    db.commit()

    data = xp.get_student_xp(db, sid)
    assert data["total_xp"] == 200
    assert data["level"] == 2
    assert data["progress_to_next_level"] == 50.0

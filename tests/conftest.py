import os
from datetime import datetime, timedelta, timezone

TEST_DB_FILE = "test_pelangi.db"
TEST_DB_URL = f"sqlite:///./{TEST_DB_FILE}"

# must be set before pelangi.core.config is imported
os.environ["PELANGI_DATABASE_URL"] = TEST_DB_URL
os.environ["PELANGI_BCRYPT_ROUNDS"] = "4"
os.environ["PELANGI_ASSIGNMENT_OWNERSHIP"] = "owner_only"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from pelangi.core.deps import get_db  # noqa: E402
from pelangi.core.security import hash_password  # noqa: E402
from pelangi.db.base import Base  # noqa: E402
from pelangi.main import app  # noqa: E402
from pelangi.models.assignment import Assignment, AssignmentStatus  # noqa: E402
from pelangi.models.classroom import (  # noqa: E402
    ClassSubject,
    ClassTeacherSubject,
    SchoolClass,
    Subject,
)
from pelangi.models.student import Student  # noqa: E402
from pelangi.models.submission import AssignmentSubmission, SubmissionStatus  # noqa: E402
from pelangi.models.user import Role, User  # noqa: E402
from pelangi.services.levels import seed_default_levels  # noqa: E402

PASSWORD = "password123"

engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

_hashed = hash_password(PASSWORD)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def cleanup_test_db():
    yield
    engine.dispose()
    if os.path.exists(TEST_DB_FILE):
        os.remove(TEST_DB_FILE)


@pytest.fixture(autouse=True)
def seed():
    """
    Fresh schema and a minimal school for each test:

    * admin, guru1 (teaches MTK in 7A), guru2 (teaches nothing), siswa
    * class 7A (grade 7) with five active students; the first is linked to siswa
    * subject MTK attached to 7A
    * a PUBLISHED assignment by guru1 in 7A, due tomorrow, with five
      NOT_SUBMITTED rows
    """
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        seed_default_levels(db)

        admin = User(email="admin@pelangi.sch.id", full_name="Admin", role=Role.ADMIN, hashed_password=_hashed)
        guru1 = User(email="guru1@pelangi.sch.id", full_name="Guru Satu", role=Role.GURU, hashed_password=_hashed)
        guru2 = User(email="guru2@pelangi.sch.id", full_name="Guru Dua", role=Role.GURU, hashed_password=_hashed)
        siswa = User(email="siswa1@pelangi.sch.id", full_name="Siswa Satu", role=Role.SISWA, hashed_password=_hashed)
        db.add_all([admin, guru1, guru2, siswa])
        db.commit()

        c7a = SchoolClass(name="7A", grade_level=7)
        mtk = Subject(name="Matematika", code="MTK")
        db.add_all([c7a, mtk])
        db.commit()

        students = [
            Student(
                student_id=f"00{i:08d}",
                full_name=f"Siswa {name}",
                class_id=c7a.id,
                user_id=siswa.id if i == 1 else None,
            )
            for i, name in enumerate(["Satu", "Dua", "Tiga", "Empat", "Lima"], start=1)
        ]
        db.add_all(students)
        db.add(ClassSubject(class_id=c7a.id, subject_id=mtk.id))
        db.add(ClassTeacherSubject(class_id=c7a.id, teacher_id=guru1.id, subject_id=mtk.id))
        db.commit()

        assignment = Assignment(
            teacher_id=guru1.id,
            class_id=c7a.id,
            title="Latihan Pecahan",
            points=100,
            deadline=datetime.now(timezone.utc) + timedelta(days=1),
            status=AssignmentStatus.PUBLISHED,
        )
        db.add(assignment)
        db.flush()
        for s in students:
            db.add(
                AssignmentSubmission(
                    assignment_id=assignment.id,
                    student_id=s.id,
                    status=SubmissionStatus.NOT_SUBMITTED,
                )
            )
        db.commit()

        ids = {
            "admin": admin.id,
            "guru1": guru1.id,
            "guru2": guru2.id,
            "siswa": siswa.id,
            "class_7a": c7a.id,
            "mtk": mtk.id,
            "students": [s.id for s in students],
            "assignment": assignment.id,
        }
    finally:
        db.close()

    yield ids


@pytest.fixture()
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client():
    """Test client that uses the test DB session via dependency override."""
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def session_factory():
    """For tests that need more than one independent session."""
    return TestingSessionLocal

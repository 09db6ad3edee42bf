import os

# Settings are read once at import time; configure before importing the app.
os.environ.setdefault("QR_TOKEN_SECRET", "test-qr-secret")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ["AUTO_CREATE_SCHEMA"] = "true"

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

import placement_portal.db.database as database
import placement_portal.main as main
from placement_portal.core.auth import create_access_token
from placement_portal.db.schema import (
    applications,
    create_schema,
    job_rounds,
    jobs,
    round_attendance,
    round_sessions,
    students,
    users,
)
from placement_portal.services.qr_token_service import QRTokenCodec

TEST_SECRET = os.environ["QR_TOKEN_SECRET"]


class Seeder:
    """Inserts rows directly, bypassing the admin CRUD endpoints."""

    def __init__(self):
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def _insert(self, table, **values) -> int:
        with database.get_db_session() as db:
            return db.execute(table.insert().values(**values)).inserted_primary_key[0]

    def admin(self, email: str = "admin@college.edu") -> int:
        return self._insert(users, email=email, password_hash="!", role="admin", is_active=True)

    def student(self, name: str = "Asha Rao", kyc_status: str = "VERIFIED", usn: str = "1XX21CS001") -> dict:
        email = f"{name.lower().replace(' ', '.')}.{usn.lower()}@college.edu"
        user_id = self._insert(users, email=email, password_hash="!", role="student", is_active=True)
        student_id = self._insert(
            students, user_id=user_id, full_name=name, usn=usn, branch="CSE", kyc_status=kyc_status
        )
        return {"user_id": user_id, "student_id": student_id, "email": email}

    def job(self, title: str = "Graduate Engineer", company: str = "Acme Systems") -> int:
        return self._insert(jobs, title=title, company_name=company, status="open")

    def application(self, student_id: int, job_id: int, status: str = "applied") -> int:
        return self._insert(applications, student_id=student_id, job_id=job_id, status=status)

    def round(self, job_id: int, name: str, order: int, is_removed: bool = False) -> int:
        return self._insert(job_rounds, job_id=job_id, name=name, round_order=order, is_removed=is_removed)

    def session(self, job_id: int, round_id: int, status: str = "ACTIVE", created_by: int = None) -> int:
        now = self._tick()
        return self._insert(
            round_sessions,
            job_id=job_id,
            round_id=round_id,
            status=status,
            started_at=now,
            created_at=now,
            created_by=created_by,
        )

    def attendance(self, student_id, job_id, round_id, session_id, admin_id, status="ATTENDED") -> int:
        return self._insert(
            round_attendance,
            student_id=student_id,
            job_id=job_id,
            round_id=round_id,
            session_id=session_id,
            marked_by_admin_id=admin_id,
            status=status,
            marked_at=self._tick(),
        )

    def set_session_status(self, session_id: int, status: str) -> None:
        with database.get_db_session() as db:
            db.execute(
                round_sessions.update().where(round_sessions.c.session_id == session_id).values(status=status)
            )

    def set_application_status(self, application_id: int, status: str) -> None:
        with database.get_db_session() as db:
            db.execute(
                applications.update()
                .where(applications.c.application_id == application_id)
                .values(status=status)
            )

    def attendance_count(self, student_id: int, round_id: int) -> int:
        with database.get_db_session() as db:
            return len(
                db.execute(
                    round_attendance.select().where(
                        round_attendance.c.student_id == student_id,
                        round_attendance.c.round_id == round_id,
                    )
                ).all()
            )

    @staticmethod
    def headers(user_id: int, role: str) -> dict:
        token = create_access_token({"sub": str(user_id), "role": role})
        return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def db_engine(tmp_path):
    # Point the engine at a temp SQLite file for isolation.
    engine = database.init_engine(f"sqlite:///{tmp_path / 'placement_test.db'}")
    create_schema()
    yield engine
    engine.dispose()


@pytest.fixture()
def seed(db_engine):
    return Seeder()


@pytest.fixture()
def client(db_engine):
    with TestClient(main.app) as c:
        yield c


@pytest.fixture()
def codec():
    return QRTokenCodec(TEST_SECRET)


@pytest.fixture()
def drive(seed):
    """A job with two rounds, an admin and one verified applicant."""
    admin_id = seed.admin()
    student = seed.student()
    job_id = seed.job()
    application_id = seed.application(student["student_id"], job_id)
    round1 = seed.round(job_id, "Aptitude Test", 1)
    round2 = seed.round(job_id, "Technical Interview", 2)
    return {
        "admin_id": admin_id,
        "student": student,
        "student_id": student["student_id"],
        "job_id": job_id,
        "application_id": application_id,
        "round1": round1,
        "round2": round2,
    }

"""
Relational schema for the placement portal.

Tables:
- users, students          - identity, role and KYC state
- jobs, applications       - who is in a job's applicant pool
- job_rounds               - ordered interview rounds of a job
- round_sessions           - check-in windows opened for a round
- round_attendance         - one row per (student, round), ever

The UNIQUE constraint on round_attendance(student_id, round_id) is what
serializes concurrent confirmations.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    func,
)

from placement_portal.db.database import get_engine

metadata = MetaData()


users = Table(
    "users",
    metadata,
    Column("user_id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", String(255), nullable=False),
    Column("role", String(20), nullable=False),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

students = Table(
    "students",
    metadata,
    Column("student_id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, unique=True),
    Column("full_name", String(100), nullable=False),
    Column("usn", String(30)),
    Column("branch", String(100)),
    Column("kyc_status", String(20), nullable=False, default="PENDING"),
)

jobs = Table(
    "jobs",
    metadata,
    Column("job_id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(200), nullable=False),
    Column("company_name", String(200), nullable=False),
    Column("status", String(20), nullable=False, default="open"),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

applications = Table(
    "applications",
    metadata,
    Column("application_id", Integer, primary_key=True, autoincrement=True),
    Column("student_id", Integer, ForeignKey("students.student_id", ondelete="CASCADE"), nullable=False),
    Column("job_id", Integer, ForeignKey("jobs.job_id", ondelete="CASCADE"), nullable=False),
    Column("status", String(20), nullable=False, default="applied"),
    Column("applied_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    UniqueConstraint("student_id", "job_id", name="uq_application_student_job"),
)

job_rounds = Table(
    "job_rounds",
    metadata,
    Column("round_id", Integer, primary_key=True, autoincrement=True),
    Column("job_id", Integer, ForeignKey("jobs.job_id", ondelete="CASCADE"), nullable=False, index=True),
    Column("name", String(100), nullable=False),
    Column("round_order", Integer, nullable=False),
    Column("is_removed", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

round_sessions = Table(
    "round_sessions",
    metadata,
    Column("session_id", Integer, primary_key=True, autoincrement=True),
    Column("job_id", Integer, ForeignKey("jobs.job_id", ondelete="CASCADE"), nullable=False),
    Column("round_id", Integer, ForeignKey("job_rounds.round_id", ondelete="CASCADE"), nullable=False, index=True),
    Column("status", String(20), nullable=False),
    Column("started_at", DateTime(timezone=True), nullable=False),
    Column("ended_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("created_by", Integer, ForeignKey("users.user_id")),
)

round_attendance = Table(
    "round_attendance",
    metadata,
    Column("attendance_id", Integer, primary_key=True, autoincrement=True),
    Column("student_id", Integer, ForeignKey("students.student_id", ondelete="CASCADE"), nullable=False),
    Column("job_id", Integer, ForeignKey("jobs.job_id", ondelete="CASCADE"), nullable=False, index=True),
    Column("round_id", Integer, ForeignKey("job_rounds.round_id", ondelete="CASCADE"), nullable=False),
    Column("session_id", Integer, ForeignKey("round_sessions.session_id"), nullable=False),
    Column("marked_by_admin_id", Integer, ForeignKey("users.user_id"), nullable=False),
    Column("status", String(20), nullable=False),
    Column("marked_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("student_id", "round_id", name="uq_round_attendance_student_round"),
)


def create_schema() -> None:
    """Create all tables that do not exist yet."""
    metadata.create_all(get_engine())


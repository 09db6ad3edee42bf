"""
Attendance Service - round status, QR issuance, scan preview and confirmation.

Flow:
1. Student asks for round status -> gets a fresh QR token for each ACTIVE
   round they are eligible for (build_round_statuses)
2. Admin scans the QR -> token verified, student previewed, nothing written
   (preview_scan)
3. Admin confirms -> AttendanceRecorder re-validates everything against the
   store and writes exactly one round_attendance row (AttendanceRecorder.confirm)

Nothing is cached between requests; every step re-reads the database.
"""

import logging
from math import ceil
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from placement_portal.core.errors import (
    AlreadyRecordedError,
    ApplicationNotFoundError,
    AttendanceRejection,
    KycRequiredError,
    NotEligibleError,
    SessionNotActiveError,
    SessionNotFoundError,
)
from placement_portal.core.logging_config import log_security_event
from placement_portal.db.database import get_db_session
from placement_portal.db.schema import (
    applications,
    job_rounds,
    jobs,
    round_attendance,
    round_sessions,
    students,
    users,
)
from placement_portal.schemas.schemas import (
    ApplicationStatus,
    AttendanceResult,
    KycStatus,
    SessionStatus,
)
from placement_portal.services import eligibility_service
from placement_portal.services.qr_token_service import QRTokenCodec, get_qr_codec
from placement_portal.services.session_service import is_latest_session, latest_sessions, utcnow, window_state

logger = logging.getLogger(__name__)


# ============================================================
# SHARED LOOKUPS
# ============================================================

def has_live_application(db: Session, student_id: int, job_id: int) -> bool:
    """True if the student applied to the job and has not withdrawn."""
    row = db.execute(
        select(applications.c.application_id).where(
            applications.c.student_id == student_id,
            applications.c.job_id == job_id,
            applications.c.status != ApplicationStatus.withdrawn.value,
        )
    ).first()
    return row is not None


def get_attendance_record(db: Session, student_id: int, round_id: int) -> Optional[dict]:
    row = db.execute(
        select(round_attendance).where(
            round_attendance.c.student_id == student_id,
            round_attendance.c.round_id == round_id,
        )
    ).mappings().first()
    return dict(row) if row else None


def active_rounds(db: Session, job_id: int) -> List[dict]:
    """Non-retired rounds of a job in ascending order."""
    rows = db.execute(
        select(job_rounds)
        .where(job_rounds.c.job_id == job_id, job_rounds.c.is_removed.is_(False))
        .order_by(job_rounds.c.round_order)
    ).mappings()
    return [dict(r) for r in rows]


def attendance_by_round(db: Session, student_id: int, job_id: int) -> dict:
    rows = db.execute(
        select(round_attendance).where(
            round_attendance.c.student_id == student_id,
            round_attendance.c.job_id == job_id,
        )
    ).mappings()
    return {r["round_id"]: dict(r) for r in rows}


# ============================================================
# STUDENT: ROUND STATUS + QR ISSUANCE
# ============================================================

def build_round_statuses(student_id: int, job_id: int, codec: Optional[QRTokenCodec] = None) -> List[dict]:
    """
    Per-round check-in status for a student, minting a QR token for every
    ACTIVE round the student is eligible for.

    Raises:
        ApplicationNotFoundError: no live application to this job
        KycRequiredError: student's KYC is not VERIFIED
    """
    codec = codec or get_qr_codec()

    with get_db_session() as db:
        if not has_live_application(db, student_id, job_id):
            raise ApplicationNotFoundError("You have not applied to this job")

        kyc_status = db.execute(
            select(students.c.kyc_status).where(students.c.student_id == student_id)
        ).scalar()
        if kyc_status != KycStatus.verified.value:
            raise KycRequiredError("Your KYC must be verified to access attendance")

        rounds = active_rounds(db, job_id)
        sessions = latest_sessions(db, [r["round_id"] for r in rounds])
        attendance = attendance_by_round(db, student_id, job_id)

    statuses = []
    for rnd in rounds:
        record = attendance.get(rnd["round_id"])
        latest = sessions.get(rnd["round_id"])
        qr_token = None

        if record:
            status = f"ATTENDED_{record['status']}"
        else:
            status = window_state(latest)
            if status == SessionStatus.active.value:
                if eligibility_service.is_eligible(rnd["round_order"], rounds, attendance):
                    qr_token = codec.issue(
                        student_id=student_id,
                        job_id=job_id,
                        round_id=rnd["round_id"],
                        session_id=latest["session_id"],
                    )
                else:
                    status = "NOT_ELIGIBLE"

        statuses.append({
            "round_id": rnd["round_id"],
            "round_name": rnd["name"],
            "round_order": rnd["round_order"],
            "status": status,
            "qr_token": qr_token,
            "attendance": {"marked_at": record["marked_at"], "result": record["status"]} if record else None,
        })

    return statuses


# ============================================================
# ADMIN: SCAN PREVIEW (read-only)
# ============================================================

def preview_scan(qr_data: str, admin_id: int, codec: Optional[QRTokenCodec] = None) -> dict:
    """
    Verify a scanned QR token and describe the student for confirmation.
    Writes nothing; the admin confirms separately.
    """
    codec = codec or get_qr_codec()
    try:
        claim = codec.verify(qr_data)
        return _preview_claim(claim.student_id, claim.job_id, claim.round_id, claim.session_id)
    except AttendanceRejection as exc:
        log_security_event("attendance_scan_rejected", level=logging.WARNING, admin_id=admin_id, code=exc.code)
        raise


def _preview_claim(student_id: int, job_id: int, round_id: int, session_id: int) -> dict:
    with get_db_session() as db:
        session_row = db.execute(
            select(
                round_sessions.c.status,
                job_rounds.c.name,
                job_rounds.c.round_order,
            )
            .join(job_rounds, job_rounds.c.round_id == round_sessions.c.round_id)
            .where(
                round_sessions.c.session_id == session_id,
                round_sessions.c.round_id == round_id,
                round_sessions.c.job_id == job_id,
            )
        ).first()
        if session_row is None:
            raise SessionNotFoundError()
        if session_row.status != SessionStatus.active.value:
            closed = "temporarily" if session_row.status == SessionStatus.temp_closed.value else "permanently"
            raise SessionNotActiveError(
                f"Session is {closed} closed. QR is no longer valid.",
                session_status=session_row.status,
            )
        if not is_latest_session(db, round_id, session_id):
            raise SessionNotActiveError(
                "A newer session has replaced this one. QR is no longer valid.",
                session_status=window_state(latest_sessions(db, [round_id]).get(round_id)),
            )

        if not has_live_application(db, student_id, job_id):
            raise ApplicationNotFoundError("Student has not applied to this job")

        student = db.execute(
            select(
                students.c.student_id,
                students.c.full_name,
                students.c.usn,
                students.c.branch,
                students.c.kyc_status,
                users.c.email,
            )
            .join(users, users.c.user_id == students.c.user_id)
            .where(students.c.student_id == student_id)
        ).first()
        if student is None or student.kyc_status != KycStatus.verified.value:
            raise KycRequiredError("Student's KYC is not verified")

        existing = get_attendance_record(db, student_id, round_id)
        if existing:
            raise AlreadyRecordedError(already_attended=True, marked_at=existing["marked_at"].isoformat())

        blocking = eligibility_service.find_blocking_round(
            session_row.round_order,
            active_rounds(db, job_id),
            attendance_by_round(db, student_id, job_id),
        )
        if blocking:
            prev_round, reason = blocking
            if reason == eligibility_service.FAILED:
                raise NotEligibleError(
                    f'Student failed the "{prev_round["name"]}" round and is not eligible',
                    failed_round=prev_round["name"],
                )
            raise NotEligibleError(
                f'Student has not attended the "{prev_round["name"]}" round yet',
                missing_round=prev_round["name"],
            )

        job = db.execute(select(jobs.c.title, jobs.c.company_name).where(jobs.c.job_id == job_id)).first()

    return {
        "message": "Student verified. Ready to mark attendance.",
        "student": {
            "student_id": student.student_id,
            "name": student.full_name,
            "email": student.email,
            "usn": student.usn,
            "branch": student.branch,
        },
        "round": {"round_id": round_id, "name": session_row.name, "order": session_row.round_order},
        "job": {"job_id": job_id, "title": job.title, "company": job.company_name},
        "token_data": {
            "student_id": student_id,
            "job_id": job_id,
            "round_id": round_id,
            "session_id": session_id,
        },
    }


# ============================================================
# ADMIN: CONFIRMATION (the only write)
# ============================================================

class AttendanceRecorder:
    """
    Turns an admin confirmation into a durable attendance record.

    Each check is repeated at confirmation time because the session or the
    application may have changed since the QR was issued. The UNIQUE
    (student_id, round_id) constraint settles concurrent confirmations:
    the loser's IntegrityError becomes AlreadyRecordedError.
    """

    def confirm(self, student_id: int, job_id: int, round_id: int, session_id: int, admin_id: int) -> dict:
        with get_db_session() as db:
            session_row = self._find_session(db, job_id, round_id, session_id)
            if session_row is None or session_row.status != SessionStatus.active.value:
                raise SessionNotActiveError()
            if not is_latest_session(db, round_id, session_id):
                raise SessionNotActiveError()

            if not has_live_application(db, student_id, job_id):
                raise ApplicationNotFoundError()

            if self._already_recorded(db, student_id, round_id):
                raise AlreadyRecordedError()

            record = {
                "student_id": student_id,
                "job_id": job_id,
                "round_id": round_id,
                "session_id": session_id,
                "marked_by_admin_id": admin_id,
                "status": AttendanceResult.attended.value,
                "marked_at": utcnow(),
            }
            try:
                with db.begin_nested():
                    result = db.execute(round_attendance.insert().values(**record))
            except IntegrityError:
                # Only the (student, round) uniqueness means a concurrent confirmation won.
                if get_attendance_record(db, student_id, round_id) is None:
                    raise
                logger.info("Concurrent confirmation lost for student %s round %s", student_id, round_id)
                raise AlreadyRecordedError() from None
            record["attendance_id"] = result.inserted_primary_key[0]

        log_security_event(
            "round_attendance_confirmed",
            admin_id=admin_id,
            student_id=student_id,
            job_id=job_id,
            round_id=round_id,
            session_id=session_id,
            attendance_id=record["attendance_id"],
        )
        record["round_name"] = session_row.name
        return record

    def _find_session(self, db: Session, job_id: int, round_id: int, session_id: int):
        # The session must belong to the claimed round and job.
        return db.execute(
            select(round_sessions.c.status, job_rounds.c.name)
            .join(job_rounds, job_rounds.c.round_id == round_sessions.c.round_id)
            .where(
                round_sessions.c.session_id == session_id,
                round_sessions.c.round_id == round_id,
                round_sessions.c.job_id == job_id,
            )
        ).first()

    def _already_recorded(self, db: Session, student_id: int, round_id: int) -> bool:
        return get_attendance_record(db, student_id, round_id) is not None


# ============================================================
# ADMIN: ATTENDANCE LISTING
# ============================================================

def list_round_attendance(
    job_id: int,
    round_id: Optional[int] = None,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> dict:
    """Attendance records of a job, newest first, with student and round names."""
    conditions = [round_attendance.c.job_id == job_id]
    if round_id is not None:
        conditions.append(round_attendance.c.round_id == round_id)
    if status:
        conditions.append(round_attendance.c.status == status)

    with get_db_session() as db:
        total = db.execute(
            select(func.count()).select_from(round_attendance).where(*conditions)
        ).scalar_one()
        rows = db.execute(
            select(
                round_attendance,
                students.c.full_name.label("student_name"),
                students.c.usn,
                job_rounds.c.name.label("round_name"),
                job_rounds.c.round_order,
            )
            .join(students, students.c.student_id == round_attendance.c.student_id)
            .join(job_rounds, job_rounds.c.round_id == round_attendance.c.round_id)
            .where(*conditions)
            .order_by(round_attendance.c.marked_at.desc(), round_attendance.c.attendance_id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).mappings()
        attendances = [dict(r) for r in rows]

    return {
        "attendances": attendances,
        "pagination": {"total": total, "page": page, "limit": limit, "pages": ceil(total / limit)},
    }

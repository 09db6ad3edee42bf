"""
Attendance Routes

GET /attendance/qr?job_id= - Round statuses + QR tokens (student only)
POST /attendance/scan - Verify a scanned QR and preview the student (admin only)
POST /attendance/confirm - Record attendance for a previewed claim (admin only)

Rejections (expired QR, closed session, duplicate...) are raised as
AttendanceRejection and rendered by the handler in main.py.
"""

from fastapi import APIRouter, Depends, Query

from placement_portal.core.auth import get_current_student, get_current_admin
from placement_portal.services.attendance_service import (
    AttendanceRecorder, build_round_statuses, preview_scan
)
from placement_portal.schemas.schemas import (
    RoundStatusListResponse, ScanRequest, ScanResponse,
    ConfirmAttendanceRequest, ConfirmAttendanceResponse, AttendanceRecordResponse
)

router = APIRouter(prefix="/attendance", tags=["Attendance"])

recorder = AttendanceRecorder()


@router.get("/qr", response_model=RoundStatusListResponse)
def get_round_qr(job_id: int = Query(..., ge=1), student: dict = Depends(get_current_student)):
    """
    Check-in status of every round of a job for the current student.

    Rounds with an ACTIVE session that the student is eligible for carry a
    fresh QR token valid for 10 minutes.
    """
    rounds = build_round_statuses(student["student_id"], job_id)
    return RoundStatusListResponse(job_id=job_id, rounds=rounds)


@router.post("/scan", response_model=ScanResponse)
def scan_qr(request: ScanRequest, admin: dict = Depends(get_current_admin)):
    """Verify a scanned QR code. Nothing is recorded until /attendance/confirm."""
    preview = preview_scan(request.qr_data.strip(), admin["user_id"])
    return ScanResponse(**preview)


@router.post("/confirm", response_model=ConfirmAttendanceResponse, status_code=201)
def confirm_attendance(request: ConfirmAttendanceRequest, admin: dict = Depends(get_current_admin)):
    """Mark the student as ATTENDED for the round after re-validating the claim."""
    record = recorder.confirm(
        student_id=request.student_id,
        job_id=request.job_id,
        round_id=request.round_id,
        session_id=request.session_id,
        admin_id=admin["user_id"],
    )
    return ConfirmAttendanceResponse(
        message=f"Attendance confirmed for {record['round_name']}",
        attendance=AttendanceRecordResponse(**record),
    )

"""
Attendance rejections.

Every validation failure in the check-in flow is one of these. Each carries
a stable code for clients, an HTTP status and a human-readable message.
Routes let them propagate; the handler in main.py renders them as
{"detail": ..., "code": ..., **extra}.
"""

from typing import Any, Dict, Optional


class AttendanceRejection(Exception):
    """Base class for recoverable check-in failures."""

    code = "REJECTED"
    status_code = 400
    message = "Request rejected"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.message
        self.extra: Dict[str, Any] = extra
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code, **self.extra}


class InvalidTokenError(AttendanceRejection):
    # Malformed and tampered tokens share this error on purpose.
    code = "INVALID_TOKEN"
    message = "Invalid QR code"


class TokenExpiredError(AttendanceRejection):
    code = "TOKEN_EXPIRED"
    message = "QR code has expired. Ask the student to refresh it."


class NotEligibleError(AttendanceRejection):
    code = "NOT_ELIGIBLE"
    message = "Student is not eligible for this round"


class KycRequiredError(AttendanceRejection):
    code = "KYC_REQUIRED"
    status_code = 403
    message = "KYC must be verified to access attendance"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        extra.setdefault("kyc_required", True)
        super().__init__(message, **extra)


class SessionNotFoundError(AttendanceRejection):
    code = "SESSION_NOT_FOUND"
    status_code = 404
    message = "Session not found. The QR code may be invalid."


class SessionNotActiveError(AttendanceRejection):
    code = "SESSION_NOT_ACTIVE"
    message = "Session is no longer active"


class ApplicationNotFoundError(AttendanceRejection):
    code = "APPLICATION_NOT_FOUND"
    status_code = 403
    message = "Student application not found"


class AlreadyRecordedError(AttendanceRejection):
    code = "ALREADY_RECORDED"
    status_code = 409
    message = "Attendance already recorded for this round"

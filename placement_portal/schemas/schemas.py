"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum


# ============================================================
# ENUMS
# ============================================================

class UserRole(str, Enum):
    student = "student"
    admin = "admin"


class ApplicationStatus(str, Enum):
    applied = "applied"
    under_review = "under_review"
    shortlisted = "shortlisted"
    interviewed = "interviewed"
    offered = "offered"
    accepted = "accepted"
    rejected = "rejected"
    withdrawn = "withdrawn"


class KycStatus(str, Enum):
    pending = "PENDING"
    verified = "VERIFIED"
    rejected = "REJECTED"


class SessionStatus(str, Enum):
    active = "ACTIVE"
    temp_closed = "TEMP_CLOSED"
    perm_closed = "PERM_CLOSED"


class SessionAction(str, Enum):
    temp_close = "TEMP_CLOSE"
    perm_close = "PERM_CLOSE"
    reopen = "REOPEN"


class AttendanceResult(str, Enum):
    attended = "ATTENDED"
    passed = "PASSED"
    failed = "FAILED"


class RoundAction(str, Enum):
    rename = "rename"
    remove = "remove"
    restore = "restore"
    reorder = "reorder"


# ============================================================
# AUTH SCHEMAS
# ============================================================

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: str = Field(..., min_length=2, max_length=100)
    usn: Optional[str] = None
    branch: Optional[str] = None

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
    role: str

class UserResponse(BaseModel):
    user_id: int
    email: str
    role: str
    is_active: bool
    created_at: datetime


# ============================================================
# QR TOKEN
# ============================================================

class QRTokenClaim(BaseModel):
    """Signed contents of a check-in QR code. Never persisted."""
    student_id: int
    job_id: int
    round_id: int
    session_id: int
    issued_at: int
    nonce: str = Field(..., min_length=32)


# ============================================================
# ATTENDANCE SCHEMAS
# ============================================================

class RoundAttendanceInfo(BaseModel):
    marked_at: datetime
    result: str

class RoundStatusItem(BaseModel):
    round_id: int
    round_name: str
    round_order: int
    status: str
    qr_token: Optional[str] = None
    attendance: Optional[RoundAttendanceInfo] = None

class RoundStatusListResponse(BaseModel):
    job_id: int
    rounds: List[RoundStatusItem]

class ScanRequest(BaseModel):
    qr_data: str = Field(..., min_length=1)

class TokenData(BaseModel):
    student_id: int
    job_id: int
    round_id: int
    session_id: int

class ScanStudentInfo(BaseModel):
    student_id: int
    name: str
    email: str
    usn: Optional[str] = None
    branch: Optional[str] = None

class ScanRoundInfo(BaseModel):
    round_id: int
    name: str
    order: int

class ScanJobInfo(BaseModel):
    job_id: int
    title: str
    company: str

class ScanResponse(BaseModel):
    success: bool = True
    message: str
    require_confirmation: bool = True
    student: ScanStudentInfo
    round: ScanRoundInfo
    job: ScanJobInfo
    token_data: TokenData

class ConfirmAttendanceRequest(TokenData):
    pass

class AttendanceRecordResponse(BaseModel):
    attendance_id: int
    student_id: int
    job_id: int
    round_id: int
    session_id: int
    marked_by_admin_id: int
    status: str
    marked_at: datetime

class ConfirmAttendanceResponse(BaseModel):
    success: bool = True
    message: str
    attendance: AttendanceRecordResponse

class AttendanceListItem(AttendanceRecordResponse):
    student_name: str
    usn: Optional[str] = None
    round_name: str
    round_order: int

class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int

class AttendanceListResponse(BaseModel):
    attendances: List[AttendanceListItem]
    pagination: Pagination


# ============================================================
# ROUND / SESSION SCHEMAS (admin)
# ============================================================

class RoundCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    round_order: int = Field(..., ge=1)

class RoundUpdate(BaseModel):
    round_id: int
    action: RoundAction
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    round_order: Optional[int] = Field(None, ge=1)

class SessionSummary(BaseModel):
    session_id: int
    status: str
    started_at: datetime
    ended_at: Optional[datetime] = None

class RoundResponse(BaseModel):
    round_id: int
    job_id: int
    name: str
    round_order: int
    is_removed: bool
    latest_session: Optional[SessionSummary] = None
    attendance_count: int = 0

class RoundListResponse(BaseModel):
    rounds: List[RoundResponse]

class SessionCreate(BaseModel):
    round_id: int

class SessionUpdate(BaseModel):
    session_id: int
    action: SessionAction

class SessionResponse(BaseModel):
    session_id: int
    job_id: int
    round_id: int
    round_name: str
    round_order: int
    status: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    created_by: Optional[int] = None
    attendance_count: int = 0

class SessionListResponse(BaseModel):
    sessions: List[SessionResponse]


# ============================================================
# GENERIC SCHEMAS
# ============================================================

class MessageResponse(BaseModel):
    message: str
    success: bool = True

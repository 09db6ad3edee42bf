"""
Authentication Routes

POST /auth/register - Register new student account (with profile)
POST /auth/login - Login and get JWT token
GET /auth/me - Get current user info

Admin accounts are not self-registered; create them with scripts/init_db.py.
"""

from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy import select

from placement_portal.db.database import get_db_session
from placement_portal.db.schema import students, users
from placement_portal.core.auth import hash_password, verify_password, create_access_token, get_current_user
from placement_portal.schemas.schemas import (
    RegisterRequest, LoginRequest, TokenResponse, UserResponse, MessageResponse,
    UserRole, KycStatus
)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=MessageResponse, status_code=201)
def register(request: RegisterRequest):
    """
    Register a new student account.

    KYC starts as PENDING; attendance QR codes are only issued once verified.
    """
    with get_db_session() as db:
        # Check email exists
        existing = db.execute(select(users.c.user_id).where(users.c.email == request.email)).first()
        if existing:
            raise HTTPException(status_code=400, detail="Email already registered")

        user_id = db.execute(
            users.insert().values(
                email=request.email,
                password_hash=hash_password(request.password),
                role=UserRole.student.value,
                is_active=True,
            )
        ).inserted_primary_key[0]

        db.execute(
            students.insert().values(
                user_id=user_id,
                full_name=request.full_name,
                usn=request.usn,
                branch=request.branch,
                kyc_status=KycStatus.pending.value,
            )
        )

    return MessageResponse(message="Registered successfully as student. Please login.")


@router.post("/login", response_model=TokenResponse)
def login(request: LoginRequest):
    """
    Login and receive JWT access token.

    Include token in requests: Authorization: Bearer <token>
    """
    with get_db_session() as db:
        user = db.execute(
            select(users.c.user_id, users.c.password_hash, users.c.role, users.c.is_active)
            .where(users.c.email == request.email)
        ).first()

    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account deactivated")

    if not verify_password(request.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    token = create_access_token(data={"sub": str(user.user_id), "role": user.role})

    return TokenResponse(access_token=token, user_id=user.user_id, role=user.role)


@router.get("/me", response_model=UserResponse)
def get_me(user: dict = Depends(get_current_user)):
    """Get current authenticated user's info."""
    with get_db_session() as db:
        row = db.execute(
            select(users.c.user_id, users.c.email, users.c.role, users.c.is_active, users.c.created_at)
            .where(users.c.user_id == user["user_id"])
        ).first()

    return UserResponse(
        user_id=row.user_id, email=row.email, role=row.role, is_active=row.is_active, created_at=row.created_at
    )

"""
Campus Placement Portal - Round Attendance API

FastAPI backend with:
- PostgreSQL (SQLAlchemy) for users, applications, rounds and attendance
- Signed, short-lived QR tokens for interview-round check-in
- JWT authentication for students and admins

Run: uvicorn placement_portal.main:app --reload
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError

from placement_portal.api.routes import api_router
from placement_portal.core.config import get_settings
from placement_portal.core.errors import AttendanceRejection
from placement_portal.core.logging_config import setup_logging
from placement_portal.db.database import check_database_connection
from placement_portal.db.schema import create_schema
from placement_portal.services.qr_token_service import get_qr_codec

settings = get_settings()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Campus Placement Portal",
    description="""
    Interview-round attendance for campus placement drives.

    ## Features
    - **Students**: Round status per job and a fresh QR code for each open round
    - **Admins**: Scan QR codes, preview the student, confirm attendance
    - **Rounds & Sessions**: Ordered interview rounds with pausable check-in windows
    - **Integrity**: At most one attendance record per student per round
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.exception_handler(AttendanceRejection)
async def attendance_rejection_handler(request: Request, exc: AttendanceRejection):
    logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.code)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Startup event
@app.on_event("startup")
async def startup_event():
    """Fail fast without a QR signing secret, then make sure tables exist."""
    get_qr_codec()
    if settings.auto_create_schema:
        create_schema()
        logger.info("Database schema ready")


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "database": "connected" if check_database_connection() else "disconnected"
    }

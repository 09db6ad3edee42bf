"""
Round & Session Management Routes (admin only)

GET /admin/jobs/{job_id}/rounds - List rounds with latest session
POST /admin/jobs/{job_id}/rounds - Add a round (shifts later rounds down)
PUT /admin/jobs/{job_id}/rounds - rename / remove / restore / reorder a round
GET /admin/jobs/{job_id}/sessions - List check-in sessions (newest first)
POST /admin/jobs/{job_id}/sessions - Start a session for a round
PUT /admin/jobs/{job_id}/sessions - TEMP_CLOSE / PERM_CLOSE / REOPEN a session
GET /admin/jobs/{job_id}/round-attendance - Attendance records with pagination
"""

from fastapi import APIRouter, HTTPException, Depends, Query
from sqlalchemy import func, select, update
from typing import Optional

from placement_portal.db.database import get_db_session
from placement_portal.db.schema import jobs, job_rounds, round_sessions, round_attendance
from placement_portal.core.auth import get_current_admin
from placement_portal.core.logging_config import log_security_event
from placement_portal.services import session_service
from placement_portal.services.attendance_service import list_round_attendance
from placement_portal.schemas.schemas import (
    RoundCreate, RoundUpdate, RoundAction, RoundResponse, RoundListResponse,
    SessionCreate, SessionUpdate, SessionResponse, SessionListResponse,
    SessionStatus, AttendanceResult, AttendanceListResponse, MessageResponse
)

router = APIRouter(prefix="/admin/jobs", tags=["Rounds & Sessions"])


def _order_taken(db, job_id: int, order: int, exclude_round_id: int) -> bool:
    row = db.execute(
        select(job_rounds.c.round_id).where(
            job_rounds.c.job_id == job_id,
            job_rounds.c.round_order == order,
            job_rounds.c.is_removed.is_(False),
            job_rounds.c.round_id != exclude_round_id,
        )
    ).first()
    return row is not None


# ============================================================
# ROUNDS
# ============================================================

@router.get("/{job_id}/rounds", response_model=RoundListResponse)
def list_rounds(job_id: int, include_removed: bool = Query(False), admin: dict = Depends(get_current_admin)):
    """List rounds of a job in order, with latest session and attendance count."""
    query = select(job_rounds).where(job_rounds.c.job_id == job_id).order_by(job_rounds.c.round_order)
    if not include_removed:
        query = query.where(job_rounds.c.is_removed.is_(False))

    with get_db_session() as db:
        rounds = [dict(r) for r in db.execute(query).mappings()]
        round_ids = [r["round_id"] for r in rounds]
        latest = session_service.latest_sessions(db, round_ids)
        counts = dict(
            db.execute(
                select(round_attendance.c.round_id, func.count())
                .where(round_attendance.c.round_id.in_(round_ids))
                .group_by(round_attendance.c.round_id)
            ).all()
        ) if round_ids else {}

    return RoundListResponse(rounds=[
        RoundResponse(
            round_id=r["round_id"], job_id=r["job_id"], name=r["name"], round_order=r["round_order"],
            is_removed=r["is_removed"], latest_session=latest.get(r["round_id"]),
            attendance_count=counts.get(r["round_id"], 0)
        ) for r in rounds
    ])


@router.post("/{job_id}/rounds", response_model=RoundResponse, status_code=201)
def create_round(job_id: int, data: RoundCreate, admin: dict = Depends(get_current_admin)):
    """Add a round. If the order is taken, that round and later ones move down by one."""
    with get_db_session() as db:
        if not db.execute(select(jobs.c.job_id).where(jobs.c.job_id == job_id)).first():
            raise HTTPException(status_code=404, detail="Job not found")

        if _order_taken(db, job_id, data.round_order, exclude_round_id=0):
            db.execute(
                update(job_rounds)
                .where(
                    job_rounds.c.job_id == job_id,
                    job_rounds.c.round_order >= data.round_order,
                    job_rounds.c.is_removed.is_(False),
                )
                .values(round_order=job_rounds.c.round_order + 1)
            )

        round_id = db.execute(
            job_rounds.insert().values(job_id=job_id, name=data.name, round_order=data.round_order, is_removed=False)
        ).inserted_primary_key[0]

    log_security_event("round_created", admin_id=admin["user_id"], job_id=job_id, round_id=round_id)
    return RoundResponse(round_id=round_id, job_id=job_id, name=data.name, round_order=data.round_order, is_removed=False)


@router.put("/{job_id}/rounds", response_model=RoundResponse)
def update_round(job_id: int, data: RoundUpdate, admin: dict = Depends(get_current_admin)):
    """Rename, retire, restore or reorder a round."""
    with get_db_session() as db:
        rnd = db.execute(
            select(job_rounds).where(job_rounds.c.round_id == data.round_id, job_rounds.c.job_id == job_id)
        ).mappings().first()
        if not rnd:
            raise HTTPException(status_code=404, detail="Round not found")

        if data.action == RoundAction.rename:
            if not data.name:
                raise HTTPException(status_code=400, detail="Name is required for rename")
            values = {"name": data.name}

        elif data.action == RoundAction.remove:
            active = db.execute(
                select(round_sessions.c.session_id).where(
                    round_sessions.c.round_id == data.round_id,
                    round_sessions.c.status == SessionStatus.active.value,
                )
            ).first()
            if active:
                raise HTTPException(status_code=400, detail="Cannot remove round with active session. Close the session first.")
            values = {"is_removed": True}

        elif data.action == RoundAction.restore:
            if _order_taken(db, job_id, rnd["round_order"], exclude_round_id=data.round_id):
                raise HTTPException(status_code=400, detail="Another round already uses this order. Reorder it first.")
            values = {"is_removed": False}

        else:
            if data.round_order is None:
                raise HTTPException(status_code=400, detail="Order is required for reorder")
            if _order_taken(db, job_id, data.round_order, exclude_round_id=data.round_id):
                raise HTTPException(status_code=400, detail="Another round already uses this order")
            values = {"round_order": data.round_order}

        db.execute(update(job_rounds).where(job_rounds.c.round_id == data.round_id).values(**values))
        updated = {**dict(rnd), **values}

    log_security_event(f"round_{data.action.value}", admin_id=admin["user_id"], job_id=job_id, round_id=data.round_id)
    return RoundResponse(
        round_id=updated["round_id"], job_id=job_id, name=updated["name"],
        round_order=updated["round_order"], is_removed=updated["is_removed"]
    )


# ============================================================
# SESSIONS
# ============================================================

@router.get("/{job_id}/sessions", response_model=SessionListResponse)
def list_sessions(job_id: int, round_id: Optional[int] = Query(None), admin: dict = Depends(get_current_admin)):
    """All sessions of a job, newest first."""
    attendance_count = (
        select(func.count())
        .where(round_attendance.c.session_id == round_sessions.c.session_id)
        .scalar_subquery()
    )
    query = (
        select(
            round_sessions,
            job_rounds.c.name.label("round_name"),
            job_rounds.c.round_order,
            attendance_count.label("attendance_count"),
        )
        .join(job_rounds, job_rounds.c.round_id == round_sessions.c.round_id)
        .where(round_sessions.c.job_id == job_id)
        .order_by(round_sessions.c.created_at.desc(), round_sessions.c.session_id.desc())
    )
    if round_id is not None:
        query = query.where(round_sessions.c.round_id == round_id)

    with get_db_session() as db:
        rows = [dict(r) for r in db.execute(query).mappings()]

    return SessionListResponse(sessions=[SessionResponse(**r) for r in rows])


@router.post("/{job_id}/sessions", response_model=MessageResponse, status_code=201)
def start_session(job_id: int, data: SessionCreate, admin: dict = Depends(get_current_admin)):
    """Open a check-in window for a round."""
    try:
        with get_db_session() as db:
            created = session_service.start_session(db, job_id, data.round_id, admin["user_id"])
    except session_service.SessionLookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except session_service.SessionTransitionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return MessageResponse(message=f"Session {created['session_id']} started")


@router.put("/{job_id}/sessions", response_model=MessageResponse)
def update_session(job_id: int, data: SessionUpdate, admin: dict = Depends(get_current_admin)):
    """Pause, permanently close or reopen a session."""
    try:
        with get_db_session() as db:
            new_status = session_service.transition_session(db, job_id, data.session_id, data.action, admin["user_id"])
    except session_service.SessionLookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except session_service.SessionTransitionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return MessageResponse(message=f"Session {data.session_id} is now {new_status}")


# ============================================================
# ATTENDANCE RECORDS
# ============================================================

@router.get("/{job_id}/round-attendance", response_model=AttendanceListResponse)
def get_round_attendance(
    job_id: int,
    round_id: Optional[int] = Query(None),
    status: Optional[AttendanceResult] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    admin: dict = Depends(get_current_admin)
):
    """Attendance records of a job, filterable by round and result."""
    return list_round_attendance(
        job_id, round_id=round_id, status=status.value if status else None, page=page, limit=limit
    )

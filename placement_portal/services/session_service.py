"""
Session State Tracker - check-in windows of interview rounds.

Lifecycle of one round's window:

    (none) --start--> ACTIVE --TEMP_CLOSE--> TEMP_CLOSED --REOPEN--> ACTIVE
                        |                        |
                        +------PERM_CLOSE--------+----> PERM_CLOSED (terminal)

A round can own several sessions over time; only the most recently created
one decides its live state. Admin round management drives the transitions,
the attendance flow only reads them.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from placement_portal.core.logging_config import log_security_event
from placement_portal.db.schema import job_rounds, round_sessions
from placement_portal.schemas.schemas import SessionAction, SessionStatus

logger = logging.getLogger(__name__)

NOT_STARTED = "NOT_STARTED"

# action -> (allowed source states, target state)
SESSION_TRANSITIONS = {
    SessionAction.temp_close: ({SessionStatus.active}, SessionStatus.temp_closed),
    SessionAction.perm_close: ({SessionStatus.active, SessionStatus.temp_closed}, SessionStatus.perm_closed),
    SessionAction.reopen: ({SessionStatus.temp_closed}, SessionStatus.active),
}

TRANSITION_ERRORS = {
    SessionAction.temp_close: "Can only temporarily close an active session",
    SessionAction.perm_close: "Session is already permanently closed",
    SessionAction.reopen: "Can only reopen a temporarily closed session",
}

TRANSITION_EVENTS = {
    SessionAction.temp_close: "session_temp_closed",
    SessionAction.perm_close: "session_perm_closed",
    SessionAction.reopen: "session_reopened",
}


class SessionTransitionError(Exception):
    """Requested start or transition is not allowed from the current state."""


class SessionLookupError(Exception):
    """Session or round does not exist for this job."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def latest_sessions(db: Session, round_ids: Iterable[int]) -> Dict[int, dict]:
    """Most recently created session per round (ties broken by highest id)."""
    round_ids = list(round_ids)
    if not round_ids:
        return {}
    rows = db.execute(
        select(round_sessions)
        .where(round_sessions.c.round_id.in_(round_ids))
        .order_by(
            round_sessions.c.round_id,
            round_sessions.c.created_at.desc(),
            round_sessions.c.session_id.desc(),
        )
    ).mappings()
    latest: Dict[int, dict] = {}
    for row in rows:
        latest.setdefault(row["round_id"], dict(row))
    return latest


def is_latest_session(db: Session, round_id: int, session_id: int) -> bool:
    latest = latest_sessions(db, [round_id]).get(round_id)
    return latest is not None and latest["session_id"] == session_id


def window_state(latest_session: Optional[dict]) -> str:
    """Live state of a round's check-in window, NOT_STARTED if never opened."""
    if latest_session is None:
        return NOT_STARTED
    return SessionStatus(latest_session["status"]).value


def start_session(db: Session, job_id: int, round_id: int, admin_id: int) -> dict:
    """Open a new ACTIVE window for a non-retired round."""
    round_row = db.execute(
        select(job_rounds.c.round_id).where(
            job_rounds.c.round_id == round_id,
            job_rounds.c.job_id == job_id,
            job_rounds.c.is_removed.is_(False),
        )
    ).first()
    if round_row is None:
        raise SessionLookupError("Round not found or removed")

    statuses = set(
        db.execute(
            select(round_sessions.c.status).where(round_sessions.c.round_id == round_id)
        ).scalars()
    )
    if SessionStatus.active.value in statuses:
        raise SessionTransitionError("An active session already exists for this round")
    if SessionStatus.perm_closed.value in statuses:
        raise SessionTransitionError("This round has been permanently closed. Cannot start a new session.")

    now = utcnow()
    session_id = db.execute(
        round_sessions.insert().values(
            job_id=job_id,
            round_id=round_id,
            status=SessionStatus.active.value,
            started_at=now,
            created_at=now,
            created_by=admin_id,
        )
    ).inserted_primary_key[0]

    log_security_event("session_started", admin_id=admin_id, job_id=job_id, round_id=round_id, session_id=session_id)
    return {"session_id": session_id, "status": SessionStatus.active.value}


def transition_session(db: Session, job_id: int, session_id: int, action: SessionAction, admin_id: int) -> str:
    """Apply an admin action to a session and return its new status."""
    row = db.execute(
        select(round_sessions.c.status, round_sessions.c.round_id).where(
            round_sessions.c.session_id == session_id,
            round_sessions.c.job_id == job_id,
        )
    ).first()
    if row is None:
        raise SessionLookupError("Session not found")

    # A superseded session stays frozen; only the newest one drives the round.
    if not is_latest_session(db, row.round_id, session_id):
        raise SessionTransitionError("A newer session exists for this round")

    allowed_from, target = SESSION_TRANSITIONS[action]
    if SessionStatus(row.status) not in allowed_from:
        raise SessionTransitionError(TRANSITION_ERRORS[action])

    values = {"status": target.value}
    if target is SessionStatus.perm_closed:
        values["ended_at"] = utcnow()
    db.execute(
        update(round_sessions).where(round_sessions.c.session_id == session_id).values(**values)
    )

    log_security_event(TRANSITION_EVENTS[action], admin_id=admin_id, session_id=session_id)
    logger.info("Session %s moved %s -> %s", session_id, row.status, target.value)
    return target.value

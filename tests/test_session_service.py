import pytest

from placement_portal.db.database import get_db_session
from placement_portal.schemas.schemas import SessionAction
from placement_portal.services import session_service
from placement_portal.services.session_service import (
    SessionLookupError,
    SessionTransitionError,
    latest_sessions,
    window_state,
)


def _start(drive, round_key="round1"):
    with get_db_session() as db:
        return session_service.start_session(db, drive["job_id"], drive[round_key], drive["admin_id"])["session_id"]


def _apply(drive, session_id, action):
    with get_db_session() as db:
        return session_service.transition_session(db, drive["job_id"], session_id, action, drive["admin_id"])


def _latest(drive, round_key="round1"):
    with get_db_session() as db:
        return latest_sessions(db, [drive[round_key]]).get(drive[round_key])


def test_round_without_session_is_not_started(drive):
    assert _latest(drive) is None
    assert window_state(None) == "NOT_STARTED"


def test_start_creates_active_session(drive):
    session_id = _start(drive)
    latest = _latest(drive)
    assert latest["session_id"] == session_id
    assert window_state(latest) == "ACTIVE"


def test_cannot_start_second_active_session(drive):
    _start(drive)
    with pytest.raises(SessionTransitionError):
        _start(drive)


def test_pause_and_reopen(drive):
    session_id = _start(drive)
    assert _apply(drive, session_id, SessionAction.temp_close) == "TEMP_CLOSED"
    assert window_state(_latest(drive)) == "TEMP_CLOSED"
    assert _apply(drive, session_id, SessionAction.reopen) == "ACTIVE"


def test_perm_close_is_terminal(drive):
    session_id = _start(drive)
    _apply(drive, session_id, SessionAction.temp_close)
    assert _apply(drive, session_id, SessionAction.perm_close) == "PERM_CLOSED"

    latest = _latest(drive)
    assert latest["ended_at"] is not None

    with pytest.raises(SessionTransitionError):
        _apply(drive, session_id, SessionAction.reopen)
    with pytest.raises(SessionTransitionError):
        _apply(drive, session_id, SessionAction.perm_close)
    with pytest.raises(SessionTransitionError):
        _start(drive)


def test_only_active_session_can_be_paused(drive):
    session_id = _start(drive)
    _apply(drive, session_id, SessionAction.temp_close)
    with pytest.raises(SessionTransitionError):
        _apply(drive, session_id, SessionAction.temp_close)


def test_newest_session_decides_round_state(drive, seed):
    old = seed.session(drive["job_id"], drive["round1"], status="TEMP_CLOSED")
    new = _start(drive)

    latest = _latest(drive)
    assert latest["session_id"] == new != old
    assert window_state(latest) == "ACTIVE"


def test_retired_round_cannot_be_started(drive, seed):
    retired = seed.round(drive["job_id"], "Old Round", 5, is_removed=True)
    with get_db_session() as db:
        with pytest.raises(SessionLookupError):
            session_service.start_session(db, drive["job_id"], retired, drive["admin_id"])


def test_unknown_session_transition(drive):
    with pytest.raises(SessionLookupError):
        _apply(drive, 9999, SessionAction.temp_close)


def test_superseded_session_cannot_be_reopened(drive):
    first = _start(drive)
    _apply(drive, first, SessionAction.temp_close)
    second = _start(drive)
    _apply(drive, second, SessionAction.perm_close)

    with pytest.raises(SessionTransitionError):
        _apply(drive, first, SessionAction.reopen)
    with pytest.raises(SessionTransitionError):
        _apply(drive, first, SessionAction.perm_close)

    latest = _latest(drive)
    assert latest["session_id"] == second
    assert window_state(latest) == "PERM_CLOSED"

import threading

import pytest
from sqlalchemy.exc import IntegrityError

from placement_portal.core.errors import (
    AlreadyRecordedError,
    ApplicationNotFoundError,
    SessionNotActiveError,
)
from placement_portal.services.attendance_service import AttendanceRecorder, build_round_statuses


def _confirm(drive, session_id, round_key="round1", recorder=None):
    recorder = recorder or AttendanceRecorder()
    return recorder.confirm(
        student_id=drive["student_id"],
        job_id=drive["job_id"],
        round_id=drive[round_key],
        session_id=session_id,
        admin_id=drive["admin_id"],
    )


def test_confirm_creates_attended_record(drive, seed):
    session_id = seed.session(drive["job_id"], drive["round1"])

    record = _confirm(drive, session_id)

    assert record["attendance_id"] >= 1
    assert record["status"] == "ATTENDED"
    assert record["marked_by_admin_id"] == drive["admin_id"]
    assert record["round_name"] == "Aptitude Test"
    assert seed.attendance_count(drive["student_id"], drive["round1"]) == 1


@pytest.mark.parametrize("closed_status", ["TEMP_CLOSED", "PERM_CLOSED"])
def test_session_closed_after_issuance_is_rejected(drive, seed, codec, closed_status):
    session_id = seed.session(drive["job_id"], drive["round1"])
    statuses = build_round_statuses(drive["student_id"], drive["job_id"], codec=codec)
    claim = codec.verify(statuses[0]["qr_token"])

    seed.set_session_status(session_id, closed_status)

    with pytest.raises(SessionNotActiveError):
        _confirm(drive, claim.session_id)
    assert seed.attendance_count(drive["student_id"], drive["round1"]) == 0


def test_application_withdrawn_after_issuance_is_rejected(drive, seed, codec):
    session_id = seed.session(drive["job_id"], drive["round1"])
    statuses = build_round_statuses(drive["student_id"], drive["job_id"], codec=codec)
    assert statuses[0]["qr_token"]

    seed.set_application_status(drive["application_id"], "withdrawn")

    with pytest.raises(ApplicationNotFoundError):
        _confirm(drive, session_id)


def test_second_confirmation_is_already_recorded(drive, seed):
    session_id = seed.session(drive["job_id"], drive["round1"])
    _confirm(drive, session_id)

    with pytest.raises(AlreadyRecordedError) as exc:
        _confirm(drive, session_id)
    assert exc.value.status_code == 409
    assert seed.attendance_count(drive["student_id"], drive["round1"]) == 1


def test_session_of_another_round_is_rejected(drive, seed):
    round2_session = seed.session(drive["job_id"], drive["round2"])
    with pytest.raises(SessionNotActiveError):
        _confirm(drive, round2_session, round_key="round1")


def test_superseded_session_is_rejected(drive, seed):
    # Older session left ACTIVE while a newer one closed the round for good.
    stale = seed.session(drive["job_id"], drive["round1"])
    seed.session(drive["job_id"], drive["round1"], status="PERM_CLOSED")

    with pytest.raises(SessionNotActiveError):
        _confirm(drive, stale)
    assert seed.attendance_count(drive["student_id"], drive["round1"]) == 0


def test_foreign_key_failure_is_not_a_duplicate(drive, seed):
    session_id = seed.session(drive["job_id"], drive["round1"])
    drive = {**drive, "admin_id": 9999}

    with pytest.raises(IntegrityError):
        _confirm(drive, session_id)
    assert seed.attendance_count(drive["student_id"], drive["round1"]) == 0


def test_unique_constraint_settles_a_lost_race(drive, seed, monkeypatch):
    # Both requests passed the existence check before either wrote.
    session_id = seed.session(drive["job_id"], drive["round1"])
    monkeypatch.setattr(AttendanceRecorder, "_already_recorded", lambda self, db, student_id, round_id: False)

    _confirm(drive, session_id)
    with pytest.raises(AlreadyRecordedError):
        _confirm(drive, session_id)
    assert seed.attendance_count(drive["student_id"], drive["round1"]) == 1


def test_concurrent_confirmations_record_once(drive, seed):
    session_id = seed.session(drive["job_id"], drive["round1"])
    barrier = threading.Barrier(2)
    outcomes = []
    lock = threading.Lock()

    def worker():
        barrier.wait()
        try:
            _confirm(drive, session_id)
            outcome = "created"
        except AlreadyRecordedError:
            outcome = "duplicate"
        except Exception as exc:  # surfaced through the assertion below
            outcome = repr(exc)
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert sorted(outcomes) == ["created", "duplicate"]
    assert seed.attendance_count(drive["student_id"], drive["round1"]) == 1

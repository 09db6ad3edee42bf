from placement_portal.services.eligibility_service import (
    FAILED,
    MISSING,
    find_blocking_round,
    is_eligible,
)

ROUNDS = [
    {"round_id": 10, "name": "Aptitude", "round_order": 1},
    {"round_id": 20, "name": "Group Discussion", "round_order": 2},
    {"round_id": 30, "name": "Technical", "round_order": 3},
    {"round_id": 40, "name": "HR", "round_order": 4},
]


def attended(*round_ids, status="ATTENDED"):
    return {rid: {"status": status} for rid in round_ids}


def test_first_round_is_always_eligible():
    assert is_eligible(1, ROUNDS, {})
    assert is_eligible(1, ROUNDS, attended(10, status="FAILED"))


def test_all_previous_rounds_attended_is_eligible():
    attendance = {**attended(10), **attended(20, status="PASSED")}
    assert is_eligible(3, ROUNDS, attendance)


def test_missing_previous_round_is_not_eligible():
    assert not is_eligible(3, ROUNDS, attended(10))
    assert find_blocking_round(3, ROUNDS, attended(10)) == (ROUNDS[1], MISSING)


def test_failed_previous_round_is_not_eligible():
    attendance = {**attended(10, status="FAILED"), **attended(20)}
    assert not is_eligible(3, ROUNDS, attendance)
    assert find_blocking_round(3, ROUNDS, attendance) == (ROUNDS[0], FAILED)


def test_retired_rounds_are_ignored():
    rounds = [dict(r) for r in ROUNDS]
    rounds[1]["is_removed"] = True
    assert is_eligible(3, rounds, attended(10))


def test_later_rounds_do_not_matter():
    attendance = {**attended(10), **attended(30, status="FAILED")}
    assert is_eligible(2, ROUNDS, attendance)


def test_result_does_not_depend_on_input_order():
    shuffled = [ROUNDS[2], ROUNDS[0], ROUNDS[3], ROUNDS[1]]
    attendance = {**attended(10), **attended(20), **attended(30)}
    assert is_eligible(4, shuffled, attendance)
    assert find_blocking_round(4, shuffled, attended(20, 30)) == (ROUNDS[0], MISSING)

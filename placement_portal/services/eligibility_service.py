"""
Round eligibility.

A student may check into round N only after attending every earlier,
non-retired round of the same job without a FAILED result. Round 1 is open
to every applicant.

Rounds are mappings with "round_id", "round_order" and optionally
"is_removed"; attendance is a mapping of round_id -> record with "status".
"""

from typing import Iterable, Mapping, Optional, Tuple

from placement_portal.schemas.schemas import AttendanceResult

MISSING = "missing"
FAILED = "failed"


def find_blocking_round(
    target_order: int,
    rounds: Iterable[Mapping],
    attendance_by_round: Mapping[int, Mapping],
) -> Optional[Tuple[Mapping, str]]:
    """Return (round, reason) for the first earlier round that blocks entry, or None."""
    if target_order == 1:
        return None

    previous_rounds = sorted(
        (r for r in rounds if r["round_order"] < target_order and not r.get("is_removed", False)),
        key=lambda r: r["round_order"],
    )
    for prev_round in previous_rounds:
        record = attendance_by_round.get(prev_round["round_id"])
        if record is None:
            return prev_round, MISSING
        if record["status"] == AttendanceResult.failed.value:
            return prev_round, FAILED
    return None


def is_eligible(
    target_order: int,
    rounds: Iterable[Mapping],
    attendance_by_round: Mapping[int, Mapping],
) -> bool:
    return find_blocking_round(target_order, rounds, attendance_by_round) is None

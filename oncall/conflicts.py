from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from .dates import add_days
from .models import Severity, ShiftAssignment, ShiftConflict

_BADGE_TONES = {"warning": "yellow", "info": "blue"}


def detect_shift_conflicts(
    shift: ShiftAssignment, all_shifts: Sequence[ShiftAssignment]
) -> Optional[ShiftConflict]:
    """Return the most specific conflict for ``shift`` within one person's shifts.

    Same-day double booking wins over back-to-back days; at most one conflict
    is reported. Adjacency is computed on date keys, never on timestamps, so
    the result does not depend on the machine's timezone.
    """
    date_key = shift.dateKey
    date_keys = {s.dateKey for s in all_shifts}

    same_day = [s for s in all_shifts if s.dateKey == date_key]
    if len(same_day) > 1:
        return ShiftConflict(
            type="multiple_same_day",
            message=f"Multiple shifts on {date_key} ({len(same_day)} stations)",
            severity="warning",
            dateKeys=[date_key],
        )

    prev_key = add_days(date_key, -1)
    next_key = add_days(date_key, 1)
    has_prev = prev_key in date_keys
    has_next = next_key in date_keys
    if not (has_prev or has_next):
        return None

    consecutive: List[str] = []
    if has_prev:
        consecutive.append(prev_key)
    consecutive.append(date_key)
    if has_next:
        consecutive.append(next_key)
    return ShiftConflict(
        type="back_to_back",
        message=f"Back-to-back shifts: {', '.join(consecutive)}",
        severity="info",
        dateKeys=consecutive,
    )


def shifts_with_conflicts(shifts: Iterable[ShiftAssignment]) -> Dict[str, ShiftConflict]:
    all_shifts = list(shifts)
    conflicts: Dict[str, ShiftConflict] = {}
    for shift in all_shifts:
        if shift.dateKey in conflicts:
            continue
        conflict = detect_shift_conflicts(shift, all_shifts)
        if conflict:
            conflicts[shift.dateKey] = conflict
    return conflicts


def conflict_badge_tone(severity: Severity) -> str:
    return _BADGE_TONES.get(severity, "blue")

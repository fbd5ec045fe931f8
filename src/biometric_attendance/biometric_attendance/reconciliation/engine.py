"""Pure reconciliation policy: grouping punches and merging them into attendance.

No I/O here; ReconciliationService feeds these functions from a database
session and writes their results back.
"""
from __future__ import annotations

from datetime import date, time
from typing import Iterable, Optional

from .model import PRESENT, AttendanceDay, DailyPunchSummary, MappedPunch


def _punch_word(count: int) -> str:
    return f"{count} punch(es)"


def biometric_note(punch_count: int) -> str:
    return f"[Biometric: {_punch_word(punch_count)}]"


def auto_import_remarks(punch_count: int) -> str:
    return f"Auto-imported from biometric device ({_punch_word(punch_count)})"


def group_punches(punches: Iterable[MappedPunch]) -> list[DailyPunchSummary]:
    """Collapse punches into one summary per (employee, calendar date).

    Check-in is the earliest punch of the day and check-out the latest; a day
    with a single punch gets the same value for both.
    """
    buckets: dict[tuple[int, date], list[time]] = {}
    for p in punches:
        key = (p.employee_id, p.punch_time.date())
        buckets.setdefault(key, []).append(p.punch_time.time().replace(microsecond=0))

    return [
        DailyPunchSummary(
            employee_id=employee_id,
            attendance_date=attendance_date,
            check_in=min(times),
            check_out=max(times),
            punch_count=len(times),
        )
        for (employee_id, attendance_date), times in sorted(buckets.items())
    ]


def _earlier(existing: Optional[time], derived: time) -> time:
    return derived if existing is None or derived < existing else existing


def _later(existing: Optional[time], derived: time) -> time:
    return derived if existing is None or derived > existing else existing


def merge_day(existing: Optional[AttendanceDay], summary: DailyPunchSummary) -> AttendanceDay:
    """Merge a day's punches into its attendance row.

    Biometric data only widens the observed window: an earlier manual check-in
    or a later manual check-out is kept.
    """
    if existing is None:
        return AttendanceDay(
            employee_id=summary.employee_id,
            attendance_date=summary.attendance_date,
            status=PRESENT,
            check_in_time=summary.check_in,
            check_out_time=summary.check_out,
            remarks=auto_import_remarks(summary.punch_count),
        )

    note = biometric_note(summary.punch_count)
    return AttendanceDay(
        employee_id=existing.employee_id,
        attendance_date=existing.attendance_date,
        status=PRESENT,
        check_in_time=_earlier(existing.check_in_time, summary.check_in),
        check_out_time=_later(existing.check_out_time, summary.check_out),
        remarks=f"{existing.remarks} {note}" if existing.remarks else note,
        attendance_id=existing.attendance_id,
    )

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional

from ..core.enums import AttendanceStatus


@dataclass(frozen=True)
class MappedPunch:
    """An unprocessed punch already resolved to an active employee."""

    punch_id: int
    employee_id: int
    device_id: str
    biometric_user_id: str
    punch_time: datetime


@dataclass(frozen=True)
class DailyPunchSummary:
    employee_id: int
    attendance_date: date
    check_in: time
    check_out: time
    punch_count: int

    @property
    def key(self) -> tuple[int, date]:
        return (self.employee_id, self.attendance_date)


@dataclass(frozen=True)
class AttendanceDay:
    """One attendance row per (employee, date); owned by the attendance subsystem."""

    employee_id: int
    attendance_date: date
    status: str
    check_in_time: Optional[time]
    check_out_time: Optional[time]
    remarks: Optional[str] = None
    attendance_id: Optional[int] = None

    @property
    def key(self) -> tuple[int, date]:
        return (self.employee_id, self.attendance_date)

    @property
    def is_new(self) -> bool:
        return self.attendance_id is None


@dataclass(frozen=True)
class ReconciliationSummary:
    processed_from_date: date
    processed_to_date: date
    logs_marked_processed: int
    employees_processed: int
    attendance_records_touched: int
    processed_at: datetime

    @property
    def is_empty(self) -> bool:
        return self.logs_marked_processed == 0 and self.attendance_records_touched == 0


PRESENT = AttendanceStatus.PRESENT.value

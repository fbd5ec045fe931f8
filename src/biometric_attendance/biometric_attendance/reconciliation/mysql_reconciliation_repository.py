from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from typing import Iterator, Mapping, Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, normalize_mysql_time
from ..punches.mysql_punch_log_repository import mark_ids_processed_with_cursor, pending_mapped_filter
from .model import AttendanceDay, MappedPunch
from .repository import ReconciliationRepository, ReconciliationSession


class MySQLReconciliationSession(ReconciliationSession):
    def __init__(self, cur):
        self._cur = cur

    def select_pending(self, *, start_date: date, end_date: date, device_id: Optional[str] = None) -> Sequence[MappedPunch]:
        where, params = pending_mapped_filter(start_date=start_date, end_date=end_date, device_id=device_id)
        self._cur.execute(
            f"""
            SELECT bl.id AS punch_id, e.employee_id, bl.device_id, bl.biometric_user_id, bl.punch_time
            FROM biometric_logs bl
            INNER JOIN employees e ON e.biometric_id = bl.biometric_user_id
            WHERE {where}
            ORDER BY e.employee_id, bl.punch_time
            FOR UPDATE OF bl
            """,
            tuple(params),
        )
        return [
            MappedPunch(
                punch_id=int(r["punch_id"]),
                employee_id=int(r["employee_id"]),
                device_id=r["device_id"],
                biometric_user_id=r["biometric_user_id"],
                punch_time=r["punch_time"],
            )
            for r in fetchall(self._cur)
        ]

    def get_attendance(self, keys: Sequence[tuple[int, date]]) -> Mapping[tuple[int, date], AttendanceDay]:
        if not keys:
            return {}

        placeholders = ", ".join(["(%s, %s)"] * len(keys))
        params: list[object] = []
        for employee_id, attendance_date in keys:
            params.extend([int(employee_id), attendance_date])

        self._cur.execute(
            f"""
            SELECT attendance_id, employee_id, attendance_date, status, check_in_time, check_out_time, remarks
            FROM attendance
            WHERE (employee_id, attendance_date) IN ({placeholders})
            FOR UPDATE
            """,
            tuple(params),
        )
        out: dict[tuple[int, date], AttendanceDay] = {}
        for r in fetchall(self._cur):
            day = AttendanceDay(
                attendance_id=int(r["attendance_id"]),
                employee_id=int(r["employee_id"]),
                attendance_date=r["attendance_date"],
                status=r["status"],
                check_in_time=normalize_mysql_time(r.get("check_in_time")),
                check_out_time=normalize_mysql_time(r.get("check_out_time")),
                remarks=r.get("remarks"),
            )
            out[day.key] = day
        return out

    def insert_attendance(self, day: AttendanceDay) -> int:
        self._cur.execute(
            """
            INSERT INTO attendance
                (employee_id, attendance_date, status, check_in_time, check_out_time, remarks, created_at, updated_at)
            VALUES (%s,%s,%s,%s,%s,%s,NOW(),NOW())
            """,
            (day.employee_id, day.attendance_date, day.status, day.check_in_time, day.check_out_time, day.remarks),
        )
        return int(self._cur.lastrowid)

    def update_attendance(self, day: AttendanceDay) -> None:
        self._cur.execute(
            """
            UPDATE attendance
            SET status=%s, check_in_time=%s, check_out_time=%s, remarks=%s, updated_at=NOW()
            WHERE attendance_id=%s
            """,
            (day.status, day.check_in_time, day.check_out_time, day.remarks, int(day.attendance_id)),
        )

    def mark_processed(self, punch_ids: Sequence[int]) -> int:
        return mark_ids_processed_with_cursor(self._cur, punch_ids)


class MySQLReconciliationRepository(ReconciliationRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @contextmanager
    def session(self) -> Iterator[MySQLReconciliationSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            yield MySQLReconciliationSession(cur)

from __future__ import annotations

import json
from datetime import date, datetime, timedelta
from typing import Optional, Sequence

from ..core.enums import EmployeeStatus, PunchType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from ..gateway.model import CanonicalPunch
from .model import PunchCounts, UnmappedBiometricId
from .repository import PunchLogRepository


def pending_mapped_filter(
    *, start_date: date, end_date: date, device_id: Optional[str] = None
) -> tuple[str, list[object]]:
    """WHERE clause for unprocessed punches of active, mapped employees.

    Expects ``biometric_logs bl`` joined to ``employees e`` on the biometric id.
    The date range is inclusive on the punch's calendar date.
    """
    clauses = [
        "bl.processed = 0",
        "e.status = %s",
        "e.biometric_id IS NOT NULL",
        "bl.punch_time >= %s",
        "bl.punch_time < %s",
    ]
    params: list[object] = [
        EmployeeStatus.ACTIVE.value,
        datetime.combine(start_date, datetime.min.time()),
        datetime.combine(end_date + timedelta(days=1), datetime.min.time()),
    ]
    if device_id:
        clauses.append("bl.device_id = %s")
        params.append(device_id)
    return " AND ".join(clauses), params


def mark_processed_with_cursor(cur, *, start_date: date, end_date: date, device_id: Optional[str] = None) -> int:
    where, params = pending_mapped_filter(start_date=start_date, end_date=end_date, device_id=device_id)
    cur.execute(
        f"""
        UPDATE biometric_logs bl
        INNER JOIN employees e ON e.biometric_id = bl.biometric_user_id
        SET bl.processed = 1
        WHERE {where}
        """,
        tuple(params),
    )
    return int(cur.rowcount or 0)


def mark_ids_processed_with_cursor(cur, punch_ids: Sequence[int]) -> int:
    if not punch_ids:
        return 0
    placeholders = ", ".join(["%s"] * len(punch_ids))
    cur.execute(
        f"UPDATE biometric_logs SET processed = 1 WHERE processed = 0 AND id IN ({placeholders})",
        tuple(int(i) for i in punch_ids),
    )
    return int(cur.rowcount or 0)


class MySQLPunchLogRepository(PunchLogRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def exists(self, *, device_id: str, biometric_user_id: str, punch_time: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT id FROM biometric_logs
                WHERE device_id=%s AND biometric_user_id=%s AND punch_time=%s
                """,
                (device_id, biometric_user_id, punch_time),
            )
            return fetchone(cur) is not None

    def insert(self, *, device_id: str, punch: CanonicalPunch) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO biometric_logs
                    (device_id, biometric_user_id, punch_time, punch_type, raw_json, processed, created_at)
                VALUES (%s,%s,%s,%s,%s,0,NOW())
                """,
                (
                    device_id,
                    punch.biometric_user_id,
                    punch.punch_time,
                    punch.punch_type or PunchType.IN.value,
                    json.dumps(punch.raw_payload, default=str),
                ),
            )
            return int(cur.lastrowid)

    def mark_processed(self, *, start_date: date, end_date: date, device_id: Optional[str] = None) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            return mark_processed_with_cursor(cur, start_date=start_date, end_date=end_date, device_id=device_id)

    def find_unmapped(self) -> Sequence[UnmappedBiometricId]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT bl.biometric_user_id,
                       COUNT(*) AS punch_count,
                       MIN(bl.punch_time) AS first_seen,
                       MAX(bl.punch_time) AS last_seen,
                       COUNT(DISTINCT DATE(bl.punch_time)) AS distinct_days,
                       GROUP_CONCAT(DISTINCT bl.device_id ORDER BY bl.device_id SEPARATOR ',') AS device_ids
                FROM biometric_logs bl
                WHERE NOT EXISTS (
                    SELECT 1 FROM employees e
                    WHERE e.biometric_id = bl.biometric_user_id AND e.status = %s
                )
                GROUP BY bl.biometric_user_id
                ORDER BY last_seen DESC
                """,
                (EmployeeStatus.ACTIVE.value,),
            )
            return [
                UnmappedBiometricId(
                    biometric_user_id=r["biometric_user_id"],
                    punch_count=int(r["punch_count"]),
                    first_seen=r["first_seen"],
                    last_seen=r["last_seen"],
                    distinct_days=int(r["distinct_days"]),
                    device_ids=[d for d in (r.get("device_ids") or "").split(",") if d],
                )
                for r in fetchall(cur)
            ]

    def counts(self) -> PunchCounts:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COALESCE(SUM(CASE WHEN processed = 1 THEN 1 ELSE 0 END), 0) AS processed,
                       COALESCE(SUM(CASE WHEN processed = 0 THEN 1 ELSE 0 END), 0) AS unprocessed
                FROM biometric_logs
                """
            )
            row = fetchone(cur) or {}
            return PunchCounts(processed=int(row.get("processed") or 0), unprocessed=int(row.get("unprocessed") or 0))

from __future__ import annotations

from typing import Sequence

from ..core.enums import EmployeeStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Employee, MappingCounts
from .repository import EmployeeDirectory


class MySQLEmployeeDirectory(EmployeeDirectory):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_without_biometric_id(self) -> Sequence[Employee]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT employee_id, full_name, status, biometric_id
                FROM employees
                WHERE status=%s AND (biometric_id IS NULL OR biometric_id='')
                ORDER BY full_name ASC
                """,
                (EmployeeStatus.ACTIVE.value,),
            )
            return [
                Employee(
                    employee_id=int(r["employee_id"]),
                    full_name=r["full_name"],
                    status=EmployeeStatus(r["status"]),
                    biometric_id=None,
                )
                for r in fetchall(cur)
            ]

    def mapping_counts(self) -> MappingCounts:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT
                    COALESCE(SUM(CASE WHEN biometric_id IS NOT NULL AND biometric_id<>'' THEN 1 ELSE 0 END), 0) AS mapped,
                    COALESCE(SUM(CASE WHEN biometric_id IS NULL OR biometric_id='' THEN 1 ELSE 0 END), 0) AS unmapped
                FROM employees
                WHERE status=%s
                """,
                (EmployeeStatus.ACTIVE.value,),
            )
            row = fetchone(cur) or {}
            return MappingCounts(mapped=int(row.get("mapped") or 0), unmapped=int(row.get("unmapped") or 0))

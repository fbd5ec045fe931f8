from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..core.enums import DeviceStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Device, DeviceCounts
from .repository import DeviceRepository

_DEVICE_COLUMNS = "d.id, d.device_id, d.device_name, d.status, d.last_sync, d.created_at"


def _to_device(row: dict) -> Device:
    return Device(
        id=int(row["id"]),
        device_id=row["device_id"],
        device_name=row["device_name"],
        status=DeviceStatus(row["status"]),
        last_sync=row.get("last_sync"),
        created_at=row.get("created_at"),
        log_count=int(row.get("log_count") or 0),
        unprocessed_count=int(row.get("unprocessed_count") or 0),
    )


class MySQLDeviceRepository(DeviceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, device_id: str) -> Optional[Device]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_DEVICE_COLUMNS} FROM biometric_devices d WHERE d.device_id=%s",
                (device_id,),
            )
            row = fetchone(cur)
            return _to_device(row) if row else None

    def create(self, *, device_id: str, device_name: str, status: DeviceStatus) -> Device:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO biometric_devices(device_id, device_name, status, created_at, updated_at)
                VALUES(%s,%s,%s,NOW(),NOW())
                """,
                (device_id, device_name, status.value),
            )
            cur.execute(
                f"SELECT {_DEVICE_COLUMNS} FROM biometric_devices d WHERE d.id=%s",
                (int(cur.lastrowid),),
            )
            return _to_device(fetchone(cur))

    def list_with_counts(self) -> Sequence[Device]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_DEVICE_COLUMNS},
                       COUNT(bl.id) AS log_count,
                       COALESCE(SUM(CASE WHEN bl.processed = 0 THEN 1 ELSE 0 END), 0) AS unprocessed_count
                FROM biometric_devices d
                LEFT JOIN biometric_logs bl ON bl.device_id = d.device_id
                GROUP BY d.id, d.device_id, d.device_name, d.status, d.last_sync, d.created_at
                ORDER BY d.created_at DESC, d.id DESC
                """
            )
            return [_to_device(r) for r in fetchall(cur)]

    def list_active(self) -> Sequence[Device]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_DEVICE_COLUMNS}
                FROM biometric_devices d
                WHERE d.status=%s
                ORDER BY d.id ASC
                """,
                (DeviceStatus.ACTIVE.value,),
            )
            return [_to_device(r) for r in fetchall(cur)]

    def delete(self, device_id: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM biometric_devices WHERE device_id=%s", (device_id,))
            return cur.rowcount > 0

    def touch_sync(self, device_id: str, *, at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE biometric_devices SET last_sync=%s, updated_at=NOW() WHERE device_id=%s",
                (at, device_id),
            )
            return cur.rowcount > 0

    def set_status(self, device_id: str, status: DeviceStatus) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE biometric_devices SET status=%s, updated_at=NOW() WHERE device_id=%s",
                (status.value, device_id),
            )
            return cur.rowcount > 0

    def counts(self) -> DeviceCounts:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COUNT(*) AS total,
                       COALESCE(SUM(CASE WHEN status=%s THEN 1 ELSE 0 END), 0) AS active,
                       MAX(last_sync) AS last_sync
                FROM biometric_devices
                """,
                (DeviceStatus.ACTIVE.value,),
            )
            row = fetchone(cur) or {}
            return DeviceCounts(
                total=int(row.get("total") or 0),
                active=int(row.get("active") or 0),
                last_sync=row.get("last_sync"),
            )

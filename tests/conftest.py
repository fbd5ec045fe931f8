from __future__ import annotations

import copy
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime, timedelta

import mysql.connector
import pytest
from mysql.connector import errorcode

from src.biometric_attendance.biometric_attendance.core.enums import DeviceStatus, EmployeeStatus, GatewayErrorKind
from src.biometric_attendance.biometric_attendance.core.exceptions import PersistenceError
from src.biometric_attendance.biometric_attendance.devices.model import Device, DeviceCounts
from src.biometric_attendance.biometric_attendance.devices.service import DeviceRegistry
from src.biometric_attendance.biometric_attendance.employees.model import Employee, MappingCounts
from src.biometric_attendance.biometric_attendance.gateway.model import CanonicalPunch, DeviceInfo, GatewayResult
from src.biometric_attendance.biometric_attendance.punches.model import PunchCounts, UnmappedBiometricId
from src.biometric_attendance.biometric_attendance.punches.service import PunchLogStore
from src.biometric_attendance.biometric_attendance.reconciliation.model import AttendanceDay, MappedPunch
from src.biometric_attendance.biometric_attendance.reconciliation.service import ReconciliationService
from src.biometric_attendance.biometric_attendance.sync.service import SyncService

FIXED_NOW = datetime(2026, 1, 12, 9, 0, 0)


def duplicate_key_error() -> PersistenceError:
    err = PersistenceError("Database error: Duplicate entry")
    err.__cause__ = mysql.connector.errors.IntegrityError(msg="Duplicate entry", errno=errorcode.ER_DUP_ENTRY)
    return err


class FakeDatabase:
    """Shared in-memory state behind the fake repositories."""

    def __init__(self):
        self.devices: dict[str, Device] = {}
        self.logs: list[dict] = []
        self.employees: dict[int, Employee] = {}
        self.attendance: dict[tuple[int, date], AttendanceDay] = {}
        self._next_device_id = 1
        self._next_log_id = 1
        self._next_attendance_id = 1

    def add_employee(self, employee_id, *, biometric_id, status=EmployeeStatus.ACTIVE, full_name=None):
        self.employees[employee_id] = Employee(
            employee_id=employee_id,
            full_name=full_name or f"Employee {employee_id}",
            status=status,
            biometric_id=biometric_id,
        )

    def add_device(self, device_id, *, status=DeviceStatus.ACTIVE, created_at=None) -> Device:
        device = Device(
            id=self._next_device_id,
            device_id=device_id,
            device_name=f"Terminal {device_id}",
            status=status,
            created_at=created_at or FIXED_NOW - timedelta(days=30) + timedelta(minutes=self._next_device_id),
        )
        self._next_device_id += 1
        self.devices[device_id] = device
        return device

    def add_log(self, device_id, biometric_user_id, punch_time, *, processed=False) -> dict:
        row = {
            "id": self._next_log_id,
            "device_id": device_id,
            "biometric_user_id": biometric_user_id,
            "punch_time": punch_time,
            "punch_type": "IN",
            "raw_payload": {},
            "processed": processed,
        }
        self._next_log_id += 1
        self.logs.append(row)
        return row

    def add_attendance(self, employee_id, attendance_date, *, check_in=None, check_out=None, remarks=None, status="Absent"):
        day = AttendanceDay(
            employee_id=employee_id,
            attendance_date=attendance_date,
            status=status,
            check_in_time=check_in,
            check_out_time=check_out,
            remarks=remarks,
            attendance_id=self._next_attendance_id,
        )
        self._next_attendance_id += 1
        self.attendance[day.key] = day
        return day

    def employees_for(self, biometric_user_id):
        return [
            e
            for _, e in sorted(self.employees.items())
            if e.status == EmployeeStatus.ACTIVE and e.biometric_id and e.biometric_id == biometric_user_id
        ]

    def employee_for(self, biometric_user_id):
        matches = self.employees_for(biometric_user_id)
        return matches[0] if matches else None

    def pending(self, logs, *, start_date, end_date, device_id=None):
        out = []
        for row in logs:
            if row["processed"]:
                continue
            if not (start_date <= row["punch_time"].date() <= end_date):
                continue
            if device_id and row["device_id"] != device_id:
                continue
            if self.employee_for(row["biometric_user_id"]) is None:
                continue
            out.append(row)
        return out


class FakeDeviceRepository:
    def __init__(self, db: FakeDatabase):
        self.db = db
        self.touched: list[tuple[str, datetime]] = []

    def get(self, device_id):
        return self.db.devices.get(device_id)

    def create(self, *, device_id, device_name, status):
        device = self.db.add_device(device_id, status=status)
        device = replace(device, device_name=device_name, created_at=FIXED_NOW)
        self.db.devices[device_id] = device
        return device

    def list_with_counts(self):
        out = []
        for d in self.db.devices.values():
            logs = [r for r in self.db.logs if r["device_id"] == d.device_id]
            out.append(
                replace(d, log_count=len(logs), unprocessed_count=sum(1 for r in logs if not r["processed"]))
            )
        return sorted(out, key=lambda d: (d.created_at, d.id), reverse=True)

    def list_active(self):
        return [d for d in self.db.devices.values() if d.is_active]

    def delete(self, device_id):
        if device_id not in self.db.devices:
            return False
        del self.db.devices[device_id]
        self.db.logs = [r for r in self.db.logs if r["device_id"] != device_id]
        return True

    def touch_sync(self, device_id, *, at):
        self.touched.append((device_id, at))
        device = self.db.devices.get(device_id)
        if not device:
            return False
        self.db.devices[device_id] = replace(device, last_sync=at)
        return True

    def set_status(self, device_id, status):
        device = self.db.devices.get(device_id)
        if not device:
            return False
        self.db.devices[device_id] = replace(device, status=status)
        return True

    def counts(self):
        devices = list(self.db.devices.values())
        syncs = [d.last_sync for d in devices if d.last_sync]
        return DeviceCounts(
            total=len(devices),
            active=sum(1 for d in devices if d.is_active),
            last_sync=max(syncs) if syncs else None,
        )


class FakePunchLogRepository:
    def __init__(self, db: FakeDatabase):
        self.db = db
        # Simulates another sync inserting the same punch between exists() and insert().
        self.race_on: set[tuple[str, str, datetime]] = set()
        self.fail_on: set[str] = set()

    def _find(self, device_id, biometric_user_id, punch_time):
        for row in self.db.logs:
            if (row["device_id"], row["biometric_user_id"], row["punch_time"]) == (
                device_id,
                biometric_user_id,
                punch_time,
            ):
                return row
        return None

    def exists(self, *, device_id, biometric_user_id, punch_time):
        return self._find(device_id, biometric_user_id, punch_time) is not None

    def insert(self, *, device_id, punch: CanonicalPunch):
        key = (device_id, punch.biometric_user_id, punch.punch_time)
        if punch.biometric_user_id in self.fail_on:
            raise PersistenceError("Database error: Lost connection")
        if key in self.race_on or self._find(*key):
            self.race_on.discard(key)
            if not self._find(*key):
                self.db.add_log(device_id, punch.biometric_user_id, punch.punch_time)
            raise duplicate_key_error()
        row = self.db.add_log(device_id, punch.biometric_user_id, punch.punch_time)
        row["punch_type"] = punch.punch_type
        row["raw_payload"] = punch.raw_payload
        return row["id"]

    def mark_processed(self, *, start_date, end_date, device_id=None):
        rows = self.db.pending(self.db.logs, start_date=start_date, end_date=end_date, device_id=device_id)
        for row in rows:
            row["processed"] = True
        return len(rows)

    def find_unmapped(self):
        grouped: dict[str, list[dict]] = {}
        for row in self.db.logs:
            if self.db.employee_for(row["biometric_user_id"]) is None:
                grouped.setdefault(row["biometric_user_id"], []).append(row)
        out = []
        for user_id, rows in grouped.items():
            times = [r["punch_time"] for r in rows]
            out.append(
                UnmappedBiometricId(
                    biometric_user_id=user_id,
                    punch_count=len(rows),
                    first_seen=min(times),
                    last_seen=max(times),
                    distinct_days=len({t.date() for t in times}),
                    device_ids=sorted({r["device_id"] for r in rows}),
                )
            )
        return sorted(out, key=lambda u: u.last_seen, reverse=True)

    def counts(self):
        processed = sum(1 for r in self.db.logs if r["processed"])
        return PunchCounts(processed=processed, unprocessed=len(self.db.logs) - processed)


class FakeEmployeeDirectory:
    def __init__(self, db: FakeDatabase):
        self.db = db

    def list_without_biometric_id(self):
        return [
            e for e in self.db.employees.values() if e.status == EmployeeStatus.ACTIVE and not e.biometric_id
        ]

    def mapping_counts(self):
        active = [e for e in self.db.employees.values() if e.status == EmployeeStatus.ACTIVE]
        mapped = sum(1 for e in active if e.biometric_id)
        return MappingCounts(mapped=mapped, unmapped=len(active) - mapped)


class FakeReconciliationSession:
    def __init__(self, db: FakeDatabase, logs, attendance, *, fail_on_mark=False):
        self.db = db
        self.logs = logs
        self.attendance = attendance
        self.fail_on_mark = fail_on_mark

    def select_pending(self, *, start_date, end_date, device_id=None):
        rows = self.db.pending(self.logs, start_date=start_date, end_date=end_date, device_id=device_id)
        out = [
            MappedPunch(
                punch_id=r["id"],
                employee_id=e.employee_id,
                device_id=r["device_id"],
                biometric_user_id=r["biometric_user_id"],
                punch_time=r["punch_time"],
            )
            for r in rows
            for e in self.db.employees_for(r["biometric_user_id"])
        ]
        return sorted(out, key=lambda p: (p.employee_id, p.punch_time))

    def get_attendance(self, keys):
        return {k: self.attendance[k] for k in keys if k in self.attendance}

    def insert_attendance(self, day):
        attendance_id = self.db._next_attendance_id
        self.db._next_attendance_id += 1
        self.attendance[day.key] = replace(day, attendance_id=attendance_id)
        return attendance_id

    def update_attendance(self, day):
        self.attendance[day.key] = day

    def mark_processed(self, punch_ids):
        if self.fail_on_mark:
            raise PersistenceError("Database error: Lock wait timeout exceeded")
        wanted = set(punch_ids)
        rows = [r for r in self.logs if r["id"] in wanted and not r["processed"]]
        for row in rows:
            row["processed"] = True
        return len(rows)


class FakeReconciliationRepository:
    """Works on copies of the state and swaps them in only when the block succeeds."""

    def __init__(self, db: FakeDatabase):
        self.db = db
        self.fail_on_mark = False
        self.sessions = 0

    @contextmanager
    def session(self):
        self.sessions += 1
        logs = copy.deepcopy(self.db.logs)
        attendance = dict(self.db.attendance)
        yield FakeReconciliationSession(self.db, logs, attendance, fail_on_mark=self.fail_on_mark)
        for original, updated in zip(self.db.logs, logs):
            original.update(updated)
        self.db.attendance = attendance


class FakeGateway:
    def __init__(self, *, configured=True):
        self.configured = configured
        self.known_devices: dict[str, DeviceInfo] = {}
        self.punches: dict[str, list[CanonicalPunch]] = {}
        self.failures: dict[str, GatewayResult] = {}
        self.explode: set[str] = set()
        self.fetch_calls: list[tuple[str, date, date]] = []

    def credentials_configured(self):
        return self.configured

    def validate_device(self, device_id):
        info = self.known_devices.get(device_id)
        if info is None:
            return GatewayResult.failure(GatewayErrorKind.NOT_FOUND, "Device not found in ADMS account")
        return GatewayResult.success(info)

    def fetch_punches(self, device_id, start_date, end_date):
        self.fetch_calls.append((device_id, start_date, end_date))
        if device_id in self.explode:
            raise RuntimeError(f"boom on {device_id}")
        if device_id in self.failures:
            return self.failures[device_id]
        return GatewayResult.success(list(self.punches.get(device_id, [])))

    def test_connection(self):
        return GatewayResult.success(len(self.known_devices))


def punch(user_id, when, punch_type="IN") -> CanonicalPunch:
    return CanonicalPunch(
        biometric_user_id=user_id,
        punch_time=when,
        punch_type=punch_type,
        raw_payload={"userId": user_id, "punchTime": when.isoformat() if when else None},
    )


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def clock(fixed_now):
    return lambda: fixed_now


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def device_repo(db):
    return FakeDeviceRepository(db)


@pytest.fixture
def punch_repo(db):
    return FakePunchLogRepository(db)


@pytest.fixture
def employee_directory(db):
    return FakeEmployeeDirectory(db)


@pytest.fixture
def reconciliation_repo(db):
    return FakeReconciliationRepository(db)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def registry(device_repo, gateway, clock):
    return DeviceRegistry(device_repo, gateway, clock=clock)


@pytest.fixture
def store(punch_repo):
    return PunchLogStore(punch_repo)


@pytest.fixture
def reconciliation_service(reconciliation_repo, clock):
    return ReconciliationService(reconciliation_repo, clock=clock)


@pytest.fixture
def sync_service(registry, gateway, store, clock):
    return SyncService(registry, gateway, store, days_back=7, clock=clock)


@pytest.fixture
def make_punch():
    return punch

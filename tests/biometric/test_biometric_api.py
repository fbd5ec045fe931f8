import logging
from datetime import datetime
from pathlib import Path

import pytest
from flask import Flask

from src.biometric_attendance.biometric_attendance.biometric.controller import register
from src.biometric_attendance.biometric_attendance.container import Container
from src.biometric_attendance.biometric_attendance.core.enums import DeviceStatus
from src.biometric_attendance.biometric_attendance.core.exceptions import PersistenceError
from src.biometric_attendance.biometric_attendance.gateway.model import DeviceInfo
from src.biometric_attendance.biometric_attendance.scheduler.service import (
    BiometricScheduler,
    SchedulerSettings,
    build_scheduler,
)


@pytest.fixture
def container(
    gateway,
    device_repo,
    punch_repo,
    employee_directory,
    reconciliation_repo,
    registry,
    store,
    reconciliation_service,
    sync_service,
):
    settings = SchedulerSettings(enabled=False)
    scheduler = BiometricScheduler(
        sync_service, reconciliation_service, settings, scheduler=build_scheduler(settings.timezone)
    )
    return Container(
        conn=None,
        db_config={},
        schema_path=Path("database/schema.sql"),
        gateway=gateway,
        device_repo=device_repo,
        punch_repo=punch_repo,
        employee_directory=employee_directory,
        reconciliation_repo=reconciliation_repo,
        device_registry=registry,
        punch_store=store,
        reconciliation_service=reconciliation_service,
        sync_service=sync_service,
        scheduler=scheduler,
    )


@pytest.fixture
def client(container):
    app = Flask(__name__)
    app.config["TESTING"] = True
    register(app, container)
    return app.test_client()


def test_connect_device(client, gateway):
    gateway.known_devices["DEV001"] = DeviceInfo(device_id="DEV001", device_name="Lobby")

    resp = client.post("/api/biometric/connect", json={"deviceId": "DEV001"})

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["success"] is True
    assert body["device"]["deviceId"] == "DEV001"
    assert body["device"]["name"] == "Lobby"
    assert body["device"]["status"] == "active"
    assert body["device"]["lastSync"] is None


@pytest.mark.parametrize(
    "payload, configured, known, status",
    [
        ({}, True, True, 400),
        ({"deviceId": "DEV001"}, False, True, 503),
        ({"deviceId": "DEV001"}, True, False, 400),
    ],
)
def test_connect_errors(client, gateway, payload, configured, known, status):
    gateway.configured = configured
    if known:
        gateway.known_devices["DEV001"] = DeviceInfo(device_id="DEV001", device_name="Lobby")

    resp = client.post("/api/biometric/connect", json=payload)

    assert resp.status_code == status
    body = resp.get_json()
    assert body["success"] is False
    assert body["message"]
    assert "error" in body


def test_connect_vendor_rejection_carries_vendor_message(client):
    resp = client.post("/api/biometric/connect", json={"deviceId": "GHOST"})

    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Device not found in ADMS account"
    assert resp.get_json()["error"] == "NOT_FOUND"


def test_connect_twice_is_409(client, gateway):
    gateway.known_devices["DEV001"] = DeviceInfo(device_id="DEV001", device_name="Lobby")
    client.post("/api/biometric/connect", json={"deviceId": "DEV001"})

    resp = client.post("/api/biometric/connect", json={"deviceId": "DEV001"})

    assert resp.status_code == 409


def test_list_devices(client, db):
    db.add_device("DEV001")
    db.add_log("DEV001", "B1", datetime(2026, 1, 10, 9, 0))

    resp = client.get("/api/biometric/devices")

    assert resp.status_code == 200
    devices = resp.get_json()["devices"]
    assert [(d["deviceId"], d["logCount"], d["unprocessedCount"]) for d in devices] == [("DEV001", 1, 1)]


def test_delete_device(client, db):
    db.add_device("DEV001")

    assert client.delete("/api/biometric/devices/DEV001").status_code == 200
    assert client.delete("/api/biometric/devices/DEV001").status_code == 404


def test_patch_device_status(client, db):
    db.add_device("DEV001")

    resp = client.patch("/api/biometric/devices/DEV001", json={"status": "inactive"})
    assert resp.status_code == 200
    assert resp.get_json()["device"]["status"] == "inactive"

    assert client.patch("/api/biometric/devices/DEV001", json={"status": "broken"}).status_code == 400
    assert client.patch("/api/biometric/devices/NOPE", json={"status": "active"}).status_code == 404


def test_sync_device(client, db, gateway, make_punch):
    db.add_device("DEV001")
    gateway.punches["DEV001"] = [
        make_punch("B123", datetime(2026, 1, 10, 9, 2)),
        make_punch("B123", datetime(2026, 1, 10, 18, 15)),
    ]

    resp = client.post("/api/biometric/sync/DEV001?startDate=2026-01-10&endDate=2026-01-10")

    assert resp.status_code == 200
    body = resp.get_json()
    assert (body["count"], body["skipped"], body["total"]) == (2, 0, 2)


def test_sync_device_errors(client, db, gateway):
    db.add_device("OFF", status=DeviceStatus.INACTIVE)
    db.add_device("DEV001")

    assert client.post("/api/biometric/sync/NOPE").status_code == 404
    assert client.post("/api/biometric/sync/OFF").status_code == 400
    assert client.post("/api/biometric/sync/DEV001?startDate=10-01-2026").status_code == 400

    gateway.configured = False
    assert client.post("/api/biometric/sync/DEV001").status_code == 503


def test_sync_all_is_accepted_with_job_id(client):
    resp = client.post("/api/biometric/sync-all")

    assert resp.status_code == 202
    assert resp.get_json()["jobId"]


def test_sync_all_without_credentials(client, gateway):
    gateway.configured = False
    assert client.post("/api/biometric/sync-all").status_code == 503


def test_process(client, db):
    db.add_employee(42, biometric_id="B123")
    db.add_log("DEV001", "B123", datetime(2026, 1, 10, 9, 2))
    db.add_log("DEV001", "B123", datetime(2026, 1, 10, 18, 15))

    resp = client.post("/api/biometric/process", json={"startDate": "2026-01-10", "endDate": "2026-01-10"})

    assert resp.status_code == 200
    summary = resp.get_json()["summary"]
    assert summary["ProcessedFromDate"] == "2026-01-10"
    assert summary["ProcessedToDate"] == "2026-01-10"
    assert summary["LogsMarkedProcessed"] == 2
    assert summary["EmployeesProcessed"] == 1
    assert summary["AttendanceRecordsTouched"] == 1
    assert summary["ProcessedAt"] == "2026-01-12T09:00:00"


def test_process_rejects_reversed_window(client):
    resp = client.post("/api/biometric/process", json={"startDate": "2026-01-11", "endDate": "2026-01-10"})
    assert resp.status_code == 400


def test_unmapped(client, db):
    db.add_employee(42, biometric_id="B123")
    db.add_employee(43, biometric_id=None, full_name="Meera Iyer")
    db.add_log("DEV001", "B777", datetime(2026, 1, 10, 9, 0))

    body = client.get("/api/biometric/unmapped").get_json()

    assert [u["biometricUserId"] for u in body["unmappedBiometricIds"]] == ["B777"]
    assert body["unmappedBiometricIds"][0]["deviceIds"] == ["DEV001"]
    assert [e["fullName"] for e in body["employeesWithoutBiometricId"]] == ["Meera Iyer"]


def test_status(client, db):
    db.add_device("DEV001")
    db.add_device("OFF", status=DeviceStatus.INACTIVE)
    db.add_employee(42, biometric_id="B123")
    db.add_employee(43, biometric_id=None)
    db.add_log("DEV001", "B123", datetime(2026, 1, 10, 9, 0), processed=True)
    db.add_log("DEV001", "B123", datetime(2026, 1, 10, 18, 0))

    status = client.get("/api/biometric/status").get_json()["status"]

    assert status["credentialsConfigured"] is True
    assert (status["activeDevices"], status["totalDevices"]) == (1, 2)
    assert (status["processedLogs"], status["unprocessedLogs"]) == (1, 1)
    assert (status["mappedEmployees"], status["unmappedEmployees"]) == (1, 1)
    assert status["scheduler"]["enabled"] is False
    assert status["scheduler"]["running"] is False


def test_database_failure_is_500(client, monkeypatch, registry):
    def broken():
        raise PersistenceError("Database connection failed")

    monkeypatch.setattr(registry, "list", broken)

    resp = client.get("/api/biometric/devices")

    assert resp.status_code == 500
    assert resp.get_json()["success"] is False


def test_unexpected_error_is_500(client, monkeypatch, store):
    def broken():
        raise RuntimeError("boom")

    monkeypatch.setattr(store, "find_unmapped", broken)

    resp = client.get("/api/biometric/unmapped")

    assert resp.status_code == 500
    assert resp.get_json() == {"success": False, "message": "Internal server error", "error": "boom"}


def test_role_headers_are_logged(client, caplog):
    with caplog.at_level(logging.DEBUG):
        client.get("/api/biometric/devices", headers={"X-User-Role": "HR", "X-Employee-Id": "42"})

    assert "role=hr scope=all employee=42" in caplog.text

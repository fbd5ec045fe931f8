from __future__ import annotations

import logging
from datetime import date, datetime
from functools import wraps
from pathlib import Path
from typing import Any, Optional

import click
from flask import Flask, g, jsonify, request
from flask.cli import AppGroup

from ..common.datetime_utils import parse_optional_date
from ..core.exceptions import (
    ConflictError,
    DomainError,
    NotFoundError,
    PersistenceError,
    PreconditionError,
    UpstreamError,
    ValidationError,
)
from ..core.roles import data_scope, role_from_header
from ..container import Container
from ..database.bootstrap import apply_schema, list_tables
from ..devices.model import Device
from ..devices.service import CREDENTIALS_MISSING_MESSAGE
from ..reconciliation.model import ReconciliationSummary

logger = logging.getLogger(__name__)

API_PREFIX = "/api/biometric"

_STATUS_BY_ERROR: list[tuple[type[DomainError], int]] = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (PreconditionError, 503),
    (UpstreamError, 400),
    (PersistenceError, 500),
]


def status_for(error: DomainError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return 500


def _iso(value: Optional[date | datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def device_to_json(device: Device) -> dict[str, Any]:
    return {
        "id": device.id,
        "deviceId": device.device_id,
        "name": device.device_name,
        "status": device.status.value,
        "lastSync": _iso(device.last_sync),
        "createdAt": _iso(device.created_at),
        "logCount": device.log_count,
        "unprocessedCount": device.unprocessed_count,
    }


def summary_to_json(summary: ReconciliationSummary) -> dict[str, Any]:
    return {
        "ProcessedFromDate": _iso(summary.processed_from_date),
        "ProcessedToDate": _iso(summary.processed_to_date),
        "LogsMarkedProcessed": summary.logs_marked_processed,
        "EmployeesProcessed": summary.employees_processed,
        "AttendanceRecordsTouched": summary.attendance_records_touched,
        "ProcessedAt": _iso(summary.processed_at),
    }


def _error_response(message: str, status: int, error: Optional[str] = None):
    return jsonify({"success": False, "message": message, "error": error or message}), status


def register(app: Flask, container: Container) -> None:
    def json_errors(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            try:
                return view(*args, **kwargs)
            except UpstreamError as e:
                detail = getattr(e.error, "kind", None)
                return _error_response(str(e), status_for(e), detail.value if detail else None)
            except PersistenceError as e:
                logger.exception("Database error in %s", request.path)
                return _error_response("Database error", status_for(e), str(e))
            except DomainError as e:
                return _error_response(str(e), status_for(e))
            except Exception as e:
                logger.exception("Unhandled error in %s", request.path)
                return _error_response("Internal server error", 500, str(e))

        return wrapper

    def _body() -> dict[str, Any]:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}

    @app.before_request
    def load_request_context():
        if not request.path.startswith(API_PREFIX):
            return None
        g.role = role_from_header(request.headers.get("X-User-Role"))
        g.data_scope = data_scope(g.role)
        g.employee_id = request.headers.get("X-Employee-Id")
        logger.debug(
            "%s %s role=%s scope=%s employee=%s",
            request.method,
            request.path,
            g.role.value,
            g.data_scope.value,
            g.employee_id,
        )
        return None

    @app.route(f"{API_PREFIX}/connect", methods=["POST"], endpoint="biometric_connect")
    @json_errors
    def connect_device():
        device = container.device_registry.connect(_body().get("deviceId"))
        return (
            jsonify({"success": True, "message": "Device connected successfully", "device": device_to_json(device)}),
            201,
        )

    @app.route(f"{API_PREFIX}/devices", methods=["GET"], endpoint="biometric_devices")
    @json_errors
    def list_devices():
        devices = container.device_registry.list()
        return jsonify({"success": True, "devices": [device_to_json(d) for d in devices]})

    @app.route(f"{API_PREFIX}/devices/<device_id>", methods=["DELETE"], endpoint="biometric_delete_device")
    @json_errors
    def delete_device(device_id: str):
        container.device_registry.delete(device_id)
        return jsonify({"success": True, "message": "Device deleted successfully"})

    @app.route(f"{API_PREFIX}/devices/<device_id>", methods=["PATCH"], endpoint="biometric_update_device")
    @json_errors
    def update_device(device_id: str):
        device = container.device_registry.set_status(device_id, _body().get("status"))
        return jsonify({"success": True, "message": "Device updated", "device": device_to_json(device)})

    @app.route(f"{API_PREFIX}/sync/<device_id>", methods=["POST"], endpoint="biometric_sync_device")
    @json_errors
    def sync_device(device_id: str):
        start_date = parse_optional_date(request.args.get("startDate"), "startDate")
        end_date = parse_optional_date(request.args.get("endDate"), "endDate")
        result = container.sync_service.sync_device(device_id, start_date=start_date, end_date=end_date)
        return jsonify(
            {
                "success": True,
                "message": f"Synced {result.inserted_count} new attendance records",
                "count": result.inserted_count,
                "skipped": result.skipped_count,
                "total": result.fetched_count,
            }
        )

    @app.route(f"{API_PREFIX}/sync-all", methods=["POST"], endpoint="biometric_sync_all")
    @json_errors
    def sync_all():
        if not container.sync_service.credentials_configured():
            raise PreconditionError(CREDENTIALS_MISSING_MESSAGE)
        job_id = container.scheduler.submit_sync_all()
        return jsonify({"success": True, "message": "Sync started in background", "jobId": job_id}), 202

    @app.route(f"{API_PREFIX}/process", methods=["POST"], endpoint="biometric_process")
    @json_errors
    def process_logs():
        body = _body()
        summary = container.reconciliation_service.reconcile(
            start_date=parse_optional_date(body.get("startDate"), "startDate"),
            end_date=parse_optional_date(body.get("endDate"), "endDate"),
            device_id=body.get("deviceId") or None,
        )
        return jsonify({"success": True, "message": "Biometric logs processed", "summary": summary_to_json(summary)})

    @app.route(f"{API_PREFIX}/unmapped", methods=["GET"], endpoint="biometric_unmapped")
    @json_errors
    def unmapped():
        ids = container.punch_store.find_unmapped()
        employees = container.employee_directory.list_without_biometric_id()
        return jsonify(
            {
                "success": True,
                "unmappedBiometricIds": [
                    {
                        "biometricUserId": u.biometric_user_id,
                        "punchCount": u.punch_count,
                        "firstSeen": _iso(u.first_seen),
                        "lastSeen": _iso(u.last_seen),
                        "distinctDays": u.distinct_days,
                        "deviceIds": list(u.device_ids),
                    }
                    for u in ids
                ],
                "employeesWithoutBiometricId": [
                    {"employeeId": e.employee_id, "fullName": e.full_name, "status": e.status.value}
                    for e in employees
                ],
            }
        )

    @app.route(f"{API_PREFIX}/status", methods=["GET"], endpoint="biometric_status")
    @json_errors
    def status():
        device_counts = container.device_repo.counts()
        punch_counts = container.punch_store.counts()
        mapping = container.employee_directory.mapping_counts()
        return jsonify(
            {
                "success": True,
                "status": {
                    "credentialsConfigured": container.gateway.credentials_configured(),
                    "activeDevices": device_counts.active,
                    "totalDevices": device_counts.total,
                    "unprocessedLogs": punch_counts.unprocessed,
                    "processedLogs": punch_counts.processed,
                    "lastSync": _iso(device_counts.last_sync),
                    "mappedEmployees": mapping.mapped,
                    "unmappedEmployees": mapping.unmapped,
                    "scheduler": container.scheduler.describe(),
                },
            }
        )

    register_cli(app, container)


def register_cli(app: Flask, container: Container) -> None:
    biometric_cli = AppGroup("biometric", help="Biometric attendance operations.")

    @biometric_cli.command("sync-all")
    @click.option("--days", type=int, default=None, help="Lookback window in days.")
    def sync_all_command(days: Optional[int]):
        """Sync every active device now."""
        result = container.sync_service.sync_all_devices(days=days)
        if result.skipped_reason:
            raise click.ClickException(result.skipped_reason)
        for r in result.results:
            state = "ok" if r.ok else f"failed: {r.error}"
            click.echo(f"{r.device_id}: inserted={r.inserted_count} skipped={r.skipped_count} ({state})")
        click.echo(
            f"devices={result.devices_attempted} failed={result.devices_failed} "
            f"inserted={result.inserted_count} skipped={result.skipped_count}"
        )

    @biometric_cli.command("process")
    @click.option("--start", "start", default=None, help="Start date (YYYY-MM-DD).")
    @click.option("--end", "end", default=None, help="End date (YYYY-MM-DD).")
    @click.option("--device", "device", default=None, help="Only punches from this device.")
    def process_command(start: Optional[str], end: Optional[str], device: Optional[str]):
        """Reconcile unprocessed punches into attendance."""
        try:
            summary = container.reconciliation_service.reconcile(
                start_date=parse_optional_date(start, "start"),
                end_date=parse_optional_date(end, "end"),
                device_id=device,
            )
        except ValidationError as e:
            raise click.BadParameter(str(e))
        for key, value in summary_to_json(summary).items():
            click.echo(f"{key}: {value}")

    @biometric_cli.command("ping")
    def ping_command():
        """Check the eSSL ADMS credentials."""
        if not container.gateway.credentials_configured():
            raise click.ClickException("eSSL ADMS credentials are not configured")
        result = container.gateway.test_connection()
        if not result.ok:
            raise click.ClickException(f"{result.error.kind.value}: {result.error.message}")
        click.echo(f"Connected to eSSL ADMS ({result.value} device(s) visible)")

    @biometric_cli.command("init-db")
    @click.option(
        "--schema",
        "schema_path",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        default=None,
        help="Path to schema.sql.",
    )
    def init_db_command(schema_path: Optional[Path]):
        """Apply database/schema.sql."""
        db_config = container.db_config
        apply_schema(db_config, schema_path=schema_path or container.schema_path)
        click.echo(f"Schema applied; tables: {', '.join(list_tables(db_config))}")

    app.cli.add_command(biometric_cli)

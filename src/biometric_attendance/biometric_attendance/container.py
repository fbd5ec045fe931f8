from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .common.datetime_utils import local_clock
from .database.connection import DBConfig, DatabaseConnection
from .devices.mysql_device_repository import MySQLDeviceRepository
from .devices.service import DeviceRegistry
from .employees.mysql_employee_repository import MySQLEmployeeDirectory
from .gateway.client import EsslGateway, GatewaySettings
from .punches.mysql_punch_log_repository import MySQLPunchLogRepository
from .punches.service import PunchLogStore
from .reconciliation.mysql_reconciliation_repository import MySQLReconciliationRepository
from .reconciliation.service import ReconciliationService
from .scheduler.service import BiometricScheduler, SchedulerSettings
from .sync.service import SyncService

DEFAULT_SCHEMA_PATH = Path(__file__).resolve().parents[3] / "database" / "schema.sql"


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection
    db_config: dict
    schema_path: Path

    gateway: EsslGateway

    device_repo: MySQLDeviceRepository
    punch_repo: MySQLPunchLogRepository
    employee_directory: MySQLEmployeeDirectory
    reconciliation_repo: MySQLReconciliationRepository

    device_registry: DeviceRegistry
    punch_store: PunchLogStore
    reconciliation_service: ReconciliationService
    sync_service: SyncService
    scheduler: BiometricScheduler


def build_container(
    *,
    db_config: dict,
    gateway_settings: GatewaySettings,
    scheduler_settings: SchedulerSettings,
    schema_path: Optional[Path] = None,
) -> Container:
    conn = DatabaseConnection(DBConfig.from_mapping(db_config))
    clock = local_clock(scheduler_settings.timezone)

    gateway = EsslGateway(gateway_settings)

    device_repo = MySQLDeviceRepository(conn)
    punch_repo = MySQLPunchLogRepository(conn)
    employee_directory = MySQLEmployeeDirectory(conn)
    reconciliation_repo = MySQLReconciliationRepository(conn)

    device_registry = DeviceRegistry(device_repo, gateway, clock=clock)
    punch_store = PunchLogStore(punch_repo)
    reconciliation_service = ReconciliationService(reconciliation_repo, clock=clock)
    sync_service = SyncService(
        device_registry,
        gateway,
        punch_store,
        days_back=scheduler_settings.sync_days_back,
        clock=clock,
    )
    scheduler = BiometricScheduler(sync_service, reconciliation_service, scheduler_settings)

    return Container(
        conn=conn,
        db_config=dict(db_config),
        schema_path=schema_path or DEFAULT_SCHEMA_PATH,
        gateway=gateway,
        device_repo=device_repo,
        punch_repo=punch_repo,
        employee_directory=employee_directory,
        reconciliation_repo=reconciliation_repo,
        device_registry=device_registry,
        punch_store=punch_store,
        reconciliation_service=reconciliation_service,
        sync_service=sync_service,
        scheduler=scheduler,
    )

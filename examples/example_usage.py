"""Example: drive the pipeline through the service layer, without Flask.

Pulls the last few days from every active device, then reconciles.
"""

import importlib

from config import get_settings_module

from src.biometric_attendance.biometric_attendance.container import build_container
from src.biometric_attendance.biometric_attendance.main import gateway_settings_from, scheduler_settings_from


def main():
    settings = importlib.import_module(get_settings_module())
    container = build_container(
        db_config=settings.DB_CONFIG,
        gateway_settings=gateway_settings_from(settings),
        scheduler_settings=scheduler_settings_from(settings),
    )

    result = container.sync_service.sync_all_devices(days=3)
    print(result.skipped_reason or f"inserted={result.inserted_count} skipped={result.skipped_count}")

    summary = container.reconciliation_service.reconcile()
    print(summary)


if __name__ == "__main__":
    main()

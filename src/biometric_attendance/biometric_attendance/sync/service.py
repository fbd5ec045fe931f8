from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, Optional

from ..common.datetime_utils import days_back, now_local
from ..core.constants import DEFAULT_SYNC_DAYS_BACK
from ..core.exceptions import PreconditionError, UpstreamError, ValidationError
from ..devices.service import CREDENTIALS_MISSING_MESSAGE, DeviceRegistry
from ..gateway.base import DeviceGateway
from ..punches.service import PunchLogStore
from .model import DeviceSyncResult, SyncAllResult

logger = logging.getLogger(__name__)


class SyncService:
    """Pull punches from the vendor cloud into the punch log store.

    A device's ``last_sync`` is touched after every attempt, including failed
    fetches and empty windows.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        gateway: DeviceGateway,
        store: PunchLogStore,
        *,
        days_back: int = DEFAULT_SYNC_DAYS_BACK,
        clock: Callable[[], datetime] = now_local,
    ):
        self._registry = registry
        self._gateway = gateway
        self._store = store
        self._days_back = int(days_back)
        self._clock = clock

    def credentials_configured(self) -> bool:
        return self._gateway.credentials_configured()

    def default_window(self, days: Optional[int] = None) -> tuple[date, date]:
        today = self._clock().date()
        return days_back(today, self._days_back if days is None else days), today

    def sync_device(
        self,
        device_id: str,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> DeviceSyncResult:
        """On-demand sync of one device; failures are raised to the caller."""
        if not self.credentials_configured():
            raise PreconditionError(CREDENTIALS_MISSING_MESSAGE)

        device = self._registry.get(device_id)
        if not device.is_active:
            raise ValidationError("Device is inactive")

        end = end_date or self._clock().date()
        start = start_date or days_back(end, self._days_back)
        if start > end:
            raise ValidationError("startDate must be on or before endDate")

        result = self._pull(device.device_id, start, end)
        if not result.ok:
            raise UpstreamError(result.error or "Failed to fetch attendance data")
        return result

    def sync_all_devices(self, *, days: Optional[int] = None) -> SyncAllResult:
        """Sync every active device over the lookback window, one at a time.

        A failure on one device is logged and never stops the others.
        """
        if not self.credentials_configured():
            logger.warning("Skipping sync: %s", CREDENTIALS_MISSING_MESSAGE)
            return SyncAllResult(skipped_reason=CREDENTIALS_MISSING_MESSAGE)

        start, end = self.default_window(days)
        devices = self._registry.list_active()
        logger.info("Syncing %d active device(s) for %s..%s", len(devices), start, end)

        results: list[DeviceSyncResult] = []
        for device in devices:
            try:
                result = self._pull(device.device_id, start, end)
            except Exception as e:
                logger.exception("Error syncing device %s", device.device_id)
                result = DeviceSyncResult(device_id=device.device_id, start_date=start, end_date=end, error=str(e))
            results.append(result)

        summary = SyncAllResult(
            devices_attempted=len(results),
            devices_failed=sum(1 for r in results if not r.ok),
            inserted_count=sum(r.inserted_count for r in results),
            skipped_count=sum(r.skipped_count for r in results),
            results=results,
        )
        logger.info(
            "Sync complete: %d device(s), %d failed, %d inserted, %d skipped",
            summary.devices_attempted,
            summary.devices_failed,
            summary.inserted_count,
            summary.skipped_count,
        )
        return summary

    def _pull(self, device_id: str, start: date, end: date) -> DeviceSyncResult:
        try:
            fetched = self._gateway.fetch_punches(device_id, start, end)
            if not fetched.ok:
                logger.warning("Fetch failed for device %s: %s", device_id, fetched.error.message)
                return DeviceSyncResult(
                    device_id=device_id, start_date=start, end_date=end, error=fetched.error.message
                )

            punches = fetched.value or []
            upserted = self._store.upsert_batch(device_id, punches)
            logger.info(
                "Device %s: fetched %d, inserted %d, skipped %d, failed %d",
                device_id,
                len(punches),
                upserted.inserted_count,
                upserted.skipped_count,
                upserted.failed_count,
            )
            return DeviceSyncResult(
                device_id=device_id,
                start_date=start,
                end_date=end,
                inserted_count=upserted.inserted_count,
                skipped_count=upserted.skipped_count,
                failed_count=upserted.failed_count,
                fetched_count=len(punches),
            )
        finally:
            self._registry.touch_sync(device_id)

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional, Sequence

from ..common.datetime_utils import now_local
from ..common.validators import require_non_empty
from ..core.enums import DeviceStatus
from ..core.exceptions import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    PreconditionError,
    UpstreamError,
    ValidationError,
)
from ..database.mysql_base import is_duplicate_key
from ..gateway.base import DeviceGateway
from .model import Device
from .repository import DeviceRepository

logger = logging.getLogger(__name__)

CREDENTIALS_MISSING_MESSAGE = (
    "eSSL ADMS credentials are not configured. Set ESSL_ADMS_API_URL and ESSL_ADMS_TOKEN (or ESSL_ADMS_API_KEY)."
)


class DeviceRegistry:
    """Connect, list, remove and bookkeep biometric devices."""

    def __init__(
        self,
        devices: DeviceRepository,
        gateway: DeviceGateway,
        *,
        clock: Callable[[], datetime] = now_local,
    ):
        self._devices = devices
        self._gateway = gateway
        self._clock = clock

    def connect(self, device_id: Optional[str]) -> Device:
        device_id = require_non_empty(device_id, "Device ID")

        if not self._gateway.credentials_configured():
            raise PreconditionError(CREDENTIALS_MISSING_MESSAGE)

        if self._devices.get(device_id):
            raise ConflictError("Device already connected")

        logger.info("Validating device %s with ADMS", device_id)
        validation = self._gateway.validate_device(device_id)
        if not validation.ok:
            raise UpstreamError(validation.error.message or "Device validation failed", error=validation.error)

        try:
            device = self._devices.create(
                device_id=device_id,
                device_name=validation.value.device_name or device_id,
                status=DeviceStatus.ACTIVE,
            )
        except PersistenceError as e:
            if is_duplicate_key(e):
                raise ConflictError("Device already connected") from e
            raise

        logger.info("Device connected: %s (%s)", device.device_id, device.device_name)
        return device

    def list(self) -> Sequence[Device]:
        return self._devices.list_with_counts()

    def list_active(self) -> Sequence[Device]:
        return self._devices.list_active()

    def get(self, device_id: str) -> Device:
        device = self._devices.get(device_id)
        if not device:
            raise NotFoundError("Device not found. Please connect the device first.")
        return device

    def delete(self, device_id: str) -> None:
        if not self._devices.get(device_id):
            raise NotFoundError("Device not found")
        self._devices.delete(device_id)
        logger.info("Device deleted with its punch logs: %s", device_id)

    def touch_sync(self, device_id: str) -> None:
        self._devices.touch_sync(device_id, at=self._clock())

    def is_active(self, device_id: str) -> bool:
        device = self._devices.get(device_id)
        return bool(device and device.is_active)

    def set_status(self, device_id: str, status: Optional[str]) -> Device:
        try:
            new_status = DeviceStatus(str(status or "").strip().lower())
        except ValueError:
            raise ValidationError("Status must be 'active' or 'inactive'")

        device = self.get(device_id)
        if device.status != new_status:
            self._devices.set_status(device_id, new_status)
            logger.info("Device %s status %s -> %s", device_id, device.status.value, new_status.value)
        return self.get(device_id)

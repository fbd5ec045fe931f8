from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import DeviceStatus
from .model import Device, DeviceCounts


class DeviceRepository(Protocol):
    """Storage for biometric_devices.

    Services depend on this interface, never on the MySQL implementation.
    """

    def get(self, device_id: str) -> Optional[Device]:
        raise NotImplementedError

    def create(self, *, device_id: str, device_name: str, status: DeviceStatus) -> Device:
        raise NotImplementedError

    def list_with_counts(self) -> Sequence[Device]:
        raise NotImplementedError

    def list_active(self) -> Sequence[Device]:
        raise NotImplementedError

    def delete(self, device_id: str) -> bool:
        """Delete the device; its punch logs go with it (FK cascade)."""

        raise NotImplementedError

    def touch_sync(self, device_id: str, *, at: datetime) -> bool:
        raise NotImplementedError

    def set_status(self, device_id: str, status: DeviceStatus) -> bool:
        raise NotImplementedError

    def counts(self) -> DeviceCounts:
        raise NotImplementedError

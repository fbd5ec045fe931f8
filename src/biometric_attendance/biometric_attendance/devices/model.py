from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import DeviceStatus


@dataclass(frozen=True)
class Device:
    """A registered biometric terminal.

    ``log_count`` and ``unprocessed_count`` are derived from biometric_logs and
    only filled by list queries.
    """

    id: int
    device_id: str
    device_name: str
    status: DeviceStatus
    last_sync: Optional[datetime] = None
    created_at: Optional[datetime] = None
    log_count: int = 0
    unprocessed_count: int = 0

    @property
    def is_active(self) -> bool:
        return self.status == DeviceStatus.ACTIVE


@dataclass(frozen=True)
class DeviceCounts:
    total: int
    active: int
    last_sync: Optional[datetime]

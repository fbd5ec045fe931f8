from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class DeviceSyncResult:
    """Outcome of pulling one device's punches over a window."""

    device_id: str
    start_date: date
    end_date: date
    inserted_count: int = 0
    skipped_count: int = 0
    failed_count: int = 0
    fetched_count: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class SyncAllResult:
    devices_attempted: int = 0
    devices_failed: int = 0
    inserted_count: int = 0
    skipped_count: int = 0
    results: list[DeviceSyncResult] = field(default_factory=list)
    skipped_reason: Optional[str] = None

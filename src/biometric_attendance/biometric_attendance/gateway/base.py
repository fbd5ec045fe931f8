from __future__ import annotations

from datetime import date
from typing import Protocol

from .model import CanonicalPunch, DeviceInfo, GatewayResult


class DeviceGateway(Protocol):
    """What the pipeline needs from the vendor cloud."""

    def credentials_configured(self) -> bool:
        raise NotImplementedError

    def validate_device(self, device_id: str) -> GatewayResult[DeviceInfo]:
        raise NotImplementedError

    def fetch_punches(self, device_id: str, start_date: date, end_date: date) -> GatewayResult[list[CanonicalPunch]]:
        raise NotImplementedError

    def test_connection(self) -> GatewayResult[int]:
        raise NotImplementedError

from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..gateway.model import CanonicalPunch
from .model import PunchCounts, UnmappedBiometricId


class PunchLogRepository(Protocol):
    def exists(self, *, device_id: str, biometric_user_id: str, punch_time: datetime) -> bool:
        raise NotImplementedError

    def insert(self, *, device_id: str, punch: CanonicalPunch) -> int:
        """Insert one unprocessed punch.

        Raises PersistenceError; a duplicate triple surfaces as a duplicate-key error.
        """

        raise NotImplementedError

    def mark_processed(self, *, start_date: date, end_date: date, device_id: Optional[str] = None) -> int:
        raise NotImplementedError

    def find_unmapped(self) -> Sequence[UnmappedBiometricId]:
        raise NotImplementedError

    def counts(self) -> PunchCounts:
        raise NotImplementedError

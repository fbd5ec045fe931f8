from __future__ import annotations

from datetime import date
from typing import ContextManager, Mapping, Optional, Protocol, Sequence

from .model import AttendanceDay, MappedPunch


class ReconciliationSession(Protocol):
    """Operations that run inside one reconciliation transaction."""

    def select_pending(self, *, start_date: date, end_date: date, device_id: Optional[str] = None) -> Sequence[MappedPunch]:
        """Unprocessed punches of active, mapped employees, locked for the transaction."""

        raise NotImplementedError

    def get_attendance(self, keys: Sequence[tuple[int, date]]) -> Mapping[tuple[int, date], AttendanceDay]:
        raise NotImplementedError

    def insert_attendance(self, day: AttendanceDay) -> int:
        raise NotImplementedError

    def update_attendance(self, day: AttendanceDay) -> None:
        raise NotImplementedError

    def mark_processed(self, punch_ids: Sequence[int]) -> int:
        """Mark exactly the given punches processed; returns how many changed."""

        raise NotImplementedError


class ReconciliationRepository(Protocol):
    def session(self) -> ContextManager[ReconciliationSession]:
        """Open a transaction: committed when the block exits, rolled back on error."""

        raise NotImplementedError

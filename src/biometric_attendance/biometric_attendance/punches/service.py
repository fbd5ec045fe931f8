from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Optional, Sequence

from ..core.exceptions import PersistenceError
from ..database.mysql_base import is_duplicate_key
from ..gateway.model import CanonicalPunch
from .model import PunchCounts, UnmappedBiometricId, UpsertResult
from .repository import PunchLogRepository

logger = logging.getLogger(__name__)


class PunchLogStore:
    """Idempotent ingestion of canonical punches.

    Each punch is checked and inserted on its own, so one bad punch never
    aborts the rest of the batch.
    """

    def __init__(self, punches: PunchLogRepository):
        self._punches = punches

    def upsert_batch(self, device_id: str, punches: Iterable[CanonicalPunch]) -> UpsertResult:
        inserted = skipped = failed = 0

        for punch in punches:
            if not punch.biometric_user_id or punch.punch_time is None:
                failed += 1
                logger.error(
                    "Skipping malformed punch from device %s: user=%r time=%r raw=%r",
                    device_id,
                    punch.biometric_user_id,
                    punch.punch_time,
                    punch.raw_payload,
                )
                continue

            try:
                if self._punches.exists(
                    device_id=device_id,
                    biometric_user_id=punch.biometric_user_id,
                    punch_time=punch.punch_time,
                ):
                    skipped += 1
                    continue

                self._punches.insert(device_id=device_id, punch=punch)
                inserted += 1
            except PersistenceError as e:
                if is_duplicate_key(e):
                    # Inserted by an overlapping sync between our check and insert.
                    skipped += 1
                    continue
                failed += 1
                logger.error(
                    "Error inserting punch device=%s user=%s time=%s: %s",
                    device_id,
                    punch.biometric_user_id,
                    punch.punch_time,
                    e,
                )

        return UpsertResult(inserted_count=inserted, skipped_count=skipped, failed_count=failed)

    def mark_processed(self, *, start_date: date, end_date: date, device_id: Optional[str] = None) -> int:
        return self._punches.mark_processed(start_date=start_date, end_date=end_date, device_id=device_id)

    def find_unmapped(self) -> Sequence[UnmappedBiometricId]:
        return self._punches.find_unmapped()

    def counts(self) -> PunchCounts:
        return self._punches.counts()
